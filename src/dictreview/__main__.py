"""Command line entry point for the review scheduler."""
import argparse
import logging
import sys
from typing import List, Optional

from dictreview import __version__
from dictreview.config import settings
from dictreview.logging_config import setup_logging
from dictreview.models.base import SessionLocal, init_db
from dictreview.monitoring import start_monitoring
from dictreview.services.ledger_store import SqlLedgerStore
from dictreview.services.review_service import ReviewService

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dictreview", description="Spaced review for dictation practice")
    parser.add_argument("--user", default=settings.review.default_user_id, help="learner id")
    subparsers = parser.add_subparsers(dest="command")

    due = subparsers.add_parser("due", help="list words due for review")
    due.add_argument("--limit", type=int, default=None)

    record = subparsers.add_parser("record", help="record one dictation attempt")
    record.add_argument("word_id")
    outcome = record.add_mutually_exclusive_group(required=True)
    outcome.add_argument("--correct", dest="is_correct", action="store_true")
    outcome.add_argument("--incorrect", dest="is_correct", action="store_false")

    master = subparsers.add_parser("master", help="stop scheduling a word")
    master.add_argument("word_id")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Run one command against the configured database."""
    args = build_parser().parse_args(argv)

    setup_logging(f"Starting dictreview v{__version__} ...")
    init_db()
    if settings.monitoring.port:
        start_monitoring(settings.monitoring.port)

    logger.info("Running %s for user %s", args.command or "due", args.user)
    db = SessionLocal()
    try:
        service = ReviewService(SqlLedgerStore(db))

        if args.command == "record":
            entry = service.record_attempt(args.word_id, args.user, args.is_correct)
            if entry is None:
                print(f"{args.word_id}: not in the mistake ledger")
            else:
                print(f"{args.word_id}: next review at {entry.next_review_at.isoformat()}")
        elif args.command == "master":
            if service.mark_mastered(args.user, args.word_id) is None:
                print(f"{args.word_id}: not in the mistake ledger")
                return 1
            print(f"{args.word_id}: mastered")
        else:
            for word_id in service.due_words(args.user, limit=getattr(args, "limit", None)):
                print(word_id)
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
