"""Monitoring configuration for the review scheduler."""
from prometheus_client import Counter, Gauge, Histogram, start_http_server

# Attempt metrics
attempts_recorded = Counter(
    "dictreview_attempts_total",
    "Total number of dictation attempts applied to the mistake ledger",
    ["outcome"],
)

ledger_entries_created = Counter(
    "dictreview_ledger_entries_created_total",
    "Total number of ledger entries created by a first mistake",
)

entries_resolved = Counter(
    "dictreview_entries_resolved_total",
    "Total number of ledger entries marked as resolved",
    ["reason"],
)

# Query metrics
due_queries = Counter(
    "dictreview_due_queries_total",
    "Total number of due-word queries",
)

due_words = Gauge(
    "dictreview_due_words",
    "Number of due words returned by the latest query for a user",
    ["user_id"],
)

# Session metrics
sessions_recorded = Counter(
    "dictreview_sessions_recorded_total",
    "Total number of dictation sessions recorded",
    ["session_type"],
)

session_accuracy = Histogram(
    "dictreview_session_accuracy",
    "Accuracy of recorded dictation sessions",
    buckets=[0.5, 0.7, 0.85, 0.95, 1.0],
)

# Error metrics
invalid_states = Counter(
    "dictreview_invalid_states_total",
    "Total number of updates rejected because of an invalid ledger entry",
)

reminder_errors = Counter(
    "dictreview_reminder_errors_total",
    "Total number of errors raised by review reminder callbacks",
)


def start_monitoring(port: int = 9090) -> None:
    """Start the Prometheus metrics server."""
    start_http_server(port)
