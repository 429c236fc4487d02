"""Errors raised by the review scheduler."""


class InvalidStateError(ValueError):
    """A ledger entry or session violates an invariant.

    Raised before any change is applied, so the failing update never touches
    other entries or the store.
    """
