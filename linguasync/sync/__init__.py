"""Change tracking: which source fields still need syncing, per language."""

from linguasync.sync.ledger import PendingEntry, PendingLedger, content_field_name
from linguasync.sync.tracker import ABSENT, UNKNOWN, ChangeTracker, strictly_equal

__all__ = [
    "PendingEntry",
    "PendingLedger",
    "content_field_name",
    "ABSENT",
    "UNKNOWN",
    "ChangeTracker",
    "strictly_equal",
]
