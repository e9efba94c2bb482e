"""Third-party integrations."""

from linguasync.integrations.sentry import (
    capture_exception,
    capture_message,
    init_sentry,
    set_tag,
)

__all__ = [
    "capture_exception",
    "capture_message",
    "init_sentry",
    "set_tag",
]
