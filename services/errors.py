"""
Error taxonomy for the access control services.

- StoreUnavailableError: directory or log store cannot be reached
- ValidationFailure: a required field is missing or malformed
- ChannelFailure: one notification channel failed (never leaves the dispatcher)
"""

from typing import Optional


class AccessControlError(Exception):
    """Base class for all access control errors"""


class StoreUnavailableError(AccessControlError):
    """Raised when a backing store cannot be reached."""

    def __init__(self, store: str, detail: Optional[str] = None):
        self.store = store
        self.detail = detail
        message = f"{store} store unavailable"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ValidationFailure(AccessControlError, ValueError):
    """Raised before any side effect when an input field is rejected."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class ChannelFailure(AccessControlError):
    """Raised by a channel sender when delivery fails."""

    def __init__(self, channel: str, detail: str):
        self.channel = channel
        self.detail = detail
        super().__init__(f"{channel}: {detail}")
