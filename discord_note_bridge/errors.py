"""Error taxonomy for the note bridge.

Every error carries a ``user_message`` that is safe to show in a Discord
reply. Login and gateway failures are not modelled here; they are classified
into :class:`~discord_note_bridge.backoff.ErrorKind` instead, since they only
decide whether to retry.
"""

from __future__ import annotations


class BridgeError(Exception):
    """Base error for the note bridge."""

    def __init__(self, message: str, *, user_message: str | None = None) -> None:
        super().__init__(message)
        self.user_message = user_message or message


class ValidationError(BridgeError):
    """User input rejected before any I/O was attempted."""


class UnknownCommandError(ValidationError):
    """Command name not present in the command registry."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown command: {name!r}", user_message="Unknown command.")
        self.name = name


class NotFoundError(BridgeError):
    """A note or folder does not exist."""


class AlreadyExistsError(BridgeError):
    """A note or folder already exists; nothing was changed."""


class DocumentIOError(BridgeError):
    """Reading or writing the vault failed."""
