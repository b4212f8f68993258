"""Error taxonomy shared by the dotforge engine and CLI."""

from __future__ import annotations

from pathlib import Path


class ForgeError(RuntimeError):
    """Base class for every failure dotforge reports to the user.

    ``path`` names the file the failure concerns and ``hint`` carries the
    suggested remedy printed under the error message.
    """

    def __init__(self, message: str, *, path: Path | None = None, hint: str | None = None) -> None:
        super().__init__(message)
        self.path = path
        self.hint = hint


class NotFound(ForgeError):
    """A source, target, record or managed folder is missing."""


class AlreadyExists(ForgeError):
    """A staging or link target collides with an existing file or record."""


class ValidationFailed(ForgeError):
    """The managed copy does not match the original after copying."""


class PreconditionFailed(ForgeError):
    """The operation cannot start in the current state."""


class IoFailure(ForgeError):
    """An underlying filesystem or database call failed."""


class CorruptRecordError(IoFailure):
    """A stored registry row cannot be parsed."""


class UserDeclined(ForgeError):
    """The user refused a confirmation prompt."""
