"""Exception types shared by the parsers, the feed client and the analytics engine."""

from __future__ import annotations


class AlphaVaultError(Exception):
    """Base class for every error raised by this package."""


class DocumentTooShort(AlphaVaultError):
    """Filing text is below the minimum length a parser will accept.

    Parsers catch this themselves and return a ``ParseFailure``;
    it only escapes when a caller invokes the precondition check directly.
    """

    def __init__(self, length: int, minimum: int, form_type: str = ""):
        self.length = length
        self.minimum = minimum
        self.form_type = form_type
        label = f"{form_type} " if form_type else ""
        super().__init__(
            f"{label}document too short or invalid ({length} chars, need {minimum})"
        )


class UpstreamFetchFailure(AlphaVaultError):
    """A call to the filing feed failed (network, HTTP status, bad payload)."""

    def __init__(self, endpoint: str, reason: str):
        self.endpoint = endpoint
        self.reason = reason
        super().__init__(f"{endpoint}: {reason}")
