from __future__ import annotations

from typing import Optional


class DomovitaError(RuntimeError):
    """Base class for every failure raised by the domovita client."""


class TransportError(DomovitaError):
    """Connection, DNS or TLS failure reported by the HTTP transport."""


class UnexpectedStatus(DomovitaError):
    def __init__(
        self,
        url: str,
        status: int,
        expected: int,
        step: Optional[str] = None,
        detail: str = "",
        message: Optional[str] = None,
    ) -> None:
        self.url = url
        self.status = status
        self.expected = expected
        self.step = step
        self.detail = detail
        if message is None:
            message = f"Error loading page: {url}"
        text = f"{message} ({status}, expected {expected})"
        if detail:
            text = f"{text}: {detail}"
        super().__init__(text)


class ScrapeError(DomovitaError):
    """Expected markup was not found in a response body."""


class LoginError(UnexpectedStatus):
    """One of the two login POSTs was rejected; ``step`` tells which."""


class NotAuthenticatedError(DomovitaError):
    pass


class InvalidInput(DomovitaError, ValueError):
    pass


class UploadError(UnexpectedStatus):
    pass
