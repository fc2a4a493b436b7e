"""Error taxonomy for the request pipeline.

Every failure is written to the Session failure latch before one of these
is raised, so callers that disable ``raise_on_failure`` still see the same
code and message on the session.
"""

from __future__ import annotations


class FlickrError(Exception):
    """Base class for all pipeline errors.

    Attributes:
        code: Numeric error code (0 when the failure has no server code).
        message: Human-readable description.
    """

    def __init__(self, message: str, code: int = 0) -> None:
        super().__init__(message)
        self.message = message
        self.code = code

    def __str__(self) -> str:
        if self.code:
            return f"[err {self.code}] {self.message}"
        return self.message


class MissingMethod(FlickrError):
    """Raised when a REST call is prepared without a method name."""


class MissingCredential(FlickrError):
    """Raised when the active scheme lacks a required key or secret."""


class SignatureComputationFailed(FlickrError):
    """Raised when a digest cannot be computed. Never retried."""


class ParameterSetSealed(FlickrError):
    """Raised when a parameter is added after finish()."""


class ReservedParameter(FlickrError):
    """Raised when a caller parameter reuses a name the signer or request builder sets."""


class TransportFailure(FlickrError):
    """Raised on connection, TLS, timeout or non-2xx HTTP failures."""

    def __init__(self, message: str, code: int = 0, status_code: int | None = None) -> None:
        super().__init__(message, code)
        self.status_code = status_code


class MalformedResponse(FlickrError):
    """Raised when the body does not parse or has no root element."""


class ProtocolFailure(FlickrError):
    """Raised when a well-formed response carries a non-"ok" status."""
