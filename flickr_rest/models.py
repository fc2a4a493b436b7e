"""Data models for flickr-rest.

Configuration and credentials use Pydantic v2. Per-call state (failure
latch, invocation results) uses plain dataclasses since it holds parsed
ElementTree elements and is mutated in place.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


DEFAULT_SERVICE_URI = "https://api.flickr.com/services/rest/"
DEFAULT_UPLOAD_URI = "https://up.flickr.com/services/upload/"
DEFAULT_REQUEST_DELAY_MS = 1000


# =============================================================================
# Credentials
# =============================================================================


class LegacyCredentials(BaseModel):
    """Shared-secret credentials for the MD5 checksum scheme.

    Fields are optional so that a half-configured session can be built and
    the missing piece reported at signing time as MissingCredential.
    """

    model_config = ConfigDict(extra="forbid")

    api_key: str | None = Field(default=None, description="API key")
    shared_secret: str | None = Field(default=None, description="Shared secret used in the checksum")
    auth_token: str | None = Field(default=None, description="Authentication token (optional)")


class OAuthCredentials(BaseModel):
    """OAuth 1.0a-shaped credentials for the HMAC-SHA1 scheme.

    nonce and timestamp are normally generated per call. Setting them pins
    the values, which is only useful for reproducible signatures in tests.
    """

    model_config = ConfigDict(extra="forbid")

    consumer_key: str | None = Field(default=None, description="OAuth client (consumer) key")
    consumer_secret: str | None = Field(default=None, description="OAuth client (consumer) secret")
    token: str | None = Field(default=None, description="OAuth access or request token")
    token_secret: str | None = Field(default=None, description="Secret paired with token")
    verifier: str | None = Field(default=None, description="oauth_verifier value")
    callback: str | None = Field(default=None, description="oauth_callback value")
    nonce: str | None = Field(default=None, description="Fixed nonce (tests only)")
    timestamp: int | None = Field(default=None, description="Fixed timestamp (tests only)")

    def is_configured(self) -> bool:
        """True when any consumer field is populated."""
        return bool(self.consumer_key or self.consumer_secret)


# =============================================================================
# Session configuration
# =============================================================================


class SessionConfig(BaseModel):
    """Everything a Session needs from the config file or the caller."""

    model_config = ConfigDict(extra="forbid")

    legacy: LegacyCredentials | None = Field(default=None, description="Legacy scheme credentials")
    oauth: OAuthCredentials | None = Field(default=None, description="OAuth scheme credentials")
    request_delay_ms: int = Field(
        default=DEFAULT_REQUEST_DELAY_MS, ge=0,
        description="Minimum delay between request starts, in milliseconds",
    )
    proxy: str | None = Field(default=None, description="HTTP proxy URL")
    user_agent: str | None = Field(default=None, description="User-Agent header value")
    http_accept: str | None = Field(default=None, description="Accept header value")
    timeout: float = Field(default=30.0, gt=0, description="Transport timeout in seconds")
    service_uri: str = Field(default=DEFAULT_SERVICE_URI, description="REST endpoint")
    upload_uri: str = Field(default=DEFAULT_UPLOAD_URI, description="Upload endpoint")
    sig_key: str = Field(default="api_sig", min_length=1, description="Legacy signature parameter name")
    error_header_vendor: str = Field(
        default="Flickr", description="Vendor part of X-<Vendor>ErrCode / X-<Vendor>ErrMessage"
    )
    raise_on_failure: bool = Field(
        default=True, description="Raise FlickrError subclasses in addition to latching failures"
    )


# =============================================================================
# Per-call state
# =============================================================================


class EnvelopeStatus(str, Enum):
    """Envelope status of one invocation."""

    OK = "ok"
    FAILED = "failed"


@dataclass
class FailureLatch:
    """Failure state of the most recent call on a Session.

    Set on failure; cleared only when the next call begins.
    """

    failed: bool = False
    error_code: int = 0
    error_message: str | None = None
    status_code: int | None = None

    def clear(self) -> None:
        self.failed = False
        self.error_code = 0
        self.error_message = None
        self.status_code = None


@dataclass
class PreparedRequest:
    """A signed request, ready for the transport.

    GET calls carry every parameter in url. POST calls carry them in body
    (form-encoded), except XML-data calls which keep them in url and send
    the XML as body, and upload calls which send parameters plus one file
    as multipart.
    """

    http_method: str
    url: str
    base_uri: str
    parameters: list[tuple[str, str]]
    body: bytes | None = None
    content_type: str | None = None
    upload_field: str | None = None
    upload_path: str | None = None
    method_name: str | None = None

    @property
    def is_upload(self) -> bool:
        return self.upload_field is not None


@dataclass
class InvocationResult:
    """Outcome of one invoke().

    document is the parsed root element for XML calls; content holds the
    raw body for raw-content calls. Both are None on failure.
    """

    status: EnvelopeStatus
    document: ET.Element | None = None
    content: bytes | None = None
    error_code: int = 0
    error_message: str | None = None
    status_code: int | None = None

    @property
    def ok(self) -> bool:
        return self.status is EnvelopeStatus.OK
