"""Pytest configuration and fixtures for flickr-rest tests.

This file provides:
- RecordingHandler: httpx.MockTransport handler that replays canned
  responses and records every request it sees
- Fixtures: legacy and OAuth configs, sessions wired to the mock transport
"""

from __future__ import annotations

from typing import Generator

import httpx
import pytest

from flickr_rest.models import LegacyCredentials, OAuthCredentials, SessionConfig
from flickr_rest.session import Session

API_KEY = "0123456789abcdef0123456789abcdef"
SHARED_SECRET = "fedcba9876543210"
AUTH_TOKEN = "1234567-8901234567890123"

OK_BODY = b'<?xml version="1.0" encoding="utf-8" ?>\n<rsp stat="ok"></rsp>\n'


def rsp_ok(inner: str = "") -> bytes:
    """Build a stat="ok" envelope around *inner* XML."""
    return f'<?xml version="1.0" encoding="utf-8" ?>\n<rsp stat="ok">{inner}</rsp>\n'.encode()


def rsp_fail(code: int, message: str) -> bytes:
    """Build a stat="fail" envelope with one err element."""
    return (
        '<?xml version="1.0" encoding="utf-8" ?>\n'
        f'<rsp stat="fail"><err code="{code}" msg="{message}" /></rsp>\n'
    ).encode()


class RecordingHandler:
    """Replays queued responses and keeps the requests that were sent.

    When the queue runs dry the last response is repeated.
    """

    def __init__(self, *responses: httpx.Response | bytes) -> None:
        self.responses = [
            r if isinstance(r, httpx.Response) else httpx.Response(200, content=r)
            for r in responses
        ] or [httpx.Response(200, content=OK_BODY)]
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        canned = self.responses[min(len(self.requests), len(self.responses)) - 1]
        # A Response body can only be streamed once, so hand out a copy
        return httpx.Response(canned.status_code, headers=canned.headers, content=canned.content)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture
def legacy_config() -> SessionConfig:
    """Legacy credentials with pacing disabled."""
    return SessionConfig(
        legacy=LegacyCredentials(api_key=API_KEY, shared_secret=SHARED_SECRET),
        request_delay_ms=0,
    )


@pytest.fixture
def oauth_config() -> SessionConfig:
    """OAuth credentials with a pinned nonce and timestamp."""
    return SessionConfig(
        oauth=OAuthCredentials(
            consumer_key="653e7a6ecc1d528c516cc8f92cf98611",
            consumer_secret="a9567d986a7539fe",
            token="72157626737672178-022bbd2f4c2f3432",
            token_secret="fccb68c4e6103197",
            nonce="95613465",
            timestamp=1305586162,
        ),
        request_delay_ms=0,
    )


@pytest.fixture
def handler() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture
def session(
    legacy_config: SessionConfig, handler: RecordingHandler
) -> Generator[Session, None, None]:
    """Legacy-credential session whose HTTP traffic goes to *handler*."""
    s = Session(legacy_config, http_transport=httpx.MockTransport(handler))
    try:
        yield s
    finally:
        s.close()
