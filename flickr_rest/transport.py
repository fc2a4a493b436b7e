"""Transport - performs the HTTP exchange for a prepared request.

Response bytes are handed to a BodyConsumer chunk by chunk as httpx
delivers them; nothing is buffered here. Connection, TLS and timeout
errors and non-2xx statuses become TransportFailure.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import httpx

from flickr_rest.envelope import BodyConsumer
from flickr_rest.errors import TransportFailure
from flickr_rest.models import PreparedRequest

logger = logging.getLogger(__name__)


class Transport:
    """Owns one httpx.Client and streams responses into consumers.

    Settings changed through configure() take effect on the next execute();
    the client is rebuilt lazily.

    Usage:
        transport = Transport(timeout=10.0, user_agent="my-app/1.0")
        try:
            status = transport.execute(prepared, decoder)
        finally:
            transport.close()
    """

    def __init__(
        self,
        timeout: float = 30.0,
        proxy: str | None = None,
        user_agent: str | None = None,
        http_accept: str | None = None,
        http_transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            timeout: Timeout in seconds for connect, read and write.
            proxy: Proxy URL, e.g. "http://proxy.example:3128".
            user_agent: User-Agent header value.
            http_accept: Accept header value.
            http_transport: Replacement httpx transport (tests use
                httpx.MockTransport).
        """
        self._timeout = timeout
        self._proxy = proxy
        self._user_agent = user_agent
        self._http_accept = http_accept
        self._http_transport = http_transport
        self._client: httpx.Client | None = None

    def __enter__(self) -> "Transport":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.close()

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def configure(self, **settings: Any) -> None:
        """Update timeout, proxy, user_agent or http_accept."""
        for name, value in settings.items():
            if name not in ("timeout", "proxy", "user_agent", "http_accept"):
                raise TypeError(f"Unknown transport setting '{name}'")
            setattr(self, f"_{name}", value)
        self.close()

    def _build_client_kwargs(self) -> dict[str, Any]:
        headers: dict[str, str] = {}
        if self._user_agent:
            headers["User-Agent"] = self._user_agent
        if self._http_accept:
            headers["Accept"] = self._http_accept

        kwargs: dict[str, Any] = {
            "headers": headers,
            "timeout": self._timeout,
            "follow_redirects": True,
        }
        if self._proxy:
            kwargs["proxy"] = self._proxy
        if self._http_transport is not None:
            kwargs["transport"] = self._http_transport
        return kwargs

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(**self._build_client_kwargs())
        return self._client

    def execute(self, request: PreparedRequest, consumer: BodyConsumer) -> int:
        """Send *request* and stream the body into *consumer*.

        Returns:
            The HTTP status code (always 2xx).

        Raises:
            TransportFailure: Network-level failure or non-2xx status.
        """
        client = self._get_client()
        logger.debug("Resolving URI '%s' with method %s", request.url, request.http_method)

        try:
            if request.is_upload:
                status = self._execute_upload(client, request, consumer)
            else:
                headers = {"Content-Type": request.content_type} if request.content_type else None
                status = self._stream(
                    client, consumer, request.http_method, request.url,
                    content=request.body, headers=headers,
                )
        except httpx.TimeoutException as e:
            raise TransportFailure(f"Request timeout: {e}") from e
        except httpx.ConnectError as e:
            raise TransportFailure(f"Connection error: {e}") from e
        except httpx.HTTPError as e:
            raise TransportFailure(f"Request error: {e}") from e

        if not 200 <= status < 300:
            message = consumer.header_error_message or f"HTTP status {status}"
            raise TransportFailure(
                f"{message} (HTTP {status})",
                code=consumer.header_error_code,
                status_code=status,
            )
        return status

    def _execute_upload(
        self, client: httpx.Client, request: PreparedRequest, consumer: BodyConsumer
    ) -> int:
        path = request.upload_path or ""
        try:
            fh = open(path, "rb")
        except OSError as e:
            raise TransportFailure(f"Cannot read upload file '{path}': {e}") from e
        with fh:
            files = {request.upload_field: (os.path.basename(path), fh)}
            return self._stream(
                client, consumer, "POST", request.url,
                data=dict(request.parameters), files=files,
            )

    @staticmethod
    def _stream(
        client: httpx.Client,
        consumer: BodyConsumer,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> int:
        """Run one streamed exchange; only 2xx bodies reach the consumer."""
        with client.stream(method, url, **kwargs) as response:
            consumer.apply_headers(response.headers)
            if response.is_success:
                for chunk in response.iter_bytes():
                    consumer.feed(chunk)
                    if consumer.aborted:
                        break
            return response.status_code
