"""Session - builds, signs, paces, sends and decodes Flickr API calls.

Every call follows the same sequence:

    session.begin()                        # clears parameters and failure latch
    session.add("photo_id", "123")
    session.finish()                       # seals the parameter set
    session.build_and_sign("flickr.photos.getInfo")
    result = session.invoke()

Session.call() runs the whole sequence in one go. Endpoint wrappers only
use this sequence; they never touch signing or pacing.

A Session is not thread-safe. Share one between threads only behind an
external lock.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Mapping

import httpx

from flickr_rest.envelope import BodyConsumer, RawContentCollector, ResponseEnvelopeDecoder
from flickr_rest.errors import FlickrError, MissingMethod, ReservedParameter, TransportFailure
from flickr_rest.escaping import serialize_pairs
from flickr_rest.models import (
    EnvelopeStatus,
    FailureLatch,
    InvocationResult,
    LegacyCredentials,
    OAuthCredentials,
    PreparedRequest,
    SessionConfig,
)
from flickr_rest.params import ParameterSet, sort_pairs
from flickr_rest.rate_limiter import RateLimiter
from flickr_rest.signing import SignatureContext, Signer, select_signer
from flickr_rest.transport import Transport

logger = logging.getLogger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
XML_CONTENT_TYPE = "application/xml"

ErrorHandler = Callable[[str], None]


def _split_base_uri(uri: str) -> tuple[str, str]:
    """Return (base URI used for signing, prefix that parameters are appended to)."""
    if uri.endswith("?"):
        return uri[:-1], uri
    if "?" in uri:
        return uri.split("?", 1)[0], uri + "&"
    return uri, uri + "?"


class Session:
    """Long-lived handle for calling the Flickr REST API.

    Usage:
        config = SessionConfig(legacy=LegacyCredentials(api_key=KEY, shared_secret=SECRET))
        with Session(config) as session:
            result = session.call("flickr.test.echo", {"name": "value"})
            print(result.document.find("name").text)
    """

    def __init__(
        self,
        config: SessionConfig | None = None,
        http_transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the session.

        Args:
            config: Credentials, pacing and transport settings. Defaults
                to an unconfigured session (set credentials before calling).
            http_transport: Replacement httpx transport, for tests.
        """
        self._config = config or SessionConfig()
        self._signer: Signer = select_signer(self._config)
        self._limiter = RateLimiter(self._config.request_delay_ms)
        self._transport = Transport(
            timeout=self._config.timeout,
            proxy=self._config.proxy,
            user_agent=self._config.user_agent,
            http_accept=self._config.http_accept,
            http_transport=http_transport,
        )
        self._params = ParameterSet()
        self._latch = FailureLatch()
        self._is_write = False
        self._data: bytes | None = None
        self._prepared: PreparedRequest | None = None
        self._signature_context: SignatureContext | None = None
        self._method_name: str | None = None
        self._error_handler: ErrorHandler | None = None
        self.total_bytes = 0

    def __enter__(self) -> "Session":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._transport.close()

    # -------------------------------------------------------------------------
    # State inspection
    # -------------------------------------------------------------------------

    @property
    def config(self) -> SessionConfig:
        return self._config

    @property
    def signer(self) -> Signer:
        return self._signer

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._limiter

    @property
    def parameters(self) -> ParameterSet:
        return self._params

    @property
    def prepared(self) -> PreparedRequest | None:
        """The request produced by the last successful build_and_sign()."""
        return self._prepared

    @property
    def signature_context(self) -> SignatureContext | None:
        return self._signature_context

    @property
    def latch(self) -> FailureLatch:
        return self._latch

    @property
    def failed(self) -> bool:
        return self._latch.failed

    @property
    def error_code(self) -> int:
        return self._latch.error_code

    @property
    def error_message(self) -> str | None:
        return self._latch.error_message

    @property
    def status_code(self) -> int | None:
        return self._latch.status_code

    # -------------------------------------------------------------------------
    # Configuration setters
    # -------------------------------------------------------------------------

    def _reconfigure(self, **changes: Any) -> None:
        self._config = self._config.model_copy(update=changes)
        self._signer = select_signer(self._config)

    def _update_legacy(self, **changes: Any) -> None:
        legacy = self._config.legacy or LegacyCredentials()
        self._reconfigure(legacy=legacy.model_copy(update=changes))

    def set_api_key(self, api_key: str) -> None:
        self._update_legacy(api_key=api_key)

    def set_shared_secret(self, shared_secret: str) -> None:
        self._update_legacy(shared_secret=shared_secret)

    def set_auth_token(self, auth_token: str | None) -> None:
        self._update_legacy(auth_token=auth_token)

    def set_oauth_credentials(self, credentials: OAuthCredentials | None) -> None:
        """Install (or with None, remove) OAuth credentials."""
        self._reconfigure(oauth=credentials)

    def set_request_delay(self, delay_ms: int) -> None:
        """Set the minimum delay between request starts. Negative values are ignored."""
        if delay_ms >= 0:
            self._reconfigure(request_delay_ms=delay_ms)
            self._limiter.min_delay_ms = delay_ms

    def set_user_agent(self, user_agent: str | None) -> None:
        self._reconfigure(user_agent=user_agent)
        self._transport.configure(user_agent=user_agent)

    def set_proxy(self, proxy: str | None) -> None:
        self._reconfigure(proxy=proxy)
        self._transport.configure(proxy=proxy)

    def set_http_accept(self, http_accept: str | None) -> None:
        self._reconfigure(http_accept=http_accept)
        self._transport.configure(http_accept=http_accept)

    def set_error_handler(self, handler: ErrorHandler | None) -> None:
        """Register a callback that receives the message of every failure."""
        self._error_handler = handler

    # -------------------------------------------------------------------------
    # Failure handling
    # -------------------------------------------------------------------------

    def _record_failure(self, error: FlickrError) -> str:
        """Latch *error*, log it and notify the error handler."""
        self._latch.failed = True
        self._latch.error_code = error.code
        self._latch.error_message = error.message
        if isinstance(error, TransportFailure) and error.status_code is not None:
            self._latch.status_code = error.status_code

        if self._method_name:
            text = f"Method {self._method_name} failed with error {error.code} - {error.message}"
        else:
            text = f"Call failed with error {error.code} - {error.message}"
        logger.warning(text)

        if self._error_handler is not None:
            try:
                self._error_handler(text)
            except Exception:
                logger.exception("Error handler raised while reporting: %s", text)
        return text

    def _fail(self, error: FlickrError) -> None:
        self._record_failure(error)
        if self._config.raise_on_failure:
            raise error

    # -------------------------------------------------------------------------
    # Building
    # -------------------------------------------------------------------------

    def begin(self, is_write: bool = False) -> ParameterSet:
        """Start a new call: clear parameters, failure state and any body.

        Args:
            is_write: True for calls that must be sent as POST.

        Returns:
            The (now empty) parameter set.
        """
        self._params.clear()
        self._latch.clear()
        self._is_write = is_write
        self._data = None
        self._prepared = None
        self._signature_context = None
        self._method_name = None
        return self._params

    def add(self, key: str, value: str | int | None) -> None:
        self._params.add(key, value)

    def add_all(self, params: Mapping[str, Any] | Iterable[tuple[str, Any]]) -> None:
        items = params.items() if isinstance(params, Mapping) else params
        for key, value in items:
            self._params.add(key, value)

    def finish(self) -> None:
        self._params.finish()

    def set_data(self, data: bytes) -> None:
        """Attach an XML request body. The call becomes a POST."""
        self._data = data
        self._is_write = True

    def build_and_sign(self, method_name: str | None) -> PreparedRequest | None:
        """Sign the current parameters for a REST call.

        Appends method, the scheme's credential parameters and finally the
        signature, then serializes everything into the request target.
        No I/O happens here.

        Returns:
            The prepared request, or None on failure when raise_on_failure
            is disabled.

        Raises:
            MissingMethod: method_name is empty.
            MissingCredential: The active scheme lacks a key or secret.
            SignatureComputationFailed: The digest could not be computed.
        """
        if not method_name:
            self._fail(MissingMethod("No method to prepare"))
            return None
        return self._prepare(self._config.service_uri, method_name)

    def prepare_upload(
        self,
        upload_field: str,
        upload_path: str,
        url: str | None = None,
    ) -> PreparedRequest | None:
        """Sign the current parameters for a multipart upload.

        Args:
            upload_field: Form field name for the file (e.g. "photo").
            upload_path: Path of the file to send.
            url: Upload endpoint; defaults to the configured upload_uri.
        """
        if not upload_field or not upload_path:
            self._fail(FlickrError("Upload needs both a field name and a file path"))
            return None
        return self._prepare(
            url or self._config.upload_uri, None,
            upload_field=upload_field, upload_path=upload_path,
        )

    def _prepare(
        self,
        uri: str,
        method_name: str | None,
        upload_field: str | None = None,
        upload_path: str | None = None,
    ) -> PreparedRequest | None:
        self._method_name = method_name
        self._prepared = None
        if not self._params.sealed:
            self._params.finish()

        try:
            self._signer.validate()

            pairs = self._params.pairs()
            protocol = self._signer.protocol_pairs()
            reserved = {self._signer.signature_name, "method"}
            reserved.update(name for name, _ in protocol)
            for name, _ in pairs:
                if name in reserved:
                    raise ReservedParameter(f"Parameter '{name}' is set by the request builder")
            if method_name:
                pairs.append(("method", method_name))
            pairs.extend(protocol)
            pairs = sort_pairs(pairs)

            is_post = self._is_write or self._data is not None or upload_field is not None
            base_uri, target_prefix = _split_base_uri(uri)
            context = SignatureContext(
                http_method="POST" if is_post else "GET",
                base_uri=base_uri,
                parameters=pairs,
            )
            signature = self._signer.sign(context)
        except FlickrError as e:
            self._fail(e)
            return None

        signed = pairs + [(self._signer.signature_name, signature)]
        encoded = serialize_pairs(signed, self._signer.unescaped_keys)

        prepared = PreparedRequest(
            http_method=context.http_method,
            url=target_prefix + encoded,
            base_uri=base_uri,
            parameters=signed,
            method_name=method_name,
        )
        if upload_field is not None:
            prepared.url = uri
            prepared.upload_field = upload_field
            prepared.upload_path = upload_path
        elif self._data is not None:
            prepared.body = self._data
            prepared.content_type = XML_CONTENT_TYPE
        elif self._is_write:
            prepared.url = uri
            prepared.body = encoded.encode("ascii")
            prepared.content_type = FORM_CONTENT_TYPE

        logger.debug("URI is '%s'", prepared.url)
        self._signature_context = context
        self._prepared = prepared
        return prepared

    # -------------------------------------------------------------------------
    # Invocation
    # -------------------------------------------------------------------------

    def invoke(self, raw: bool = False) -> InvocationResult:
        """Send the prepared request and decode the response.

        Args:
            raw: Return the body bytes instead of parsing the XML envelope.

        Returns:
            InvocationResult. On failure with raise_on_failure disabled the
            status is FAILED and neither document nor content is set.

        Raises:
            MissingMethod: Nothing was prepared.
            TransportFailure, MalformedResponse, ProtocolFailure.
        """
        prepared = self._prepared
        if prepared is None:
            return self._failed_result(MissingMethod("No Flickr URI prepared to invoke"))

        vendor = self._config.error_header_vendor
        consumer: BodyConsumer = (
            RawContentCollector(vendor) if raw else ResponseEnvelopeDecoder(vendor)
        )

        self._limiter.await_next_slot()
        try:
            status = self._transport.execute(prepared, consumer)
            self._latch.status_code = status
            result = consumer.finish()
        except FlickrError as e:
            return self._failed_result(e)
        finally:
            self.total_bytes = consumer.total_bytes

        result.status_code = status
        logger.debug("Got %d bytes content from URI '%s'", self.total_bytes, prepared.url)
        return result

    def _failed_result(self, error: FlickrError) -> InvocationResult:
        self._fail(error)
        return InvocationResult(
            status=EnvelopeStatus.FAILED,
            error_code=self._latch.error_code,
            error_message=self._latch.error_message,
            status_code=self._latch.status_code,
        )

    def call(
        self,
        method_name: str,
        params: Mapping[str, Any] | Iterable[tuple[str, Any]] | None = None,
        is_write: bool = False,
        raw: bool = False,
    ) -> InvocationResult:
        """Run begin/add/finish/build_and_sign/invoke for one call."""
        self.begin(is_write=is_write)
        if params is not None:
            self.add_all(params)
        self.finish()
        if self.build_and_sign(method_name) is None:
            return InvocationResult(
                status=EnvelopeStatus.FAILED,
                error_code=self._latch.error_code,
                error_message=self._latch.error_message,
            )
        return self.invoke(raw=raw)
