"""Response body consumers: the XML envelope decoder and the raw collector.

The transport pushes body chunks into a consumer as they arrive. The XML
decoder feeds them to an incremental ElementTree parser, so parsing overlaps
the download. When the body is complete, finish() checks the envelope:

    <rsp stat="ok">...</rsp>
    <rsp stat="fail"><err code="1" msg="Not found"/></rsp>

X-<Vendor>ErrCode / X-<Vendor>ErrMessage response headers are captured
before the body and used as the diagnostic when the body never gets far
enough to say anything itself.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from typing import Mapping

from flickr_rest.errors import MalformedResponse, ProtocolFailure
from flickr_rest.models import EnvelopeStatus, InvocationResult

logger = logging.getLogger(__name__)


def _parse_code(value: str | None) -> int:
    """Leading integer of *value*, or 0 (same leniency as C atoi)."""
    if not value:
        return 0
    value = value.strip()
    end = 0
    if value[:1] in ("-", "+"):
        end = 1
    while end < len(value) and value[end].isdigit():
        end += 1
    try:
        return int(value[:end])
    except ValueError:
        return 0


class BodyConsumer:
    """Receives response headers and body chunks from the transport."""

    def __init__(self, error_header_vendor: str = "Flickr") -> None:
        self._code_header = f"x-{error_header_vendor.lower()}errcode"
        self._message_header = f"x-{error_header_vendor.lower()}errmessage"
        self.header_error_code = 0
        self.header_error_message: str | None = None
        self.total_bytes = 0

    @property
    def aborted(self) -> bool:
        """True when further body bytes are useless; the transport stops reading."""
        return False

    def apply_headers(self, headers: Mapping[str, str]) -> None:
        for name, value in headers.items():
            name_lower = name.lower()
            if name_lower == self._code_header:
                self.header_error_code = _parse_code(value)
            elif name_lower == self._message_header:
                self.header_error_message = value.rstrip("\r\n")

    def feed(self, chunk: bytes) -> None:
        raise NotImplementedError

    def finish(self) -> InvocationResult:
        raise NotImplementedError


class RawContentCollector(BodyConsumer):
    """Buffers the body as bytes, for calls whose payload is not XML."""

    def __init__(self, error_header_vendor: str = "Flickr") -> None:
        super().__init__(error_header_vendor)
        self._buffer = bytearray()

    def feed(self, chunk: bytes) -> None:
        self.total_bytes += len(chunk)
        self._buffer.extend(chunk)

    def finish(self) -> InvocationResult:
        return InvocationResult(status=EnvelopeStatus.OK, content=bytes(self._buffer))


class ResponseEnvelopeDecoder(BodyConsumer):
    """Incrementally parses an XML response and decodes its stat envelope.

    Usage:
        decoder = ResponseEnvelopeDecoder()
        decoder.apply_headers(response.headers)
        for chunk in response.iter_bytes():
            decoder.feed(chunk)
        result = decoder.finish()   # raises ProtocolFailure / MalformedResponse
    """

    def __init__(self, error_header_vendor: str = "Flickr") -> None:
        super().__init__(error_header_vendor)
        self._parser = ET.XMLPullParser(events=("start",))
        self._root: ET.Element | None = None
        self._parse_error: str | None = None

    @property
    def aborted(self) -> bool:
        return self._parse_error is not None

    def feed(self, chunk: bytes) -> None:
        if self._parse_error is not None:
            return
        self.total_bytes += len(chunk)
        try:
            self._parser.feed(chunk)
            self._read_events()
        except ET.ParseError as e:
            self._parse_error = f"XML parsing failed: {e}"
            logger.debug("Aborting body parse after %d bytes: %s", self.total_bytes, e)

    def _read_events(self) -> None:
        for _event, element in self._parser.read_events():
            if self._root is None:
                self._root = element

    def _malformed(self, message: str) -> MalformedResponse:
        # Header diagnostics win over the generic parse message
        if self.header_error_code or self.header_error_message:
            return MalformedResponse(
                self.header_error_message or message, code=self.header_error_code
            )
        return MalformedResponse(message)

    def finish(self) -> InvocationResult:
        """Flush the parser and decode the envelope.

        Returns:
            InvocationResult with status OK and the root element.

        Raises:
            MalformedResponse: Body is not well-formed XML or has no root.
            ProtocolFailure: Root stat attribute is not "ok".
        """
        if self._parse_error is None:
            try:
                self._parser.close()
                self._read_events()
            except ET.ParseError as e:
                self._parse_error = f"XML parsing failed: {e}"

        if self._parse_error is not None:
            raise self._malformed(self._parse_error)

        root = self._root
        if root is None:
            raise self._malformed("Failed to parse XML: no root element")

        stat = root.get("stat")
        logger.debug("Request returned stat '%s'", stat)
        if stat == "ok":
            return InvocationResult(status=EnvelopeStatus.OK, document=root)

        code = 0
        message: str | None = None
        error_element = root.find("err")
        if error_element is None:
            error_element = next(iter(root), None)
        if error_element is not None:
            code = _parse_code(error_element.get("code"))
            message = error_element.get("msg")

        if not code:
            code = self.header_error_code
        if message is None:
            message = self.header_error_message or f"Response status '{stat}'"
        raise ProtocolFailure(message, code=code)
