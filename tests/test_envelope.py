"""Tests for ResponseEnvelopeDecoder and RawContentCollector."""

import pytest

from flickr_rest.envelope import RawContentCollector, ResponseEnvelopeDecoder, _parse_code
from flickr_rest.errors import MalformedResponse, ProtocolFailure
from flickr_rest.models import EnvelopeStatus


def decode(body: bytes, headers: dict[str, str] | None = None, chunk_size: int | None = None):
    decoder = ResponseEnvelopeDecoder()
    decoder.apply_headers(headers or {})
    step = chunk_size or max(len(body), 1)
    for start in range(0, len(body), step):
        decoder.feed(body[start:start + step])
    return decoder.finish()


class TestEnvelopeOk:
    """Tests for stat="ok" responses."""

    def test_ok_returns_document(self) -> None:
        result = decode(b'<rsp stat="ok"><user id="1"><username>bob</username></user></rsp>')
        assert result.status is EnvelopeStatus.OK
        assert result.ok
        assert result.document is not None
        assert result.document.tag == "rsp"
        assert result.document.findtext("user/username") == "bob"

    def test_byte_at_a_time(self) -> None:
        body = b'<?xml version="1.0" encoding="utf-8" ?>\n<rsp stat="ok"><a>x</a></rsp>'
        result = decode(body, chunk_size=1)
        assert result.document.findtext("a") == "x"

    def test_total_bytes(self) -> None:
        body = b'<rsp stat="ok"/>'
        decoder = ResponseEnvelopeDecoder()
        decoder.feed(body[:5])
        decoder.feed(body[5:])
        decoder.finish()
        assert decoder.total_bytes == len(body)


class TestEnvelopeFailure:
    """Tests for stat="fail" responses."""

    def test_fail_with_code_and_message(self) -> None:
        with pytest.raises(ProtocolFailure) as exc_info:
            decode(b'<rsp stat="fail"><err code="1" msg="Not found"/></rsp>')
        assert exc_info.value.code == 1
        assert exc_info.value.message == "Not found"

    def test_first_child_used_when_no_err_element(self) -> None:
        with pytest.raises(ProtocolFailure) as exc_info:
            decode(b'<rsp stat="fail"><error code="98" msg="Invalid auth token"/></rsp>')
        assert exc_info.value.code == 98

    def test_missing_code_falls_back_to_header(self) -> None:
        with pytest.raises(ProtocolFailure) as exc_info:
            decode(
                b'<rsp stat="fail"></rsp>',
                headers={"X-FlickrErrCode": "105", "X-FlickrErrMessage": "Service unavailable"},
            )
        assert exc_info.value.code == 105
        assert exc_info.value.message == "Service unavailable"

    def test_missing_stat_is_failure(self) -> None:
        with pytest.raises(ProtocolFailure):
            decode(b"<rsp><err code='2' msg='x'/></rsp>")


class TestEnvelopeMalformed:
    """Tests for bodies that never produce a usable document."""

    def test_empty_body(self) -> None:
        with pytest.raises(MalformedResponse):
            decode(b"")

    def test_truncated_body(self) -> None:
        with pytest.raises(MalformedResponse):
            decode(b'<rsp stat="ok"><user')

    def test_not_xml(self) -> None:
        with pytest.raises(MalformedResponse):
            decode(b"<html><body>502 Bad Gateway</html>")

    def test_header_diagnostic_wins(self) -> None:
        with pytest.raises(MalformedResponse) as exc_info:
            decode(b"garbage", headers={"x-flickrerrcode": "116", "x-flickrerrmessage": "Bad URL\r\n"})
        assert exc_info.value.code == 116
        assert exc_info.value.message == "Bad URL"

    def test_parse_error_aborts_further_feeding(self) -> None:
        decoder = ResponseEnvelopeDecoder()
        decoder.feed(b"<a></b> <c/>")
        assert decoder.aborted
        consumed = decoder.total_bytes
        decoder.feed(b"more bytes")
        assert decoder.total_bytes == consumed


class TestHeaders:
    """Tests for error header capture."""

    def test_headers_case_insensitive(self) -> None:
        decoder = ResponseEnvelopeDecoder()
        decoder.apply_headers({"X-FLICKRERRCODE": "99", "x-FlickrErrMessage": "Insufficient permissions"})
        assert decoder.header_error_code == 99
        assert decoder.header_error_message == "Insufficient permissions"

    def test_other_vendor(self) -> None:
        decoder = ResponseEnvelopeDecoder(error_header_vendor="Zooomr")
        decoder.apply_headers({"X-FlickrErrCode": "1", "X-ZooomrErrCode": "7"})
        assert decoder.header_error_code == 7

    @pytest.mark.parametrize(
        "raw,expected",
        [("12", 12), (" 42abc", 42), ("-3", -3), ("abc", 0), ("", 0), (None, 0)],
    )
    def test_parse_code(self, raw, expected: int) -> None:
        assert _parse_code(raw) == expected


class TestRawContentCollector:
    """Tests for raw-content mode."""

    def test_collects_bytes(self) -> None:
        collector = RawContentCollector()
        collector.feed(b"\x89PNG")
        collector.feed(b"\r\n")
        result = collector.finish()
        assert result.ok
        assert result.content == b"\x89PNG\r\n"
        assert result.document is None
        assert collector.total_bytes == 6

    def test_never_aborts(self) -> None:
        collector = RawContentCollector()
        collector.feed(b"not xml at all <")
        assert not collector.aborted
