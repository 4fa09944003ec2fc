"""Multipart/form-data upload extraction.

The extractor is deliberately permissive: a missing or malformed boundary,
broken part framing or an unparsable ``Content-Disposition`` never fails the
request. At worst the whole body is returned as one anonymous upload, or a
part loses its declared filename. Only an unreadable body raises.
"""

import re
from dataclasses import dataclass, field
from typing import Protocol, TypeAlias
from urllib.parse import unquote

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser

from file_service.core.logger import LogIcon, logger
from file_service.models.core import UploadPart

_QUOTED_PAIR = re.compile(r"\\(.)")


class ParseError(ValueError):
    """Raised when the request body cannot be read at all."""


class Readable(Protocol):
    def read(self, size: int = -1, /) -> bytes: ...


RawBody: TypeAlias = bytes | bytearray | memoryview | str | Readable


# -----------------------------------------------------------------------------
# Header parameters
# -----------------------------------------------------------------------------


def _split_params(value: str) -> list[str]:
    """Split a header value on `;`, ignoring separators inside quoted strings."""
    segments: list[str] = []
    current: list[str] = []
    quoted = escaped = False

    for char in value:
        if escaped:
            escaped = False
        elif char == "\\" and quoted:
            escaped = True
        elif char == '"':
            quoted = not quoted
        elif char == ";" and not quoted:
            segments.append("".join(current))
            current = []
            continue
        current.append(char)

    segments.append("".join(current))
    return segments


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] == '"':
        value = _QUOTED_PAIR.sub(r"\1", value[1:-1])
    return value.strip().strip("\"'")


def parse_header_params(value: str | bytes | None) -> tuple[str, dict[str, str]]:
    """Parse `<main-value>; key=value; ...` into the lowercased main value and its parameters.

    Parameter keys are lowercased, values are unquoted and keep their case.
    When a key repeats, the first occurrence wins. Segments without `=` are skipped.
    """
    if not value:
        return "", {}
    if isinstance(value, bytes):
        value = value.decode("latin-1")

    main, *segments = _split_params(value)
    params: dict[str, str] = {}
    for segment in segments:
        key, sep, raw = segment.partition("=")
        key = key.strip().lower()
        if not sep or not key:
            continue
        params.setdefault(key, _unquote(raw))

    return main.strip().lower(), params


def decode_extended_value(value: str) -> str | None:
    """Decode an RFC 5987 `charset'language'percent-encoded` value."""
    try:
        charset, _language, encoded = value.split("'", 2)
    except ValueError:
        return None
    try:
        return unquote(encoded, encoding=charset or "utf-8", errors="strict") or None
    except (LookupError, UnicodeDecodeError):
        return None


def get_boundary(content_type: str | bytes | None) -> bytes | None:
    """Return the multipart boundary of a Content-Type header, or None when it is not usable."""
    media_type, params = parse_header_params(content_type)
    if not media_type.startswith("multipart/"):
        return None

    boundary = params.get("boundary")
    if not boundary:
        return None
    try:
        return boundary.encode("latin-1")
    except UnicodeEncodeError:
        return None


def get_filename(disposition: str | bytes | None) -> str | None:
    """Return the filename declared in a Content-Disposition value.

    `filename*` is a separate parameter and takes priority over `filename`
    when it decodes.
    """
    _, params = parse_header_params(disposition)
    if extended := params.get("filename*"):
        if decoded := decode_extended_value(extended):
            return decoded
    return params.get("filename") or None


# -----------------------------------------------------------------------------
# Multipart framing
# -----------------------------------------------------------------------------


@dataclass
class MultipartPart:
    """One part of a multipart body."""

    headers: dict[str, str] = field(default_factory=dict)
    data: bytes = b""

    @property
    def disposition(self) -> str | None:
        return self.headers.get("content-disposition")

    @property
    def name(self) -> str | None:
        return parse_header_params(self.disposition)[1].get("name") or None

    @property
    def filename(self) -> str | None:
        return get_filename(self.disposition)


class _PartCollector:
    """Collects python-multipart parser callbacks into MultipartPart objects."""

    def __init__(self) -> None:
        self.parts: list[MultipartPart] = []
        self.finished = False
        self._headers: dict[str, str] = {}
        self._header_field = bytearray()
        self._header_value = bytearray()
        self._data = bytearray()

    @property
    def callbacks(self) -> dict:
        return {
            "on_part_begin": self.on_part_begin,
            "on_header_field": self.on_header_field,
            "on_header_value": self.on_header_value,
            "on_header_end": self.on_header_end,
            "on_part_data": self.on_part_data,
            "on_part_end": self.on_part_end,
            "on_end": self.on_end,
        }

    def on_part_begin(self) -> None:
        self._headers = {}
        self._data = bytearray()

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += data[start:end]

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def on_header_end(self) -> None:
        name = self._header_field.decode("latin-1").strip().lower()
        value = self._header_value.decode("utf-8", errors="replace").strip()
        self._headers.setdefault(name, value)
        self._header_field.clear()
        self._header_value.clear()

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        self._data += data[start:end]

    def on_part_end(self) -> None:
        self.parts.append(MultipartPart(headers=self._headers, data=bytes(self._data)))

    def on_end(self) -> None:
        self.finished = True


def _delimiter_pattern(boundary: bytes) -> re.Pattern[bytes]:
    """Match a delimiter line, at the start of the body or right after a CRLF, with its transport padding."""
    return re.compile(rb"(?:\A|(?<=\r\n))--" + re.escape(boundary) + rb"(--)?[ \t]*(?=\r\n|\Z)")


def parse_multipart(body: bytes, boundary: bytes) -> list[MultipartPart] | None:
    """Split a multipart body into its parts in physical order.

    Returns None when the body is not framed by `boundary`: no opening
    delimiter, a framing error, or no closing delimiter.
    """
    delimiter = _delimiter_pattern(boundary)
    opening = delimiter.search(body)
    if opening is None:
        logger.warning("Multipart body has no opening boundary", icon=LogIcon.PARSER)
        return None

    # Preamble before the first delimiter is discarded, padding after delimiters is stripped
    framed = delimiter.sub(lambda match: b"--" + boundary + (match.group(1) or b""), body[opening.start() :])

    collector = _PartCollector()
    parser = MultipartParser(boundary, callbacks=collector.callbacks)
    try:
        parser.write(framed)
        parser.finalize()
    except MultipartParseError as ex:
        logger.warning("Malformed multipart body", icon=LogIcon.PARSER, error=str(ex))
        return None

    if not collector.finished:
        logger.warning("Multipart body has no closing boundary", icon=LogIcon.PARSER)
        return None

    return collector.parts


# -----------------------------------------------------------------------------
# Extraction
# -----------------------------------------------------------------------------


def read_body(body: RawBody) -> bytes:
    """Materialize a request body as bytes, raising ParseError when it cannot be read."""
    match body:
        case bytes():
            return body
        case bytearray() | memoryview():
            return bytes(body)
        case str():
            return body.encode("utf-8")
        case _ if callable(getattr(body, "read", None)):
            try:
                data = body.read()
            except OSError as ex:
                raise ParseError(f"Failed to read request body: {ex}") from ex
            if not isinstance(data, (bytes, bytearray)):
                raise ParseError(f"Request body stream returned {type(data).__name__}, expected bytes")
            return bytes(data)
        case _:
            raise ParseError(f"Unreadable request body of type {type(body).__name__}")


def extract_uploads(body: RawBody, content_type: str | bytes | None) -> list[UploadPart]:
    """Extract the uploaded files of a request body.

    A multipart body yields one UploadPart per part, in body order, carrying
    the filename declared in its Content-Disposition. Any other body,
    including a multipart body that cannot be split, yields a single
    anonymous UploadPart holding the whole body.
    """
    data = read_body(body)

    boundary = get_boundary(content_type)
    if boundary is None:
        return [UploadPart(data)]

    parts = parse_multipart(data, boundary)
    if parts is None:
        return [UploadPart(data)]

    logger.debug("Extracted multipart upload", icon=LogIcon.PARSER, parts=len(parts))
    return [UploadPart(part.data, part.filename) for part in parts]
