"""Media types, body parser contracts and the parser registry.

A ParserRegistry maps media-type patterns (``type/subtype``, ``type/*`` or
``*/*``) to parser instances. Lookups try the exact type first, then the
``type/*`` wildcard, then ``*/*``.
"""

from __future__ import annotations

import logging
import sys
from enum import Enum
from threading import Lock
from typing import TYPE_CHECKING, Any, Generic, Protocol, TypeVar

if TYPE_CHECKING:
    from rested.request import Request
    from rested.response import Response

logger = logging.getLogger(__name__)

HEADER_CONTENT_TYPE = "Content-Type"
CHARSET_PREFIX = "charset="
MEDIA_TYPE_ANY = "*/*"
DEFAULT_CHARSET = sys.getdefaultencoding()


class MediaType:
    """Common media type strings for endpoint and body declarations."""

    AAC = "audio/aac"
    APNG = "image/apng"
    AVIF = "image/avif"
    BINARY = "application/octet-stream"
    BMP = "image/bmp"
    BZIP = "application/x-bzip"
    BZIP2 = "application/x-bzip2"
    CSS = "text/css"
    CSV = "text/csv"
    EPUB = "application/epub+zip"
    FORM = "application/x-www-form-urlencoded"
    GIF = "image/gif"
    GZIP = "application/gzip"
    HTML = "text/html"
    CALENDAR = "text/calendar"
    JPEG = "image/jpeg"
    JS = "text/javascript"
    JSON = "application/json"
    JSONLD = "application/ld+json"
    MIDI = "audio/midi"
    MP4 = "video/mp4"
    MPEG_AUDIO = "audio/mpeg"
    MPEG_VIDEO = "video/mpeg"
    OGG = "application/ogg"
    OGG_AUDIO = "audio/ogg"
    OGG_VIDEO = "video/ogg"
    OPUS = "audio/opus"
    OTF = "font/otf"
    PDF = "application/pdf"
    PNG = "image/png"
    RTF = "application/rtf"
    SVG = "image/svg+xml"
    TEXT = "text/plain"
    TIF = "image/tiff"
    WAV = "audio/wav"
    WEBM = "video/webm"
    WEBP = "image/webp"
    WOFF = "font/woff"
    WOFF2 = "font/woff2"
    XHTML = "application/xhtml+xml"
    XML = "application/xml"
    XML_TEXT = "text/xml"
    ZIP = "application/zip"
    ANY = MEDIA_TYPE_ANY


def parse_content_type(content_type: str | None) -> tuple[str, str]:
    """Split a Content-Type value into (media_type, charset).

    The media type is the first ``;`` segment, trimmed. The charset is the
    text after ``charset=`` in the remainder, trimmed. Missing parts fall back
    to ``*/*`` and DEFAULT_CHARSET.

    Examples:
        >>> parse_content_type("application/json; charset=UTF-8")
        ('application/json', 'UTF-8')
        >>> parse_content_type(None)
        ('*/*', 'utf-8')
    """
    if content_type is None:
        return MEDIA_TYPE_ANY, DEFAULT_CHARSET
    media_type, _, parameters = content_type.partition(";")
    charset = DEFAULT_CHARSET
    index = parameters.find(CHARSET_PREFIX)
    if index >= 0:
        charset = parameters[index + len(CHARSET_PREFIX):].strip() or DEFAULT_CHARSET
    return media_type.strip(), charset


# =============================================================================
# Parser contracts
# =============================================================================


class RequestBodyParser(Protocol):
    """Turns a body object into bytes for a request."""

    def encode(self, body: Any, media_type: str, charset: str) -> bytes | None:
        """Encode body as media_type using charset.

        Args:
            body: The object passed as the endpoint's body argument. Never None.
            media_type: Media type the result must be formatted as.
            charset: Charset for the byte encoding.

        Returns:
            The encoded body, or None to send no body at all.
        """
        ...


class ResponseBodyParser(Protocol):
    """Turns a response body into an object of the requested type."""

    def decode(
        self,
        target_type: Any,
        request: Request,
        response: Response,
        media_type: str,
        charset: str,
    ) -> Any:
        """Read response.body_stream and build a target_type value.

        Args:
            target_type: The type to produce. Exception types are requested
                for error responses.
            request: The request that was executed.
            response: The received response. The parser reads its body.
            media_type: Media type of the body.
            charset: Charset of the body.
        """
        ...


# =============================================================================
# Errors
# =============================================================================


class MissingParserError(Exception):
    """Raised when a body needs parsing but no parser matches its media type."""

    def __init__(self, media_type: str) -> None:
        super().__init__(f"No parser registered for media type {media_type}")
        self.media_type = media_type


class MissingRequestParserError(MissingParserError):
    """No request parser matches the media type of a body argument."""


class MissingResponseParserError(MissingParserError):
    """No response parser matches the media type of a received body."""


# =============================================================================
# Registry
# =============================================================================


class ParserRole(str, Enum):
    """Which side of the exchange a registry serves."""

    REQUEST = "request"
    RESPONSE = "response"


ParserT = TypeVar("ParserT")


class ParserRegistry(Generic[ParserT]):
    """Thread-safe media-type pattern -> parser mapping.

    Usage:
        registry = ParserRegistry(ParserRole.RESPONSE)
        registry.register(JsonParser(), "application/json", "application/*")
        parser = registry.resolve("application/problem+json")
    """

    def __init__(self, role: ParserRole) -> None:
        self._role = role
        self._parsers: dict[str, ParserT] = {}
        self._lock = Lock()

    @property
    def role(self) -> ParserRole:
        return self._role

    def register(self, parser: ParserT, *media_types: str | None) -> None:
        """Map each pattern to parser, replacing earlier registrations."""
        with self._lock:
            for media_type in media_types:
                if media_type is not None:
                    self._parsers[media_type] = parser
        logger.debug(
            f"Registered {type(parser).__name__} as {self._role.value} parser "
            f"for {', '.join(m for m in media_types if m is not None)}"
        )

    def unregister(self, *media_types: str | None) -> None:
        with self._lock:
            for media_type in media_types:
                self._parsers.pop(media_type, None)

    def media_types(self) -> list[str]:
        """Snapshot of the registered patterns."""
        with self._lock:
            return list(self._parsers)

    def resolve(self, media_type: str) -> ParserT:
        """Find the most specific parser for media_type.

        Raises:
            MissingRequestParserError: For request registries with no match.
            MissingResponseParserError: For response registries with no match.
        """
        with self._lock:
            parser = self._parsers.get(media_type)
            if parser is None and "/" in media_type:
                parent_type = media_type[: media_type.index("/") + 1] + "*"
                parser = self._parsers.get(parent_type)
            if parser is None:
                parser = self._parsers.get(MEDIA_TYPE_ANY)
        if parser is None:
            if self._role is ParserRole.REQUEST:
                raise MissingRequestParserError(media_type)
            raise MissingResponseParserError(media_type)
        return parser
