"""Result types that receive status, message and headers from the response.

Declare a return type deriving from RESTResponse to see the HTTP status and
headers of a successful call. Declare an error type deriving from RESTError
(see rested.endpoint.raises) to receive the same data for failures. The
streamed variants skip body parsing and hand the raw body stream to the
caller instead.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, BinaryIO, Iterable, Mapping

from rested.headers import HeaderHolder

if TYPE_CHECKING:
    from rested.request import Request


class RESTResponse(HeaderHolder):
    """Use or subclass this as a return type to access status code, message and headers."""

    def __init__(self) -> None:
        super().__init__()
        self._status_code = 0
        self._response_message: str | None = None

    @property
    def status_code(self) -> int:
        return self._status_code

    @property
    def response_message(self) -> str | None:
        """HTTP reason phrase, None if none was received."""
        return self._response_message

    def _populate(
        self,
        status_code: int,
        message: str | None,
        headers: Mapping[str, Iterable[str]] | None,
    ) -> None:
        self._status_code = status_code
        self._response_message = message
        self._replace_headers(headers)


class StreamedRESTResponse(RESTResponse):
    """Return type that exposes the response body stream instead of a parsed value.

    The caller owns the stream and should close the response, ideally with a
    ``with`` block.
    """

    def __init__(self, body_stream: BinaryIO | None = None) -> None:
        super().__init__()
        self._body_stream = body_stream

    @property
    def body_stream(self) -> BinaryIO | None:
        """Body stream, None if no body was received."""
        return self._body_stream

    def close(self) -> None:
        if self._body_stream is not None:
            self._body_stream.close()
            self._body_stream = None

    def __enter__(self) -> StreamedRESTResponse:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


class RESTError(HeaderHolder, Exception):
    """Raised by resource methods for non-2xx responses.

    This is the default when no declared error rule matches the status code.
    Subclasses may be declared with rested.endpoint.raises to get a more
    specific type, and may add attributes that the response parser fills in
    from the error body.
    """

    def __init__(self, *args: Any) -> None:
        Exception.__init__(self, *args)
        HeaderHolder.__init__(self)
        self._status_code = 0
        self._response_message: str | None = None
        self._request: Request | None = None

    @property
    def status_code(self) -> int:
        return self._status_code

    @property
    def response_message(self) -> str | None:
        return self._response_message

    @property
    def request(self) -> Request | None:
        """The request that led to this error response."""
        return self._request

    def _populate(
        self,
        status_code: int,
        message: str | None,
        headers: Mapping[str, Iterable[str]] | None,
        request: Request,
    ) -> None:
        self._status_code = status_code
        self._response_message = message
        self._request = request
        self._replace_headers(headers)

    def __str__(self) -> str:
        text = Exception.__str__(self)
        if not self._status_code:
            return text
        status = f"HTTP {self._status_code}"
        if self._response_message:
            status = f"{status} {self._response_message}"
        return f"{status}: {text}" if text else status


class StreamedRESTError(RESTError):
    """Error type whose body is exposed as a stream instead of being parsed.

    Subclasses must be constructible without arguments.
    """

    def __init__(self, *args: Any) -> None:
        super().__init__(*args)
        self._body_stream: BinaryIO | None = None

    @property
    def body_stream(self) -> BinaryIO | None:
        return self._body_stream

    def _attach_body(self, body_stream: BinaryIO | None) -> None:
        self._body_stream = body_stream

    def close(self) -> None:
        if self._body_stream is not None:
            self._body_stream.close()
            self._body_stream = None

    def __enter__(self) -> StreamedRESTError:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
