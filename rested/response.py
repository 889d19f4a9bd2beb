"""HTTP response as returned by a transport."""

from __future__ import annotations

from typing import Any, BinaryIO, Iterable, Mapping

from rested.headers import HeaderHolder


class Response(HeaderHolder):
    """Status, reason message, headers and a single-use body stream.

    The body stream may be read once. Whoever takes ownership of it calls
    detach_body(), after which this response no longer references (or closes)
    the stream.

    Usage:
        with transport.execute(request, endpoint, arguments) as response:
            data = response.read_body()
    """

    def __init__(
        self,
        status_code: int,
        message: str | None = None,
        body_stream: BinaryIO | None = None,
        headers: Mapping[str, Iterable[str]] | None = None,
    ) -> None:
        """Initialize the response.

        Args:
            status_code: HTTP status code.
            message: HTTP reason phrase, None if none was received.
            body_stream: Binary stream of the response body. None when no body
                is expected (HEAD requests) or none was received.
            headers: Response headers, None if none were received.
        """
        super().__init__(headers)
        self._status_code = status_code
        self._message = message
        self._body_stream = body_stream

    @property
    def status_code(self) -> int:
        return self._status_code

    @property
    def message(self) -> str | None:
        return self._message

    @property
    def body_stream(self) -> BinaryIO | None:
        """The body stream. May already be consumed by an earlier reader."""
        return self._body_stream

    @property
    def is_success(self) -> bool:
        """True for 2xx status codes."""
        return 200 <= self._status_code < 300

    def read_body(self) -> bytes:
        """Read the remaining body. Returns b"" when there is no body stream."""
        if self._body_stream is None:
            return b""
        return self._body_stream.read()

    def detach_body(self) -> BinaryIO | None:
        """Hand the body stream over to the caller.

        The response forgets the stream, so close() will not touch it again.
        """
        stream = self._body_stream
        self._body_stream = None
        return stream

    def close(self) -> None:
        """Close the body stream if this response still owns one."""
        if self._body_stream is not None:
            self._body_stream.close()
            self._body_stream = None

    def __enter__(self) -> Response:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Response({self._status_code}, {self._message!r})"
