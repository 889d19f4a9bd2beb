"""Request and response interceptors.

Request interceptors see the RequestBuilder before the request is frozen and
sent; they may change it or abort the call by raising RequestInterceptedError.
Response interceptors see the request, the response and the parsed result
before the resource method returns; they may abort by raising
ResponseInterceptedError. Both errors propagate to the caller unchanged.
"""

from __future__ import annotations

from threading import Lock
from typing import TYPE_CHECKING, Any, Generic, Iterator, Protocol, Sequence, TypeVar

if TYPE_CHECKING:
    from rested.endpoint import EndpointDescriptor
    from rested.request import Request, RequestBuilder
    from rested.response import Response


class InterceptedError(Exception):
    """Common base for request and response interception."""


class RequestInterceptedError(InterceptedError):
    """Raised by a request interceptor to abort a pending request.

    May be subclassed to carry more detail.
    """

    def __init__(self, request: Request, message: str | None = None) -> None:
        super().__init__(*(() if message is None else (message,)))
        self.request = request


class ResponseInterceptedError(InterceptedError):
    """Raised by a response interceptor to abort after the response arrived.

    The response body may already have been consumed when this is raised.
    """

    def __init__(
        self,
        request: Request,
        response: Response,
        message: str | None = None,
    ) -> None:
        super().__init__(*(() if message is None else (message,)))
        self.request = request
        self.response = response


class RequestInterceptor(Protocol):
    def intercept(
        self,
        pending_request: RequestBuilder,
        body_object: Any,
        endpoint: EndpointDescriptor,
        arguments: Sequence[Any],
    ) -> None:
        """Inspect or alter a pending request.

        Args:
            pending_request: Builder of the request. Changes are kept.
            body_object: The raw body argument, None if the call has no body.
            endpoint: Descriptor of the called resource method.
            arguments: The call's argument values in parameter order.

        Raises:
            RequestInterceptedError: To abort the request.
        """
        ...


class ResponseInterceptor(Protocol):
    def intercept(
        self,
        request: Request,
        response: Response,
        parsed_response: Any,
        endpoint: EndpointDescriptor,
        arguments: Sequence[Any],
    ) -> None:
        """Inspect a response before the resource method returns.

        The response body has already been parsed; use parsed_response rather
        than response.body_stream.

        Raises:
            ResponseInterceptedError: To abort the call.
        """
        ...


InterceptorT = TypeVar("InterceptorT")


class InterceptorChain(Generic[InterceptorT]):
    """Ordered, thread-safe list of interceptors.

    Dispatch iterates over a snapshot, so adding or removing interceptors
    while a call is running never affects that call.
    """

    def __init__(self) -> None:
        self._interceptors: list[InterceptorT] = []
        self._lock = Lock()

    def add(self, *interceptors: InterceptorT | None) -> None:
        """Append interceptors in the given order, skipping None."""
        with self._lock:
            self._interceptors.extend(i for i in interceptors if i is not None)

    def remove(self, *interceptors: InterceptorT) -> None:
        """Remove the first registration of each interceptor, ignoring unknown ones."""
        with self._lock:
            for interceptor in interceptors:
                if interceptor in self._interceptors:
                    self._interceptors.remove(interceptor)

    def snapshot(self) -> tuple[InterceptorT, ...]:
        with self._lock:
            return tuple(self._interceptors)

    def __iter__(self) -> Iterator[InterceptorT]:
        return iter(self.snapshot())

    def __len__(self) -> int:
        with self._lock:
            return len(self._interceptors)
