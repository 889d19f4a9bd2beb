"""Immutable HTTP request values and the mutable builder that produces them."""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Mapping

from rested.headers import (
    HeaderHolder,
    MultiValueMap,
    add_value,
    copy_multi_value_map,
    remove_value,
)


class RequestMethod(str, Enum):
    """HTTP method of a request."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"

    @property
    def response_body_supported(self) -> bool:
        """Whether a response to this method may carry a body.

        Transports use this to decide whether to expose a body stream.
        """
        return self is not RequestMethod.HEAD


class Request(HeaderHolder):
    """A finished request, ready to be executed by a transport.

    Instances are created with RequestBuilder.build() and never change
    afterwards. Query parameters follow the same multi-value rules as headers.
    """

    def __init__(
        self,
        method: RequestMethod,
        path: str,
        body: bytes | None,
        headers: Mapping[str, Iterable[str]] | None,
        query_params: Mapping[str, Iterable[str]] | None,
    ) -> None:
        super().__init__(headers)
        self._method = method
        self._path = path
        self._body = bytes(body) if body is not None else None
        self._query_params: MultiValueMap = copy_multi_value_map(query_params)

    @property
    def method(self) -> RequestMethod:
        return self._method

    @property
    def path(self) -> str:
        return self._path

    @property
    def body(self) -> bytes | None:
        return self._body

    def query_param_names(self) -> list[str]:
        return list(self._query_params)

    def has_query_param(self, name: str | None) -> bool:
        return name in self._query_params

    def query_param_values(self, name: str | None) -> list[str] | None:
        """Return the values for a query parameter in insertion order, or None."""
        values = self._query_params.get(name) if name is not None else None
        return list(values) if values is not None else None

    @property
    def query_params(self) -> MultiValueMap:
        return copy_multi_value_map(self._query_params)

    def __repr__(self) -> str:
        return f"Request({self._method.value} {self._path!r})"


class RequestBuilder(HeaderHolder):
    """Mutable request under construction.

    Starts as ``GET ""`` with no body, headers or query parameters. Request
    interceptors receive the builder and may change any part of it before
    it is frozen with build().

    Usage:
        request = (
            RequestBuilder()
            .set_method(RequestMethod.POST)
            .set_path("/items")
            .add_header("Accept", "application/json")
            .build()
        )
    """

    def __init__(self) -> None:
        super().__init__()
        self._method = RequestMethod.GET
        self._path = ""
        self._body: bytes | None = None
        self._query_params: MultiValueMap = {}

    def build(self) -> Request:
        """Snapshot the current state into an immutable Request."""
        return Request(
            self._method, self._path, self._body, self._headers, self._query_params
        )

    @property
    def method(self) -> RequestMethod:
        return self._method

    @method.setter
    def method(self, method: RequestMethod) -> None:
        self.set_method(method)

    def set_method(self, method: RequestMethod) -> RequestBuilder:
        """Set the HTTP method.

        Raises:
            ValueError: If method is None. Every request needs a method.
        """
        if method is None:
            raise ValueError("method may not be None. All requests require it")
        self._method = RequestMethod(method)
        return self

    @property
    def path(self) -> str:
        return self._path

    @path.setter
    def path(self, path: str) -> None:
        self.set_path(path)

    def set_path(self, path: str) -> RequestBuilder:
        self._path = path
        return self

    @property
    def body(self) -> bytes | None:
        return self._body

    @body.setter
    def body(self, body: bytes | bytearray | None) -> None:
        self.set_body(body)

    def set_body(self, body: bytes | bytearray | None) -> RequestBuilder:
        self._body = bytes(body) if body is not None else None
        return self

    def add_header(self, name: str | None, value: str | None) -> RequestBuilder:
        """Append a header value. No-op if name or value is None."""
        add_value(self._headers, name, value)
        return self

    def remove_header(self, name: str | None, value: str | None = None) -> RequestBuilder:
        """Remove a whole header, or only one of its values when value is given."""
        remove_value(self._headers, name, value)
        return self

    def query_param_names(self) -> list[str]:
        return list(self._query_params)

    def has_query_param(self, name: str | None) -> bool:
        return name in self._query_params

    def query_param_values(self, name: str | None) -> list[str] | None:
        values = self._query_params.get(name) if name is not None else None
        return list(values) if values is not None else None

    def add_query_param(self, name: str | None, value: str | None) -> RequestBuilder:
        """Append a query parameter value. No-op if name or value is None."""
        add_value(self._query_params, name, value)
        return self

    def remove_query_param(
        self, name: str | None, value: str | None = None
    ) -> RequestBuilder:
        """Remove a whole query parameter, or only one of its values."""
        remove_value(self._query_params, name, value)
        return self
