"""Dispatcher - Turns one resource method call into a request and a result.

For every call the dispatcher runs the same fixed sequence:

1. Build the path from the resource base path, the endpoint template and
   PathParam arguments.
2. Add Header arguments, then default Accept / Accept-Charset headers.
3. Add QueryParam arguments.
4. Encode the Body argument with a request parser.
5. Run request interceptors on the builder.
6. Freeze the request and execute it with the transport.
7. Pick the target type (return type or error type) and parse the body.
8. Run response interceptors.
9. Return the result, or raise it if it is an exception.

Nothing is retried or wrapped: any exception from a step reaches the caller
as-is.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Callable, Sequence

from rested.endpoint import EndpointDescriptor, ParameterRole
from rested.media import (
    HEADER_CONTENT_TYPE,
    ParserRegistry,
    RequestBodyParser,
    ResponseBodyParser,
    parse_content_type,
)
from rested.middleware import (
    InterceptorChain,
    RequestInterceptedError,
    RequestInterceptor,
    ResponseInterceptedError,
    ResponseInterceptor,
)
from rested.request import Request, RequestBuilder
from rested.response import Response
from rested.results import RESTError, RESTResponse, StreamedRESTError, StreamedRESTResponse
from rested.transport import Transport

logger = logging.getLogger(__name__)

HEADER_ACCEPT = "Accept"
HEADER_ACCEPT_CHARSET = "Accept-Charset"
HEADER_CONTENT_LENGTH = "Content-Length"
HEADER_LIST_DELIMITER = ", "


def _for_each_value(argument: Any, consumer: Callable[[Any], None]) -> None:
    """Call consumer for a scalar argument, or for each non-None element of an iterable.

    Strings, bytes and mappings count as scalars.
    """
    if argument is None:
        return
    if isinstance(argument, Iterable) and not isinstance(
        argument, (str, bytes, bytearray, Mapping)
    ):
        for value in argument:
            if value is not None:
                consumer(value)
    else:
        consumer(argument)


class Dispatcher:
    """Executes endpoint calls for a ResourceFactory.

    The parser registries and interceptor chains are shared with the
    factory, which may change them at any time; the dispatcher only reads
    snapshots of them.
    """

    def __init__(
        self,
        transport: Transport,
        request_parsers: ParserRegistry[RequestBodyParser],
        response_parsers: ParserRegistry[ResponseBodyParser],
        request_interceptors: InterceptorChain[RequestInterceptor],
        response_interceptors: InterceptorChain[ResponseInterceptor],
    ) -> None:
        self._transport = transport
        self._request_parsers = request_parsers
        self._response_parsers = response_parsers
        self._request_interceptors = request_interceptors
        self._response_interceptors = response_interceptors

    @property
    def transport(self) -> Transport:
        return self._transport

    def invoke(self, endpoint: EndpointDescriptor, arguments: Sequence[Any]) -> Any:
        """Execute a call of endpoint with arguments.

        Args:
            endpoint: Descriptor of the called method.
            arguments: Argument values in parameter order (without self).

        Returns:
            The parsed result, or None for void methods and bodiless responses.

        Raises:
            RESTError: Or the declared error type, for non-2xx responses.
            RequestInterceptedError: If a request interceptor aborted the call.
            ResponseInterceptedError: If a response interceptor aborted the call.
            MissingParserError: If a body needs a parser that is not registered.
            Exception: Anything raised by the transport or a parser.
        """
        builder = (
            RequestBuilder()
            .set_method(endpoint.method)
            .set_path(self._build_path(endpoint, arguments))
        )
        self._load_headers(endpoint, builder, arguments)
        self._load_query(endpoint, builder, arguments)
        body_object = self._load_body(endpoint, builder, arguments)

        try:
            for request_interceptor in self._request_interceptors.snapshot():
                request_interceptor.intercept(builder, body_object, endpoint, arguments)
        except RequestInterceptedError as e:
            logger.debug(f"{endpoint.name}: request aborted by interceptor: {e}")
            raise

        request = builder.build()
        logger.debug(f"{endpoint.name}: {request.method.value} {request.path}")
        response = self._transport.execute(request, endpoint, arguments)
        logger.debug(
            f"{endpoint.name}: {request.method.value} {request.path} -> "
            f"{response.status_code} {response.message or ''}".rstrip()
        )
        parsed_response = self._parse_response(endpoint, request, response)

        try:
            for response_interceptor in self._response_interceptors.snapshot():
                response_interceptor.intercept(
                    request, response, parsed_response, endpoint, arguments
                )
        except ResponseInterceptedError as e:
            logger.debug(f"{endpoint.name}: response aborted by interceptor: {e}")
            raise

        if isinstance(parsed_response, BaseException):
            raise parsed_response
        return parsed_response

    # -------------------------------------------------------------------------
    # Request assembly
    # -------------------------------------------------------------------------

    def _build_path(self, endpoint: EndpointDescriptor, arguments: Sequence[Any]) -> str:
        path = endpoint.full_path
        for index, spec in endpoint.parameters_with_role(ParameterRole.PATH):
            value = arguments[index]
            # None leaves the placeholder in the path.
            if value is not None:
                path = path.replace(f"{{{spec.key}}}", str(value))
        return path

    def _load_headers(
        self,
        endpoint: EndpointDescriptor,
        builder: RequestBuilder,
        arguments: Sequence[Any],
    ) -> None:
        for index, spec in endpoint.parameters_with_role(ParameterRole.HEADER):
            _for_each_value(
                arguments[index],
                lambda value, name=spec.key: builder.add_header(name, str(value)),
            )
        if not builder.has_header(HEADER_ACCEPT) and endpoint.media_types:
            builder.add_header(HEADER_ACCEPT, HEADER_LIST_DELIMITER.join(endpoint.media_types))
        if not builder.has_header(HEADER_ACCEPT_CHARSET) and endpoint.charsets:
            builder.add_header(
                HEADER_ACCEPT_CHARSET, HEADER_LIST_DELIMITER.join(endpoint.charsets)
            )

    def _load_query(
        self,
        endpoint: EndpointDescriptor,
        builder: RequestBuilder,
        arguments: Sequence[Any],
    ) -> None:
        for index, spec in endpoint.parameters_with_role(ParameterRole.QUERY):
            _for_each_value(
                arguments[index],
                lambda value, name=spec.key: builder.add_query_param(name, str(value)),
            )

    def _load_body(
        self,
        endpoint: EndpointDescriptor,
        builder: RequestBuilder,
        arguments: Sequence[Any],
    ) -> Any:
        """Encode the body argument into builder. Returns the raw body argument."""
        for index, spec in endpoint.parameters_with_role(ParameterRole.BODY):
            body_object = arguments[index]
            if body_object is not None:
                media_type = spec.media_type
                charset = spec.charset
                parser = self._request_parsers.resolve(media_type)
                data = parser.encode(body_object, media_type, charset)
                if data is not None:
                    if not builder.has_header(HEADER_CONTENT_TYPE):
                        builder.add_header(HEADER_CONTENT_TYPE, f"{media_type}; charset={charset}")
                    if not builder.has_header(HEADER_CONTENT_LENGTH):
                        builder.add_header(HEADER_CONTENT_LENGTH, str(len(data)))
                    builder.set_body(data)
            return body_object
        return None

    # -------------------------------------------------------------------------
    # Response handling
    # -------------------------------------------------------------------------

    def _result_type(self, endpoint: EndpointDescriptor, response: Response) -> Any:
        if response.is_success:
            return endpoint.return_type
        return endpoint.error_type_for(response.status_code) or RESTError

    def _parse_response(
        self,
        endpoint: EndpointDescriptor,
        request: Request,
        response: Response,
    ) -> Any:
        """Turn response into the method's result or error object.

        The body stream is closed afterwards unless a streamed result took it.
        """
        try:
            result_type = self._result_type(endpoint, response)
            if response.is_success and not _is_subclass(result_type, RESTResponse):
                if endpoint.returns_nothing or response.body_stream is None:
                    return None

            if result_type is StreamedRESTResponse:
                result: Any = StreamedRESTResponse(response.detach_body())
            elif _is_subclass(result_type, StreamedRESTError):
                error = result_type()
                error._attach_body(response.detach_body())
                result = error
            else:
                media_type, charset = parse_content_type(_content_type(response))
                parser = self._response_parsers.resolve(media_type)
                result = parser.decode(result_type, request, response, media_type, charset)

            if isinstance(result, RESTResponse):
                result._populate(response.status_code, response.message, response.headers)
            elif isinstance(result, RESTError):
                result._populate(
                    response.status_code, response.message, response.headers, request
                )
            return result
        finally:
            response.close()


def _is_subclass(candidate: Any, parent: type) -> bool:
    return isinstance(candidate, type) and issubclass(candidate, parent)


def _content_type(response: Response) -> str | None:
    """First Content-Type value, matched exactly and then case-insensitively."""
    values = response.header_values(HEADER_CONTENT_TYPE)
    if values is None:
        wanted = HEADER_CONTENT_TYPE.lower()
        for name in response.header_names():
            if name.lower() == wanted:
                values = response.header_values(name)
                break
    return values[0] if values else None
