"""ResourceFactory - Creates working clients from resource interfaces.

The factory owns the transport, the request and response parser registries,
the interceptor chains and the dispatcher. All of them may be changed while
resources created by the factory are in use.

Usage:
    factory = ResourceFactory(HttpxTransport(base_url="https://api.example.com"))
    install_default_parsers(factory)
    users = factory.create_resource(UserResource)
    user = users.get_user(42)
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable, TypeVar

from rested.dispatcher import Dispatcher
from rested.endpoint import EndpointDescriptor, build_descriptors
from rested.media import ParserRegistry, ParserRole, RequestBodyParser, ResponseBodyParser
from rested.middleware import InterceptorChain, RequestInterceptor, ResponseInterceptor
from rested.transport import Transport

logger = logging.getLogger(__name__)

R = TypeVar("R")


def _make_endpoint_method(
    dispatcher: Dispatcher,
    endpoint: EndpointDescriptor,
) -> Callable[..., Any]:
    """Build the method that replaces an endpoint declaration."""
    signature = endpoint.signature
    names = [spec.name for spec in endpoint.parameters]

    @functools.wraps(endpoint.function)
    def call_endpoint(self: Any, *args: Any, **kwargs: Any) -> Any:
        bound = signature.bind(self, *args, **kwargs)
        bound.apply_defaults()
        arguments = tuple(bound.arguments[name] for name in names)
        return dispatcher.invoke(endpoint, arguments)

    # The declaration may be abstract; the generated method never is.
    call_endpoint.__isabstractmethod__ = False  # type: ignore[attr-defined]
    return call_endpoint


class ResourceFactory:
    """Turns classes declaring endpoints into REST clients."""

    def __init__(self, transport: Transport) -> None:
        """Initialize the factory.

        Args:
            transport: Executes the requests built by created resources.
        """
        self._transport = transport
        self._request_parsers: ParserRegistry[RequestBodyParser] = ParserRegistry(
            ParserRole.REQUEST
        )
        self._response_parsers: ParserRegistry[ResponseBodyParser] = ParserRegistry(
            ParserRole.RESPONSE
        )
        self._request_interceptors: InterceptorChain[RequestInterceptor] = InterceptorChain()
        self._response_interceptors: InterceptorChain[ResponseInterceptor] = InterceptorChain()
        self._dispatcher = Dispatcher(
            transport,
            self._request_parsers,
            self._response_parsers,
            self._request_interceptors,
            self._response_interceptors,
        )

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher

    @property
    def request_parsers(self) -> ParserRegistry[RequestBodyParser]:
        return self._request_parsers

    @property
    def response_parsers(self) -> ParserRegistry[ResponseBodyParser]:
        return self._response_parsers

    def register_request_parser(self, parser: RequestBodyParser, *media_types: str) -> None:
        """Use parser to encode bodies declared with any of media_types.

        Patterns may be exact (``application/json``), a subtype wildcard
        (``application/*``) or ``*/*``. Existing registrations are replaced.
        """
        self._request_parsers.register(parser, *media_types)

    def unregister_request_parser(self, *media_types: str) -> None:
        self._request_parsers.unregister(*media_types)

    def register_response_parser(self, parser: ResponseBodyParser, *media_types: str) -> None:
        """Use parser to decode response bodies of any of media_types."""
        self._response_parsers.register(parser, *media_types)

    def unregister_response_parser(self, *media_types: str) -> None:
        self._response_parsers.unregister(*media_types)

    def add_request_interceptors(self, *interceptors: RequestInterceptor) -> None:
        """Append request interceptors. They run in the order they were added."""
        self._request_interceptors.add(*interceptors)

    def remove_request_interceptors(self, *interceptors: RequestInterceptor) -> None:
        self._request_interceptors.remove(*interceptors)

    def add_response_interceptors(self, *interceptors: ResponseInterceptor) -> None:
        """Append response interceptors. They run in the order they were added."""
        self._response_interceptors.add(*interceptors)

    def remove_response_interceptors(self, *interceptors: ResponseInterceptor) -> None:
        self._response_interceptors.remove(*interceptors)

    def create_resource(self, interface: type[R]) -> R:
        """Create an instance of interface whose endpoint methods perform requests.

        The returned object is an instance of a generated subclass of
        interface. Members without the endpoint decorator are inherited as-is.

        Raises:
            EndpointDefinitionError: If an endpoint is declared incorrectly.
        """
        descriptors = build_descriptors(interface)
        namespace: dict[str, Any] = {
            name: _make_endpoint_method(self._dispatcher, descriptor)
            for name, descriptor in descriptors.items()
        }
        namespace["__module__"] = interface.__module__
        namespace["__qualname__"] = f"{interface.__qualname__}Resource"
        namespace["__rested_endpoints__"] = descriptors

        metaclass = type(interface)
        implementation = metaclass(f"{interface.__name__}Resource", (interface,), namespace)
        logger.debug(
            f"Created resource {interface.__name__} with endpoints: "
            f"{', '.join(sorted(descriptors)) or '(none)'}"
        )
        return implementation()
