"""rested - declarative REST clients built from annotated interface classes."""

from rested.config import ClientConfig, ConfigError
from rested.endpoint import (
    Body,
    EndpointDefinitionError,
    EndpointDescriptor,
    Header,
    PathParam,
    QueryParam,
    endpoint,
    raises,
    resource,
)
from rested.factory import ResourceFactory
from rested.media import (
    MediaType,
    MissingParserError,
    MissingRequestParserError,
    MissingResponseParserError,
)
from rested.middleware import (
    InterceptedError,
    RequestInterceptedError,
    ResponseInterceptedError,
)
from rested.parsers import (
    BinaryParser,
    JsonParser,
    TextParser,
    XmlParser,
    install_default_parsers,
)
from rested.request import Request, RequestBuilder, RequestMethod
from rested.response import Response
from rested.results import (
    RESTError,
    RESTResponse,
    StreamedRESTError,
    StreamedRESTResponse,
)
from rested.transport import (
    HttpxTransport,
    Transport,
    TransportConnectError,
    TransportError,
    TransportTimeoutError,
)

__version__ = "0.1.0"

__all__ = [
    "BinaryParser",
    "Body",
    "ClientConfig",
    "ConfigError",
    "EndpointDefinitionError",
    "EndpointDescriptor",
    "Header",
    "HttpxTransport",
    "InterceptedError",
    "JsonParser",
    "MediaType",
    "MissingParserError",
    "MissingRequestParserError",
    "MissingResponseParserError",
    "PathParam",
    "QueryParam",
    "RESTError",
    "RESTResponse",
    "Request",
    "RequestBuilder",
    "RequestInterceptedError",
    "RequestMethod",
    "ResourceFactory",
    "Response",
    "ResponseInterceptedError",
    "StreamedRESTError",
    "StreamedRESTResponse",
    "TextParser",
    "Transport",
    "TransportConnectError",
    "TransportError",
    "TransportTimeoutError",
    "XmlParser",
    "endpoint",
    "install_default_parsers",
    "raises",
    "resource",
]
