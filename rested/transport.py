"""Transport - Executes finished requests over the network.

The dispatcher only needs the Transport protocol. HttpxTransport is the
bundled implementation built on httpx.Client.
"""

from __future__ import annotations

import io
import logging
import ssl
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterator, Protocol, Sequence

import httpx

from rested.config import ClientConfig, load_client_config
from rested.request import Request
from rested.response import Response

if TYPE_CHECKING:
    from rested.endpoint import EndpointDescriptor

logger = logging.getLogger(__name__)

# Responses to these statuses never carry a body.
_BODYLESS_STATUS_CODES = frozenset({204, 304})


class Transport(Protocol):
    """Executes a Request and returns the server's Response."""

    def execute(
        self,
        request: Request,
        endpoint: EndpointDescriptor,
        arguments: Sequence[Any],
    ) -> Response:
        """Perform request.

        Args:
            request: The finished request.
            endpoint: Descriptor of the resource method that initiated the
                request. May be used for inspection.
            arguments: The call's argument values in parameter order.

        Returns:
            The response. Its body stream is closed by whoever consumes it.

        Raises:
            Exception: Anything; it is raised from the resource method unchanged.
        """
        ...


class TransportError(Exception):
    """Raised by HttpxTransport when a request cannot be completed."""


class TransportTimeoutError(TransportError):
    """The request timed out."""


class TransportConnectError(TransportError):
    """The connection to the server could not be established."""


class _HttpxBodyStream(io.RawIOBase):
    """Raw binary stream over a streaming httpx response.

    Closing the stream closes the httpx response and releases its connection.
    """

    def __init__(self, response: httpx.Response) -> None:
        super().__init__()
        self._response = response
        self._chunks: Iterator[bytes] = response.iter_bytes()
        self._pending = b""

    def readable(self) -> bool:
        return True

    def readinto(self, buffer: Any) -> int:
        while not self._pending:
            chunk = next(self._chunks, None)
            if chunk is None:
                return 0
            self._pending = chunk
        size = min(len(buffer), len(self._pending))
        buffer[:size] = self._pending[:size]
        self._pending = self._pending[size:]
        return size

    def close(self) -> None:
        if not self.closed:
            self._response.close()
        super().close()


def client_options(config: ClientConfig) -> dict[str, Any]:
    """Translate a ClientConfig into httpx.Client keyword arguments."""
    options: dict[str, Any] = {
        "base_url": config.base_url,
        "headers": config.headers,
        "timeout": config.timeout,
        "follow_redirects": config.follow_redirects,
    }
    cert = _client_cert(config)
    if cert is not None:
        options["cert"] = cert
    verify = _verify_option(config)
    if verify is not True:
        options["verify"] = verify
    return options


def _client_cert(config: ClientConfig) -> str | tuple[str, ...] | None:
    """mTLS material in the shape httpx expects: a path or (cert, key[, password])."""
    if not config.cert:
        return None
    if not config.key:
        return config.cert
    return tuple(part for part in (config.cert, config.key, config.key_password) if part)


def _verify_option(config: ClientConfig) -> ssl.SSLContext | str | bool:
    if config.ciphers:
        return _cipher_context(config)
    return config.ca_bundle or config.verify_ssl


def _cipher_context(config: ClientConfig) -> ssl.SSLContext:
    """Default SSL context restricted to config.ciphers."""
    context = ssl.create_default_context()
    try:
        context.set_ciphers(config.ciphers)
    except ssl.SSLError as e:
        raise TransportError(f"Invalid cipher string '{config.ciphers}': {e}") from e
    if config.ca_bundle:
        context.load_verify_locations(config.ca_bundle)
    elif not config.verify_ssl:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


class HttpxTransport:
    """Transport backed by httpx.Client.

    Usage:
        with HttpxTransport(ClientConfig(base_url="https://api.example.com")) as transport:
            factory = ResourceFactory(transport)
            ...

    Or from a YAML file:
        transport = HttpxTransport.from_config_file(Path("client.yaml"))
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        base_url: str | None = None,
        http_transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            config: Client configuration. Defaults to ClientConfig(base_url=base_url).
            base_url: Shortcut for a configuration holding only a base URL.
            http_transport: Optional httpx transport, e.g. httpx.MockTransport
                in tests.

        Raises:
            TransportError: If the TLS configuration is invalid.
        """
        if config is None:
            if base_url is None:
                raise ValueError("Either config or base_url is required")
            config = ClientConfig(base_url=base_url)
        self._config = config
        options = client_options(config)
        if http_transport is not None:
            options["transport"] = http_transport
        self._client = httpx.Client(**options)

    @classmethod
    def from_config_file(cls, config_path: Path) -> HttpxTransport:
        """Create a transport from a YAML client configuration file."""
        return cls(load_client_config(config_path))

    @property
    def config(self) -> ClientConfig:
        return self._config

    def __enter__(self) -> HttpxTransport:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def execute(
        self,
        request: Request,
        endpoint: EndpointDescriptor,
        arguments: Sequence[Any],
    ) -> Response:
        """Send request and return a Response with a streaming body.

        Raises:
            TransportTimeoutError: On timeouts.
            TransportConnectError: If the server cannot be reached.
            TransportError: On any other httpx request failure.
        """
        # Multi-value headers and query parameters are sent as repeated pairs.
        headers = [
            (name, value)
            for name in request.header_names()
            for value in request.header_values(name) or ()
        ]
        params = [
            (name, value)
            for name in request.query_param_names()
            for value in request.query_param_values(name) or ()
        ]

        http_request = self._client.build_request(
            request.method.value,
            request.path,
            params=params or None,
            headers=headers or None,
            content=request.body,
        )

        try:
            http_response = self._client.send(http_request, stream=True)
        except httpx.TimeoutException as e:
            raise TransportTimeoutError(f"{endpoint.name} request timeout: {e}") from e
        except httpx.ConnectError as e:
            raise TransportConnectError(f"{endpoint.name} connection error: {e}") from e
        except httpx.RequestError as e:
            raise TransportError(f"{endpoint.name} request error: {e}") from e

        logger.debug(
            f"{request.method.value} {http_request.url} -> {http_response.status_code}"
        )
        return self._convert_response(request, http_response)

    def _convert_response(self, request: Request, http_response: httpx.Response) -> Response:
        """Wrap an httpx streaming response without reading its body.

        Header names keep the case they were received with.
        """
        headers: dict[str, list[str]] = {}
        encoding = http_response.headers.encoding
        for raw_name, raw_value in http_response.headers.raw:
            headers.setdefault(raw_name.decode(encoding), []).append(raw_value.decode(encoding))

        body_stream: io.BufferedReader | None = None
        if (
            request.method.response_body_supported
            and http_response.status_code not in _BODYLESS_STATUS_CODES
        ):
            body_stream = io.BufferedReader(_HttpxBodyStream(http_response))
        else:
            http_response.close()

        return Response(
            status_code=http_response.status_code,
            message=http_response.reason_phrase or None,
            body_stream=body_stream,
            headers=headers,
        )
