"""End-to-end tests: generated resources talking to the mock server over HTTP.

The mock server is a real uvicorn process (see mock_server.py), so these
tests exercise HttpxTransport, the default parsers and the dispatcher
together. Starlette sends lowercase header names, which the resources
must handle.
"""

from typing import Annotated, Any

import pytest
from pydantic import BaseModel

from rested import (
    Body,
    Header,
    HttpxTransport,
    MediaType,
    PathParam,
    QueryParam,
    RequestMethod,
    ResourceFactory,
    RESTError,
    RESTResponse,
    StreamedRESTError,
    StreamedRESTResponse,
    endpoint,
    install_default_parsers,
    raises,
    resource,
)
from rested.transport import TransportConnectError

from tests.conftest import PortReservation


class Payload(BaseModel):
    message: str
    count: int


class EchoResult(RESTResponse):
    def __init__(self) -> None:
        super().__init__()
        self.pathParam = None
        self.header = None
        self.queryParams = None
        self.body = None
        self.contentType = None
        self.accept = None


class FailureError(RESTError):
    def __init__(self, *args: Any) -> None:
        super().__init__(*args)
        self.failureReason = None


class StreamUnavailable(StreamedRESTError):
    pass


class ItemMissing(RESTError):
    pass


@resource("/resource")
class MockApi:
    @endpoint(RequestMethod.POST, "/endpoint/{pathParam}")
    def echo(
        self,
        path_param: Annotated[str, PathParam("pathParam")],
        header: Annotated[str, Header("header")],
        query: Annotated[list[str], QueryParam("queryParam")],
        payload: Annotated[Payload | None, Body()] = None,
    ) -> EchoResult: ...

    @endpoint(RequestMethod.POST, "/endpoint/{pathParam}")
    def echo_raw(
        self,
        path_param: Annotated[str, PathParam("pathParam")],
        header: Annotated[str, Header("header")],
        query: Annotated[str, QueryParam("queryParam")],
    ) -> dict[str, Any]: ...

    @endpoint(RequestMethod.GET, "/endpoint/failure")
    @raises(FailureError, 500, 599)
    def failure(self) -> None: ...

    @endpoint(RequestMethod.GET, "/endpoint/failure")
    def undeclared_failure(self) -> None: ...

    @endpoint(RequestMethod.GET, "/stream", media_types=[MediaType.BINARY])
    def stream(self) -> StreamedRESTResponse: ...

    @endpoint(RequestMethod.GET, "/stream/failure")
    @raises(StreamUnavailable, 500, 599)
    def stream_failure(self) -> StreamedRESTResponse: ...

    @endpoint(RequestMethod.PUT, "/xml", media_types=[MediaType.XML])
    def echo_xml(self, payload: Annotated[Payload, Body(MediaType.XML)]) -> Payload: ...

    @endpoint(RequestMethod.DELETE, "/items/{item_id}")
    @raises(ItemMissing, 404, 404)
    def delete_item(self, item_id: Annotated[str, PathParam("item_id")]) -> None: ...


@pytest.fixture
def api(mock_server):
    with HttpxTransport(base_url=mock_server.base_url) as transport:
        factory = install_default_parsers(ResourceFactory(transport))
        yield factory.create_resource(MockApi)


class TestEcho:
    """Requests carry every argument role to the server."""

    def test_full_round_trip(self, api: MockApi) -> None:
        result = api.echo("pathValue", "headerValue", ["q1", "q2"], Payload(message="hi", count=2))

        assert result.status_code == 200
        assert result.response_message == "OK"
        assert result.header_values("header") == ["headerValue"]
        assert result.pathParam == "pathValue"
        assert result.header == "headerValue"
        assert result.queryParams == ["q1", "q2"]
        assert result.body == {"message": "hi", "count": 2}
        assert result.contentType == "application/json; charset=UTF-8"
        assert result.accept == "application/json"

    def test_without_body(self, api: MockApi) -> None:
        result = api.echo("p", "h", ["q"])
        assert result.body is None
        assert result.contentType is None

    def test_untyped_mapping_result(self, api: MockApi) -> None:
        result = api.echo_raw("p", "h", "single")
        assert result["queryParams"] == ["single"]


class TestFailures:
    def test_declared_error(self, api: MockApi) -> None:
        with pytest.raises(FailureError) as exc_info:
            api.failure()

        error = exc_info.value
        assert error.status_code == 500
        assert error.response_message == "Internal Server Error"
        assert error.failureReason == "some reason"
        assert error.header_values("content-type") == ["application/json"]
        assert error.request.path == "/resource/endpoint/failure"

    def test_undeclared_error(self, api: MockApi) -> None:
        with pytest.raises(RESTError) as exc_info:
            api.undeclared_failure()
        assert type(exc_info.value) is RESTError
        assert exc_info.value.status_code == 500

    def test_not_found(self, api: MockApi) -> None:
        with pytest.raises(ItemMissing) as exc_info:
            api.delete_item("missing")
        assert exc_info.value.status_code == 404

    def test_no_content(self, api: MockApi) -> None:
        assert api.delete_item("1") is None


class TestStreaming:
    def test_streamed_body(self, api: MockApi) -> None:
        with api.stream() as result:
            assert result.status_code == 200
            assert result.body_stream.read() == b"first-chunk;second-chunk;third-chunk"

    def test_streamed_error(self, api: MockApi) -> None:
        with pytest.raises(StreamUnavailable) as exc_info:
            api.stream_failure()

        with exc_info.value as error:
            assert error.status_code == 503
            assert error.body_stream.read() == b"try again later"


class TestXml:
    def test_xml_round_trip(self, api: MockApi) -> None:
        assert api.echo_xml(Payload(message="xml", count=4)) == Payload(message="xml", count=4)


class TestTransportFailure:
    def test_unreachable_server(self) -> None:
        port = PortReservation().release()
        with HttpxTransport(base_url=f"http://127.0.0.1:{port}") as transport:
            api = install_default_parsers(ResourceFactory(transport)).create_resource(MockApi)
            with pytest.raises(TransportConnectError):
                api.delete_item("1")
