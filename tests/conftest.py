"""Pytest configuration and fixtures for rested tests.

This file provides:
- make_response: Response factory with sensible defaults
- RecordingTransport: In-memory transport that records executed requests
- PortReservation / MockServer: Subprocess management for the mock API server
- Fixtures: Shared test infrastructure (factories, servers)
"""

from __future__ import annotations

import io
import socket
import subprocess
import sys
import time
from pathlib import Path
from typing import Any, Callable, Generator, Sequence

import pytest

from rested.factory import ResourceFactory
from rested.request import Request
from rested.response import Response

# Project root for fixture paths
PROJECT_ROOT = Path(__file__).parent.parent
MOCK_SERVER_MODULE = "tests.integration.mock_server"


class TrackingStream(io.BytesIO):
    """BytesIO that counts close() calls."""

    def __init__(self, content: bytes = b"") -> None:
        super().__init__(content)
        self.close_count = 0

    def close(self) -> None:
        self.close_count += 1
        super().close()


def make_response(
    status_code: int = 200,
    body: bytes | None = None,
    headers: dict[str, list[str]] | None = None,
    message: str | None = "OK",
) -> Response:
    """Create a Response for tests.

    The body, when given, is wrapped in a TrackingStream so tests can assert
    how often it was closed.
    """
    return Response(
        status_code=status_code,
        message=message,
        body_stream=TrackingStream(body) if body is not None else None,
        headers=headers,
    )


class RecordingTransport:
    """Transport that returns canned responses and records every call.

    responder receives (request, endpoint, arguments) and returns the Response.
    """

    def __init__(self, responder: Callable[..., Response] | Response | None = None) -> None:
        self._responder = responder
        self.calls: list[tuple[Request, Any, Sequence[Any]]] = []

    @property
    def last_request(self) -> Request:
        return self.calls[-1][0]

    def execute(self, request: Request, endpoint: Any, arguments: Sequence[Any]) -> Response:
        self.calls.append((request, endpoint, arguments))
        if self._responder is None:
            return make_response(204, message="No Content")
        if isinstance(self._responder, Response):
            return self._responder
        return self._responder(request, endpoint, arguments)


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def factory(transport: RecordingTransport) -> ResourceFactory:
    return ResourceFactory(transport)


class PortReservation:
    """Holds a reserved port with socket kept open to prevent races.

    The socket stays bound until release(), which MockServer calls right
    before the server binds the port.
    """

    def __init__(self) -> None:
        self._socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._socket.bind(("127.0.0.1", 0))  # Port 0 = OS assigns ephemeral port
        self._port = self._socket.getsockname()[1]
        self._released = False

    @property
    def port(self) -> int:
        return self._port

    def release(self) -> int:
        """Release the socket and return the port. Safe to call multiple times."""
        if not self._released:
            self._socket.close()
            self._released = True
        return self._port


def wait_for_server_ready(host: str, port: int, timeout: float = 10.0) -> bool:
    """Block until server accepts TCP connections, or timeout expires."""
    start = time.time()
    while time.time() - start < timeout:
        try:
            with socket.create_connection((host, port), timeout=1.0):
                return True
        except (ConnectionRefusedError, socket.timeout, OSError):
            time.sleep(0.1)
    return False


class MockServer:
    """Runs tests/integration/mock_server.py as a subprocess."""

    def __init__(self, reservation: PortReservation) -> None:
        self._reservation = reservation
        self.port = reservation.port
        self.host = "127.0.0.1"
        self.base_url = f"http://{self.host}:{self.port}"
        self._process: subprocess.Popen | None = None

    def start(self) -> None:
        """Start the mock server subprocess.

        Raises:
            RuntimeError: If server fails to start within 10 seconds.
        """
        self._reservation.release()

        self._process = subprocess.Popen(
            [
                sys.executable, "-m", MOCK_SERVER_MODULE,
                "--host", self.host,
                "--port", str(self.port),
            ],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=PROJECT_ROOT,
        )

        if not wait_for_server_ready(self.host, self.port):
            stderr = ""
            if self._process and self._process.stderr:
                stderr = self._process.stderr.read().decode(errors="replace")
            self.stop()
            raise RuntimeError(
                f"MockServer failed to start on port {self.port}. "
                f"stderr: {stderr or '(empty)'}"
            )

    def stop(self) -> None:
        """Stop the subprocess: SIGTERM first, SIGKILL after 5s."""
        if self._process:
            self._process.terminate()
            try:
                self._process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                self._process.kill()
                self._process.wait(timeout=5)
            self._process = None

    def __enter__(self) -> MockServer:
        self.start()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.stop()


@pytest.fixture(scope="session")
def mock_server() -> Generator[MockServer, None, None]:
    """Session-scoped mock API server (see tests/integration/mock_server.py)."""
    with MockServer(PortReservation()) as server:
        yield server


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Tag tests as integration or unit based on their directory.

        pytest -m integration  # only integration tests
        pytest -m unit         # only unit tests
    """
    for item in items:
        test_path = Path(item.path)
        if "integration" in test_path.parts:
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)
