"""Test fixtures for robyn-file-service unit tests."""

from dataclasses import dataclass, field
from pathlib import Path

import pytest

from file_service.core.lifespan import State
from file_service.services.storage import FileStorage


# -----------------------------------------------------------------------------
# Mock classes for Robyn Request
# -----------------------------------------------------------------------------


@dataclass
class MockHeaders:
    """Mock Headers object for Robyn Request, case-insensitive like Robyn's."""

    _data: dict = field(default_factory=dict)

    def __post_init__(self) -> None:
        self._data = {key.lower(): value for key, value in self._data.items()}

    def get(self, key: str, default: str | None = None) -> str | None:
        return self._data.get(key.lower(), default)

    def set(self, key: str, value: str) -> None:
        self._data[key.lower()] = value

    def __getitem__(self, key: str) -> str:
        return self._data[key.lower()]

    def __setitem__(self, key: str, value: str) -> None:
        self._data[key.lower()] = value


@dataclass
class MockQueryParams:
    """Mock QueryParams object for Robyn Request."""

    _data: dict = field(default_factory=dict)

    def get(self, key: str, default: str | None = None) -> str | None:
        return self._data.get(key, default)


@dataclass
class MockRequest:
    """Mock Request object for Robyn."""

    body: bytes | str = b""
    headers: MockHeaders = field(default_factory=MockHeaders)
    query_params: MockQueryParams = field(default_factory=MockQueryParams)
    method: str = "GET"
    path: str = "/"


@dataclass
class MockResponse:
    """Mock Response object for Robyn after-request hooks."""

    status_code: int = 200
    headers: MockHeaders = field(default_factory=MockHeaders)
    description: str = ""


def multipart_body(boundary: str, parts: list[tuple[bytes, str | None]], preamble: bytes = b"") -> bytes:
    """Encode (bytes, filename) pairs as a multipart/form-data body."""
    chunks = [preamble]
    for index, (data, filename) in enumerate(parts):
        disposition = f'form-data; name="file{index}"'
        if filename is not None:
            disposition += f'; filename="{filename}"'
        chunks.append(f"--{boundary}\r\nContent-Disposition: {disposition}\r\n\r\n".encode())
        chunks.append(data + b"\r\n")
    chunks.append(f"--{boundary}--\r\n".encode())
    return b"".join(chunks)


# -----------------------------------------------------------------------------
# State fixture
# -----------------------------------------------------------------------------


@pytest.fixture(scope="session")
def test_state() -> State:
    """Create a test state container."""
    return State()


@pytest.fixture
def storage(tmp_path: Path) -> FileStorage:
    """Upload storage writing into a temporary directory."""
    storage = FileStorage(upload_dir=tmp_path / "uploads")
    storage.prepare()
    return storage


@pytest.fixture
def global_dependencies(test_state: State, storage: FileStorage) -> dict:
    """Setup global dependencies for tests."""
    test_state.storage = storage
    yield {"state": test_state}
    test_state.clear()


@pytest.fixture
def make_mock_request():
    """Factory fixture to create mock requests."""

    def _make(
        body: bytes | str = b"",
        headers: dict | None = None,
        query: dict | None = None,
        method: str = "GET",
    ) -> MockRequest:
        return MockRequest(
            body=body,
            headers=MockHeaders(headers or {}),
            query_params=MockQueryParams(query or {}),
            method=method,
        )

    return _make


@pytest.fixture
def encode_multipart():
    """Multipart body encoder."""
    return multipart_body


@pytest.fixture
def make_mock_response():
    """Factory fixture to create mock responses."""

    def _make(description: str = "", headers: dict | None = None, status_code: int = 200) -> MockResponse:
        return MockResponse(status_code=status_code, headers=MockHeaders(headers or {}), description=description)

    return _make
