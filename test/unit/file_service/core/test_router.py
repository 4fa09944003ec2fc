"""Tests for the router: upload extraction, request id binding and response conversion."""

import asyncio
import inspect

import pytest
from asgi_correlation_id import correlation_id
from robyn import Response

from file_service.core.router import (
    NO_FILE_DATA,
    error_response,
    find_upload_params,
    parse_request_files,
    parse_response,
    run_with_request_id,
)
from file_service.middlewares.correlation import HEADER_NAME, CorrelationIdMiddleware
from file_service.models.core import StoredFile, UploadFile, UploadPart, UploadResponse


# -----------------------------------------------------------------------------
# find_upload_params Tests
# -----------------------------------------------------------------------------


class TestFindUploadParams:
    """Tests for find_upload_params function."""

    def test_upload_file_annotation(self) -> None:
        async def handler(files: UploadFile, global_dependencies) -> None: ...

        assert find_upload_params(inspect.signature(handler)) == {"files"}

    def test_other_parameters_ignored(self) -> None:
        """Verify only UploadFile annotations count, whatever the parameter name."""

        async def handler(request, body: dict, files: list[UploadPart]) -> None: ...

        assert find_upload_params(inspect.signature(handler)) == set()


# -----------------------------------------------------------------------------
# parse_response Tests
# -----------------------------------------------------------------------------


class TestParseResponse:
    """Tests for parse_response function."""

    def test_response_passthrough(self) -> None:
        created = Response(status_code=201, headers={}, description="created")
        assert parse_response(created) is created

    def test_model_serialized_without_excluded_fields(self, tmp_path) -> None:
        """Verify pydantic results become JSON and stored paths stay private."""
        stored = StoredFile(name="a.txt", path=tmp_path / "a.txt", size=1, declared=True)

        result = parse_response(UploadResponse(message="ok", files=[stored]))

        assert result.status_code == 200
        assert result.headers["content-type"] == "application/json"
        assert '"a.txt"' in result.description
        assert str(tmp_path) not in result.description

    def test_dict_to_json(self) -> None:
        result = parse_response({"sum": 3})

        assert result.headers["content-type"] == "application/json"
        assert result.description == '{"sum":3}'

    @pytest.mark.parametrize(("value", "expected"), [(3, "3"), ("plain text", "plain text")])
    def test_other_to_string(self, value, expected) -> None:
        result = parse_response(value)

        assert result.status_code == 200
        assert result.description == expected


# -----------------------------------------------------------------------------
# run_with_request_id Tests
# -----------------------------------------------------------------------------


@pytest.fixture
def clean_correlation_id():
    token = correlation_id.set(None)
    yield
    correlation_id.reset(token)


@pytest.mark.usefixtures("clean_correlation_id")
class TestRunWithRequestId:
    """Tests for run_with_request_id function."""

    async def test_id_from_before_hook_reaches_handler_task(self, make_mock_request, make_mock_response) -> None:
        """Verify an id stamped by the middleware in one task is bound and echoed in another."""
        request = make_mock_request()
        seen: list[str | None] = []

        async def before_hook():
            return CorrelationIdMiddleware().before(request)

        async def handler():
            seen.append(correlation_id.get())
            return make_mock_response()

        await asyncio.create_task(before_hook())
        response = await asyncio.create_task(run_with_request_id(request, handler()))

        request_id = request.headers.get(HEADER_NAME)
        assert request_id
        assert seen == [request_id]
        assert response.headers.get(HEADER_NAME) == request_id
        assert correlation_id.get() is None

    async def test_no_id_leaves_response_untouched(self, make_mock_request, make_mock_response) -> None:
        async def handler():
            return make_mock_response()

        response = await run_with_request_id(make_mock_request(), handler())

        assert response.headers.get(HEADER_NAME) is None

    async def test_context_reset_when_handler_raises(self, make_mock_request) -> None:
        async def handler():
            raise RuntimeError("boom")

        request = make_mock_request(headers={"X-Request-ID": "abc"})
        with pytest.raises(RuntimeError):
            await run_with_request_id(request, handler())

        assert correlation_id.get() is None


# -----------------------------------------------------------------------------
# parse_request_files Tests
# -----------------------------------------------------------------------------


class TestParseRequestFiles:
    """Tests for parse_request_files function."""

    def test_no_file_params_is_noop(self, make_mock_request) -> None:
        """Verify handlers without UploadFile params skip extraction."""
        kwargs: dict = {}
        assert parse_request_files(set(), make_mock_request(body=b"data"), kwargs) is None
        assert kwargs == {}

    def test_raw_body_becomes_anonymous_upload(self, make_mock_request) -> None:
        """Verify a non-multipart body is injected as one anonymous part."""
        request = make_mock_request(body=b"raw bytes", headers={"Content-Type": "application/octet-stream"})
        kwargs: dict = {}

        error = parse_request_files({"files"}, request, kwargs)

        assert error is None
        assert isinstance(kwargs["files"], UploadFile)
        assert list(kwargs["files"]) == [UploadPart(b"raw bytes", None)]

    def test_multipart_body_split_into_parts(self, make_mock_request, encode_multipart) -> None:
        """Verify multipart bodies are injected part by part."""
        body = encode_multipart("XYZ", [(b"a", "a.txt"), (b"b", None)])
        request = make_mock_request(body=body, headers={"Content-Type": "multipart/form-data; boundary=XYZ"})
        kwargs: dict = {}

        error = parse_request_files({"files"}, request, kwargs)

        assert error is None
        assert kwargs["files"].filenames() == ["a.txt", None]

    def test_empty_body_returns_400(self, make_mock_request) -> None:
        """Verify an empty body is reported as missing file data."""
        error = parse_request_files({"files"}, make_mock_request(body=b""), {})

        assert isinstance(error, Response)
        assert error.status_code == 400
        assert NO_FILE_DATA in error.description

    def test_multipart_without_parts_returns_400(self, make_mock_request) -> None:
        """Verify a multipart body holding no parts is reported as missing file data."""
        request = make_mock_request(body=b"--XYZ--\r\n", headers={"Content-Type": "multipart/form-data; boundary=XYZ"})
        error = parse_request_files({"files"}, request, {})

        assert isinstance(error, Response)
        assert error.status_code == 400

    def test_unreadable_body_returns_400(self, make_mock_request) -> None:
        """Verify an unreadable body is reported instead of raised."""

        class BrokenStream:
            def read(self, size: int = -1) -> bytes:
                raise OSError("boom")

        error = parse_request_files({"files"}, make_mock_request(body=BrokenStream()), {})

        assert isinstance(error, Response)
        assert error.status_code == 400
        assert "unreadable_body" in error.description


class TestErrorResponse:
    """Tests for error_response function."""

    def test_json_payload(self) -> None:
        response = error_response(409, "file_exists", file="a.txt")

        assert response.status_code == 409
        assert response.headers["content-type"] == "application/json"
        assert '"file":"a.txt"' in response.description


# -----------------------------------------------------------------------------
# UploadFile Model Tests
# -----------------------------------------------------------------------------


class TestUploadFileModel:
    """Tests for UploadFile model."""

    def test_empty_upload_file(self) -> None:
        """Verify empty UploadFile is falsy."""
        assert not UploadFile()

    def test_upload_file_with_only_empty_parts_is_falsy(self) -> None:
        """Verify parts without bytes do not count as file data."""
        assert not UploadFile(parts=[UploadPart(b"", "empty.txt")])

    def test_upload_file_with_data(self) -> None:
        """Verify UploadFile with data is truthy."""
        assert UploadFile(parts=[UploadPart(b"content", "file.txt")])

    def test_upload_file_iteration_keeps_order(self) -> None:
        """Verify UploadFile iterates parts in order, unpacking as pairs."""
        upload = UploadFile(parts=[UploadPart(b"1", "a"), UploadPart(b"2")])
        assert [(data, name) for data, name in upload] == [(b"1", "a"), (b"2", None)]
        assert len(upload) == 2

    def test_upload_file_get_returns_first_match(self) -> None:
        """Verify UploadFile.get() returns the first part with the filename."""
        upload = UploadFile(parts=[UploadPart(b"first", "dup.txt"), UploadPart(b"second", "dup.txt")])
        assert upload.get("dup.txt") == b"first"
        assert upload.get("missing") is None
