"""Router with upload extraction, request id binding and response handling."""

import inspect
from collections import defaultdict
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any

import orjson
from asgi_correlation_id import correlation_id
from pydantic import BaseModel
from robyn import Request, Response, SubRouter, status_codes
from robyn.robyn import HttpMethod

from file_service.core.logger import LogIcon, logger
from file_service.core.multipart import ParseError, extract_uploads
from file_service.middlewares.correlation import HEADER_NAME
from file_service.models.core import UploadFile

# Full path -> HTTP methods of routes taking an UploadFile parameter
FILE_UPLOAD_ENDPOINTS: defaultdict[str, set[str]] = defaultdict(set)

NO_FILE_DATA = "No file data has been included in the request!"


def error_response(status_code: int, error: str, **details: Any) -> Response:
    """Build a JSON error response."""
    return Response(
        status_code=status_code,
        headers={"content-type": "application/json"},
        description=orjson.dumps({"error": error, **details}).decode(),
    )


def find_upload_params(sig: inspect.Signature) -> set[str]:
    """Names of the parameters annotated as UploadFile."""
    return {name for name, param in sig.parameters.items() if param.annotation is UploadFile}


def parse_request_files(
    file_params: set[str],
    request: Request,
    kwargs: dict[str, Any],
) -> Response | None:
    """Extract uploaded files from the request body into UploadFile kwargs."""
    if not file_params:
        return None

    content_type = request.headers.get("content-type")
    try:
        parts = extract_uploads(request.body or b"", content_type)
    except ParseError as ex:
        logger.warning("Unreadable upload body", icon=LogIcon.UPLOAD, error=str(ex))
        return error_response(status_codes.HTTP_400_BAD_REQUEST, "unreadable_body", detail=str(ex))

    upload = UploadFile(parts=parts)
    if not upload:
        return error_response(
            status_codes.HTTP_400_BAD_REQUEST,
            "missing_files",
            detail=NO_FILE_DATA,
            required=sorted(file_params),
        )

    logger.info("Upload received", icon=LogIcon.UPLOAD, parts=len(upload), filenames=upload.filenames())
    for param_name in file_params:
        kwargs[param_name] = upload

    return None


def parse_response(result: Any) -> Response:
    """Convert handler result to Response."""
    match result:
        case Response():
            return result
        case BaseModel():
            return Response(
                status_code=status_codes.HTTP_200_OK,
                headers={"content-type": "application/json"},
                description=result.model_dump_json(indent=4),
            )
        case dict():
            return Response(
                status_code=status_codes.HTTP_200_OK,
                headers={"content-type": "application/json"},
                description=orjson.dumps(result).decode(),
            )
        case _:
            return Response(
                status_code=status_codes.HTTP_200_OK,
                headers={},
                description=str(result),
            )


async def run_with_request_id(request: Request, call: Awaitable[Response]) -> Response:
    """Await a handler call with the request's X-Request-ID bound to the log context, echoing it on the response.

    Robyn runs before-hooks and the handler as separate calls. The id set by
    CorrelationIdMiddleware arrives on the request headers.
    """
    request_id = request.headers.get(HEADER_NAME)
    token = correlation_id.set(request_id)
    try:
        response = await call
    finally:
        correlation_id.reset(token)

    if request_id:
        response.headers.set(HEADER_NAME, request_id)
    return response


HTTP_METHODS = (
    HttpMethod.GET,
    HttpMethod.POST,
    HttpMethod.PUT,
    HttpMethod.DELETE,
    HttpMethod.PATCH,
    HttpMethod.HEAD,
    HttpMethod.OPTIONS,
    HttpMethod.TRACE,
    HttpMethod.CONNECT,
)


def _create_method_wrapper(original_method: Callable, method_name: str, router_prefix: str = "") -> Callable:
    @wraps(original_method)
    def method_wrapper(*args, **kwargs) -> Callable:
        endpoint = args[0] if args else kwargs.get("endpoint", "")
        decorator = original_method(*args, **kwargs)

        def handler_decorator(handler: Callable) -> Callable:
            sig = inspect.signature(handler)
            file_params = find_upload_params(sig)
            has_request_param = "request" in sig.parameters

            if file_params:
                full_path = f"{router_prefix}{endpoint}".replace("//", "/")
                FILE_UPLOAD_ENDPOINTS[full_path].add(method_name)

            async def call_handler(request: Request, h_kwargs: dict[str, Any]) -> Response:
                if file_params and (error := parse_request_files(file_params, request, h_kwargs)):
                    return error

                # Pass request to handler only if it declared it
                if has_request_param:
                    h_kwargs["request"] = request

                return parse_response(await handler(**h_kwargs))

            @wraps(handler)
            async def wrapped_handler(request: Request, **h_kwargs):
                return await run_with_request_id(request, call_handler(request, h_kwargs))

            # Build signature: always include request for Robyn injection, uploads come from the body
            new_params = [inspect.Parameter("request", inspect.Parameter.POSITIONAL_OR_KEYWORD, annotation=Request)]
            new_params += [
                param for name, param in sig.parameters.items() if name != "request" and name not in file_params
            ]

            wrapped_handler.__signature__ = sig.replace(parameters=new_params)  # type: ignore[attr-defined]
            return decorator(wrapped_handler)

        return handler_decorator

    return method_wrapper


class Router(SubRouter):
    """SubRouter that extracts uploads, binds request ids and converts handler results to responses."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._prefix = kwargs.get("prefix", "")
        self._wrap_methods()

    def _wrap_methods(self) -> None:
        """Wrap HTTP methods with request handling."""
        for method in HTTP_METHODS:
            method_name = str(method).split(".")[-1].lower()
            if hasattr(self, method_name):
                original_method = getattr(self, method_name)
                wrapped_method = _create_method_wrapper(original_method, method_name, self._prefix)
                setattr(self, method_name, wrapped_method)
