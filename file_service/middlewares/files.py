"""File upload middleware for OpenAPI request body patching."""

import orjson
from robyn import Response

from file_service.core.logger import LogIcon, logger
from file_service.core.router import FILE_UPLOAD_ENDPOINTS
from file_service.middlewares.base import BaseMiddleware


def upload_request_body(method: str) -> dict:
    """OpenAPI requestBody for an upload route: raw bytes for PUT, multipart form for the rest."""
    if method == "put":
        return {
            "content": {"application/octet-stream": {"schema": {"type": "string", "format": "binary"}}},
            "required": True,
        }
    return {
        "content": {
            "multipart/form-data": {
                "schema": {
                    "type": "object",
                    "properties": {
                        "file": {
                            "type": "array",
                            "items": {"type": "string", "format": "binary"},
                            "description": "Files to upload",
                        }
                    },
                    "required": ["file"],
                }
            }
        },
        "required": True,
    }


def patch_openapi_spec(spec: dict) -> dict:
    """Set upload request bodies on the upload endpoints present in an OpenAPI document."""
    paths = spec.get("paths", {})
    for endpoint, methods in FILE_UPLOAD_ENDPOINTS.items():
        for method in methods & paths.get(endpoint, {}).keys():
            paths[endpoint][method]["requestBody"] = upload_request_body(method)
    return spec


class FileUploadOpenAPIMiddleware(BaseMiddleware):
    """Patches OpenAPI responses so upload endpoints document their request bodies."""

    endpoints = frozenset(["/openapi.json"])

    def after(self, response: Response) -> Response:
        if not FILE_UPLOAD_ENDPOINTS:
            return response

        try:
            spec = orjson.loads(response.description)
        except orjson.JSONDecodeError as ex:
            logger.warning("OpenAPI response is not JSON, left unpatched", icon=LogIcon.WARNING, error=str(ex))
            return response

        response.description = orjson.dumps(patch_openapi_spec(spec)).decode()
        return response
