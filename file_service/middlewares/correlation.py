"""Request correlation id middleware."""

from uuid import uuid4

from asgi_correlation_id.middleware import is_valid_uuid4
from robyn import Request

from file_service.middlewares.base import BaseMiddleware

HEADER_NAME = "x-request-id"


def resolve_request_id(incoming: str | None) -> str:
    """Keep a valid uuid4 request id, otherwise generate a fresh one."""
    return incoming if incoming and is_valid_uuid4(incoming) else uuid4().hex


class CorrelationIdMiddleware(BaseMiddleware):
    """Stamps every request with a valid X-Request-ID.

    The router binds the stamped id to the log context while the handler runs
    and echoes it on the response (see `core.router.run_with_request_id`).
    """

    def before(self, request: Request) -> Request:
        request.headers.set(HEADER_NAME, resolve_request_id(request.headers.get(HEADER_NAME)))
        return request
