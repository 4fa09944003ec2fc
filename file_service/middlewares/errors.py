"""Exception middleware mapping unhandled handler errors to a fixed status code."""

from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any

from robyn import Response

from file_service.core.logger import LogIcon, logger
from file_service.core.settings import settings as st

Handler = Callable[..., Awaitable[Any]]


def exception_handler(status_code: int | None = None) -> Callable[[Handler], Handler]:
    """Wrap a handler so any exception it raises becomes an empty response with `status_code`.

    Defaults to `EXCEPTION_STATUS_CODE` (418). Apply it below the route decorator:

        @router.get("/add")
        @exception_handler()
        async def add(request): ...
    """
    code = status_code or st.EXCEPTION_STATUS_CODE

    def decorator(handler: Handler) -> Handler:
        @wraps(handler)
        async def wrapper(*args, **kwargs) -> Any:
            try:
                return await handler(*args, **kwargs)
            except Exception as ex:
                logger.error(
                    f"Unhandled error in {handler.__name__}",
                    icon=LogIcon.ERROR,
                    error=repr(ex),
                    status=code,
                )
                return Response(status_code=code, headers={}, description="")

        return wrapper

    return decorator
