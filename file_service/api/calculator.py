"""Calculator endpoints: integer addition of the `t1` and `t2` query parameters."""

from robyn import Request, Response, status_codes

from file_service.core.logger import LogIcon, logger
from file_service.core.router import Router
from file_service.middlewares.errors import exception_handler

router = Router(__file__, prefix="")


def add(t1: str | None, t2: str | None) -> int | None:
    """Sum two integer parameters. None if either is missing; ValueError if either is not an integer."""
    if t1 is None or t2 is None:
        return None
    return int(t1) + int(t2)


async def add_handler(request: Request) -> Response:
    result = add(request.query_params.get("t1", None), request.query_params.get("t2", None))
    if result is None:
        return Response(status_code=status_codes.HTTP_400_BAD_REQUEST, headers={}, description="")
    logger.info("Addition computed", icon=LogIcon.CALCULATOR, result=result)
    return Response(status_code=status_codes.HTTP_200_OK, headers={}, description=str(result))


# Same handler with and without the exception middleware
router.get("/add")(exception_handler()(add_handler))
router.get("/unsafeadd")(add_handler)
