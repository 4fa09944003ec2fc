"""Health check endpoint."""

from pydantic import BaseModel

from file_service.core.logger import LogIcon, logger
from file_service.core.router import Router
from file_service.core.settings import settings as st

router = Router(__file__, prefix="/")


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    service: str
    version: str
    upload_dir: str
    upload_dir_ready: bool


async def health_check(global_dependencies) -> HealthResponse:
    logger.info("Health check requested", icon=LogIcon.HEALTHCHECK)
    upload_dir = global_dependencies["state"].storage.upload_dir
    return HealthResponse(
        status="healthy",
        service=st.API_NAME,
        version=st.API_VERSION,
        upload_dir=str(upload_dir),
        upload_dir_ready=upload_dir.is_dir(),
    )


router.get("/health")(health_check)
