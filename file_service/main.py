"""robyn-file-service - calculator and file upload service powered by Robyn."""

from robyn import Robyn

from file_service.api.calculator import router as calculator_router
from file_service.api.files import form_router, raw_router
from file_service.api.health import router as health_router
from file_service.core.lifespan import create_lifespan
from file_service.core.logger import LogIcon, logger
from file_service.core.settings import settings as st
from file_service.events.storage import StorageEvent
from file_service.middlewares.base import MiddlewareHandler
from file_service.middlewares.correlation import CorrelationIdMiddleware
from file_service.middlewares.files import FileUploadOpenAPIMiddleware

app = Robyn(__file__)

# Lifespan events
lifespan = create_lifespan(app)
lifespan.register(StorageEvent)

app.startup_handler(lifespan.startup)
app.shutdown_handler(lifespan.shutdown)

# Routers
app.include_router(health_router)
app.include_router(calculator_router)
app.include_router(raw_router)
app.include_router(form_router)

# Middlewares, registered after routers so route-wide ones see every endpoint
middlewares = MiddlewareHandler(app)
middlewares.register(CorrelationIdMiddleware).register(FileUploadOpenAPIMiddleware)


def main() -> None:
    logger.info(f"Starting {st.API_NAME}", icon=LogIcon.START, host=st.API_HOST, port=st.API_PORT)
    app.start(host=st.API_HOST, port=st.API_PORT)


if __name__ == "__main__":
    main()
