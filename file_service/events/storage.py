"""Upload storage lifespan event."""

from file_service.core.lifespan import BaseEvent
from file_service.core.logger import LogIcon, logger
from file_service.core.settings import settings as st
from file_service.services.storage import FileStorage


def create_storage() -> FileStorage:
    """Build the upload storage from settings."""
    return FileStorage(upload_dir=st.UPLOAD_DIR, policy=st.UPLOAD_COLLISION_POLICY)


class StorageEvent(BaseEvent[FileStorage]):
    """Prepares the upload directory and exposes the storage as `state.storage`."""

    name = "storage"

    async def startup(self) -> FileStorage:
        storage = create_storage()
        upload_dir = storage.prepare()
        logger.info("Upload directory ready", icon=LogIcon.DATABASE, path=str(upload_dir), policy=storage.policy)
        return storage
