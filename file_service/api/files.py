"""File upload endpoints.

`PUT /upload` stores the raw request body, `POST /files/upload` stores every
part of a multipart/form-data body. Both go through the same extraction, so
either accepts either kind of body.
"""

from robyn import Response, status_codes

from file_service.core.logger import LogIcon, logger
from file_service.core.router import Router, error_response
from file_service.middlewares.errors import exception_handler
from file_service.models.core import StoredFile, UploadFile, UploadResponse
from file_service.services.storage import FileCollisionError, FileStorage, StorageError

SAVED = "Thanks, come again."
SAVE_FAILED = "We failed to save the file, please try again."

raw_router = Router(__file__, prefix="")
form_router = Router(__file__, prefix="/files")


def get_storage(global_dependencies: dict) -> FileStorage:
    return global_dependencies["state"].storage


def store_uploads(storage: FileStorage, files: UploadFile) -> list[StoredFile] | Response:
    """Persist all uploads, mapping storage failures to error responses."""
    try:
        return storage.save_all(list(files))
    except FileCollisionError as ex:
        return error_response(status_codes.HTTP_409_CONFLICT, "file_exists", detail=SAVE_FAILED, file=ex.name)
    except StorageError as ex:
        logger.error("Upload could not be saved", icon=LogIcon.ERROR, error=str(ex))
        return Response(status_code=status_codes.HTTP_500_INTERNAL_SERVER_ERROR, headers={}, description=SAVE_FAILED)


async def upload_raw(files: UploadFile, global_dependencies) -> Response:
    """Store the request body as uploaded file(s)."""
    stored = store_uploads(get_storage(global_dependencies), files)
    if isinstance(stored, Response):
        return stored
    return Response(status_code=status_codes.HTTP_201_CREATED, headers={}, description=SAVED)


async def upload_form(files: UploadFile, global_dependencies) -> Response:
    """Store each part of a multipart upload and list the stored files."""
    stored = store_uploads(get_storage(global_dependencies), files)
    if isinstance(stored, Response):
        return stored
    body = UploadResponse(message=SAVED, files=stored)
    return Response(
        status_code=status_codes.HTTP_201_CREATED,
        headers={"content-type": "application/json"},
        description=body.model_dump_json(),
    )


raw_router.put("/upload")(exception_handler()(upload_raw))
form_router.post("/upload")(exception_handler()(upload_form))
