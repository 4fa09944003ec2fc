"""Core models for request/response handling."""

from pathlib import Path
from typing import NamedTuple

from pydantic import BaseModel, Field


class UploadPart(NamedTuple):
    """One extracted upload: raw bytes plus the client-declared filename, if any."""

    data: bytes
    filename: str | None = None


class UploadFile:
    """Container for the parts extracted from an upload request, in body order."""

    __slots__ = ("parts",)

    def __init__(self, parts: list[UploadPart] | None = None) -> None:
        self.parts = list(parts or [])

    def __bool__(self) -> bool:
        return any(part.data for part in self.parts)

    def __iter__(self):
        return iter(self.parts)

    def __len__(self) -> int:
        return len(self.parts)

    def filenames(self) -> list[str | None]:
        """Declared filenames in body order, None for anonymous parts."""
        return [part.filename for part in self.parts]

    def get(self, filename: str) -> bytes | None:
        """Get the bytes of the first part declaring `filename`."""
        return next((part.data for part in self.parts if part.filename == filename), None)


class StoredFile(BaseModel):
    """A persisted upload."""

    name: str
    path: Path = Field(exclude=True)
    size: int
    declared: bool


class UploadResponse(BaseModel):
    """Response body for multipart uploads."""

    message: str
    files: list[StoredFile]
