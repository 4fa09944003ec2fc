"""Filesystem persistence for uploaded files."""

import hashlib
import uuid
from enum import StrEnum
from pathlib import Path, PurePosixPath, PureWindowsPath

from file_service.core.logger import LogIcon, logger
from file_service.models.core import StoredFile, UploadPart


class StorageError(OSError):
    """An upload could not be written to the upload directory."""


class FileCollisionError(StorageError):
    """An upload targets a file name that already exists."""

    def __init__(self, name: str) -> None:
        super().__init__(f"File already exists: {name}")
        self.name = name


class CollisionPolicy(StrEnum):
    """What to do when an upload targets an existing file name."""

    REJECT = "reject"
    OVERWRITE = "overwrite"
    RENAME = "rename"


def content_id(data: bytes) -> str:
    """Name-based (version 3, MD5) UUID of the bytes, as used for anonymous uploads."""
    return str(uuid.UUID(bytes=hashlib.md5(data).digest(), version=3))


def safe_filename(filename: str | None) -> str | None:
    """Reduce a client-declared filename to a bare file name, or None if nothing usable remains."""
    if not filename:
        return None
    # Clients may send full Windows or POSIX paths
    name = PurePosixPath(PureWindowsPath(filename).name).name
    name = name.replace("\x00", "").strip()
    if name in {"", ".", ".."}:
        return None
    return name


class FileStorage:
    """Writes uploads into a single directory."""

    def __init__(self, upload_dir: Path | str, policy: CollisionPolicy | str = CollisionPolicy.REJECT) -> None:
        self.upload_dir = Path(upload_dir)
        self.policy = CollisionPolicy(policy)

    def prepare(self) -> Path:
        """Create the upload directory if needed."""
        try:
            self.upload_dir.mkdir(parents=True, exist_ok=True)
        except OSError as ex:
            raise StorageError(f"Cannot create upload directory {self.upload_dir}: {ex}") from ex
        return self.upload_dir

    def resolve_name(self, part: UploadPart) -> tuple[str, bool]:
        """Pick the target file name for a part and whether it was declared by the client."""
        if name := safe_filename(part.filename):
            return name, True
        return content_id(part.data), False

    def save(self, part: UploadPart) -> StoredFile:
        """Persist one upload according to the collision policy."""
        name, declared = self.resolve_name(part)
        path = self._write(name, part.data)
        logger.info("Stored upload", icon=LogIcon.DATABASE, file=path.name, size=len(part.data))
        return StoredFile(name=path.name, path=path, size=len(part.data), declared=declared)

    def save_all(self, parts: list[UploadPart]) -> list[StoredFile]:
        """Persist uploads in order. Files written before a failure are kept."""
        return [self.save(part) for part in parts]

    def _write(self, name: str, data: bytes) -> Path:
        path = self.upload_dir / name
        match self.policy:
            case CollisionPolicy.OVERWRITE:
                return self._write_file(path, data, mode="wb")
            case CollisionPolicy.REJECT:
                try:
                    return self._write_file(path, data, mode="xb")
                except FileExistsError as ex:
                    logger.warning("Upload rejected, file exists", icon=LogIcon.CONFLICT, file=name)
                    raise FileCollisionError(name) from ex
            case CollisionPolicy.RENAME:
                for candidate in self._candidates(path):
                    try:
                        return self._write_file(candidate, data, mode="xb")
                    except FileExistsError:
                        continue
        raise StorageError(f"No file name available for {name}")

    @staticmethod
    def _candidates(path: Path):
        yield path
        counter = 1
        while True:
            yield path.with_name(f"{path.stem}-{counter}{path.suffix}")
            counter += 1

    @staticmethod
    def _write_file(path: Path, data: bytes, mode: str) -> Path:
        try:
            with path.open(mode) as file_handle:
                file_handle.write(data)
        except FileExistsError:
            raise
        except OSError as ex:
            raise StorageError(f"Failed to write {path.name}: {ex}") from ex
        return path
