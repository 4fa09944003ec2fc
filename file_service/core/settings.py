"""Unified settings for robyn-file-service."""

import tomllib
from pathlib import Path
from typing import ClassVar, Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


def read_pyproject(pyproject_path: Path) -> dict:
    """Read pyproject.toml into a dict."""
    with pyproject_path.open("rb") as file_handle:
        return tomllib.load(file_handle)


def get_version(base_dir: Path) -> str:
    """Get version from git tags or fallback to package metadata."""
    try:
        import git

        repo = git.Repo(base_dir, search_parent_directories=True)
        latest_tag = max(repo.tags, key=lambda t: t.commit.committed_datetime, default=None)
        return str(latest_tag) if latest_tag else "0.0.0"
    except Exception:
        try:
            import importlib.metadata

            return importlib.metadata.version("robyn-file-service")
        except Exception:
            return "0.0.0"


class Settings(BaseSettings):
    """Unified settings for the calculator and file upload service."""

    DEBUG: bool = True
    ENVIRONMENT: Literal["DEV", "PROD"] = "DEV"
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    # ClassVar to prevent Pydantic from trying to load from env
    BASE_DIR: ClassVar[Path] = Path(__file__).parent.parent.parent
    PROJECT: ClassVar[dict] = read_pyproject(BASE_DIR / "pyproject.toml")
    API_NAME: ClassVar[str] = PROJECT.get("project", {}).get("name", "robyn-file-service")
    API_DESCRIPTION: ClassVar[str] = PROJECT.get("project", {}).get("description", "File upload service")
    API_VERSION: ClassVar[str] = get_version(BASE_DIR)

    # Server
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8080

    # Uploads
    UPLOAD_DIR: Path = BASE_DIR / "data" / "uploads"
    UPLOAD_COLLISION_POLICY: Literal["reject", "overwrite", "rename"] = "reject"

    # Status returned by the exception middleware for unhandled handler errors
    EXCEPTION_STATUS_CODE: int = 418

    @property
    def api_url(self) -> str:
        return f"http://{self.API_HOST}:{self.API_PORT}"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


settings = Settings()  # type: ignore
