import os
from functools import lru_cache
from pathlib import Path as _Path

from dotenv import load_dotenv as _load_dotenv
from pydantic import BaseModel, Field

_load_dotenv(dotenv_path=_Path(__file__).resolve().parent.parent / ".env", override=False)

DEFAULT_MIGRATIONS_DIR = _Path(__file__).resolve().parent / "migrations" / "scripts"


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class Settings(BaseModel):
    # Support multiple common env var names for Mongo connection string
    mongo_uri: str = Field(
        default_factory=lambda: (
            os.getenv("MONGODB_URI")
            or os.getenv("MONGO_URI")
            or os.getenv("MONGO_URL")
            or ""
        )
    )
    mongo_db: str = Field(default_factory=lambda: os.getenv("MONGO_DB_NAME", "profilebuilder"))
    # Optional: provide a non-SRV fallback URI (e.g., mongodb://127.0.0.1:27017)
    mongo_alt_uri: str = Field(default_factory=lambda: os.getenv("MONGO_ALT_URI", ""))
    mongo_direct: bool = Field(default_factory=lambda: _env_flag("MONGO_DIRECT"))
    # Fast-fail defaults so a missing database surfaces quickly in the CLI and API
    server_selection_timeout_ms: int = Field(
        default_factory=lambda: int(os.getenv("MONGO_SERVER_SELECTION_TIMEOUT_MS", "3000"))
    )
    connect_timeout_ms: int = Field(
        default_factory=lambda: int(os.getenv("MONGO_CONNECT_TIMEOUT_MS", "3000"))
    )
    socket_timeout_ms: int = Field(
        default_factory=lambda: int(os.getenv("MONGO_SOCKET_TIMEOUT_MS", "5000"))
    )

    environment: str = Field(
        default_factory=lambda: (
            os.getenv("APP_ENV") or os.getenv("ENVIRONMENT") or "development"
        ).strip().lower()
    )
    migrations_dir: _Path = Field(
        default_factory=lambda: _Path(os.getenv("MIGRATIONS_DIR") or DEFAULT_MIGRATIONS_DIR)
    )
    cors_origin: str = Field(default_factory=lambda: os.getenv("CORS_ORIGIN", "http://localhost:3000"))

    @property
    def is_production(self) -> bool:
        return self.environment in ("production", "prod")


@lru_cache()
def get_settings() -> Settings:
    return Settings()
