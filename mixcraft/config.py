"""MIXCRAFT global configuration."""

from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8000
    env: str = "development"

    # Authentication
    auth_username: str = "admin"
    auth_password_hash: str = ""  # bcrypt hash
    jwt_secret: str = "change-me-in-production-use-openssl-rand"  # noqa: S105

    # Paths
    data_dir: Path = Path("./data")
    catalog_path: Path | None = None  # None = packaged catalog

    # Progress sync
    remote_url: str = ""
    remote_timeout_s: float = 10.0
    sync_debounce_s: float = 0.3
    bulk_chunk_size: int = 400

    model_config = {"env_prefix": "MIXCRAFT_"}


settings = Settings()
