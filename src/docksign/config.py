"""Settings for DockSign, read from ``DOCKSIGN_*`` environment variables."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import DEFAULT_CATEGORY_COLOR

DEFAULT_DATA_DIR = Path.home() / ".docksign"


class Settings(BaseSettings):
    """Runtime configuration.

    Attributes:
        data_dir: Root directory for all records and uploads.
        secret_key: Key used to sign bearer tokens.
        token_max_age: Token lifetime in seconds.
        bcrypt_rounds: Cost factor for password hashes.
        max_upload_bytes: Largest accepted upload.
        default_category_color: Color given to categories created without one.
        cors_origins: Allowed browser origins.
    """

    model_config = SettingsConfigDict(env_prefix="DOCKSIGN_", env_file=".env", extra="ignore")

    data_dir: Path = DEFAULT_DATA_DIR
    secret_key: str = "dev-secret-change-me"
    token_max_age: int = 30 * 24 * 60 * 60
    bcrypt_rounds: int = 12
    max_upload_bytes: int = 25 * 1024 * 1024
    default_category_color: str = DEFAULT_CATEGORY_COLOR
    cors_origins: list[str] = ["*"]


@lru_cache
def get_settings() -> Settings:
    return Settings()
