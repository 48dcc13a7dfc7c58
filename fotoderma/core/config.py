from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_name: str = "FotoDerma API"
    environment: str = "development"
    database_url: str = (
        "postgresql+psycopg2://fotoderma:fotoderma@db:5432/fotoderma"  # pragma: allowlist secret
    )
    redis_url: str = "redis://redis:6379/0"
    timezone: str = "America/El_Salvador"
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    identity_project_id: str = ""
    identity_api_key: str = ""
    identity_check_revoked: bool = False
    identity_mock_mode: bool = False
    identity_certs_url: str = (
        "https://www.googleapis.com/robot/v1/metadata/x509/"
        "securetoken@system.gserviceaccount.com"
    )
    identity_timeout_seconds: float = 10.0

    storage_endpoint: str = "minio:9000"
    storage_access_key: str = "minioadmin"
    storage_secret_key: str = "minioadmin"  # pragma: allowlist secret
    storage_secure: bool = False
    storage_bucket: str = "fotoderma-photos"
    storage_public_url: str = "http://localhost:9000"
    storage_timeout_seconds: float = 30.0

    upload_max_files: int = 10
    upload_max_bytes: int = 5 * 1024 * 1024

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()


settings = get_settings()
