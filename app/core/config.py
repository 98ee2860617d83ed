from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_env: str = "local"
    api_v1_prefix: str = "/api/v1"
    log_level: str = "INFO"

    # Security
    secret_key: str = "changeme"  # override in .env
    access_token_expire_minutes: int = 60 * 24 * 7
    refresh_token_expire_days: int = 30
    jwt_issuer: str = "oralvis-healthcare"
    jwt_audience: str = "oralvis-users"
    jwt_refresh_audience: str = "oralvis-refresh"
    auth_cookie_name: str = "token"

    # Database
    database_url: str

    # File storage
    file_storage_root: str = "uploads"
    base_url: str = "http://localhost:5000"
    public_base_url: str | None = None
    max_upload_size: int = 10 * 1024 * 1024
    allowed_image_types: str = "image/jpeg,image/png,image/jpg"

    # Submission lifecycle
    enforce_status_guards: bool = False

    # Pydantic v2 style config
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def allowed_image_type_list(self) -> list[str]:
        return [t.strip() for t in self.allowed_image_types.split(",") if t.strip()]


@lru_cache()
def get_settings() -> Settings:
    """
    Cached settings instance so the .env is parsed once.
    """
    return Settings()
