"""
Mock Studio - Configuration Settings
Storage backend, persisted key names, mock service defaults and API server options.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


STORAGE_BACKENDS = ("memory", "file", "redis")


class Settings(BaseSettings):
    """Mock Studio settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # ── Storage ───────────────────────────────────────────────────────
    storage_backend: str = Field(default="file", alias="STORAGE_BACKEND")
    storage_path: str = Field(default=".mockstudio", alias="STORAGE_PATH")
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")
    redis_namespace: str = Field(default="mockstudio", alias="REDIS_NAMESPACE")

    # ── Persisted Keys ────────────────────────────────────────────────
    environments_key: str = Field(default="mock-api-environments", alias="ENVIRONMENTS_KEY")
    active_environment_key: str = Field(default="mock-api-active-env", alias="ACTIVE_ENVIRONMENT_KEY")

    # ── Mock Service Defaults ─────────────────────────────────────────
    default_port: int = Field(default=3888, alias="DEFAULT_PORT")
    default_prefix: str = Field(default="", alias="DEFAULT_PREFIX")

    # ── API Server ────────────────────────────────────────────────────
    api_host: str = Field(default="127.0.0.1", alias="API_HOST")
    api_port: int = Field(default=8080, alias="API_PORT")
    cors_allowed_origins: str = Field(default="*", alias="CORS_ALLOWED_ORIGINS")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    max_notifications: int = Field(default=50, alias="MAX_NOTIFICATIONS")

    @field_validator("storage_backend")
    @classmethod
    def validate_storage_backend(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in STORAGE_BACKENDS:
            raise ValueError(f"storage backend '{v}' not in {list(STORAGE_BACKENDS)}")
        return v

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.strip().upper()

    @property
    def cors_origins(self) -> list:
        raw = self.cors_allowed_origins.strip()
        if raw == "*":
            return ["*"]
        return [o.strip() for o in raw.split(",") if o.strip()]


settings = Settings()
