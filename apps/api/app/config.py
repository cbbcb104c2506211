from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ALLOWED_APP_MODES = {"demo", "pilot", "production"}


class Settings(BaseSettings):
    app_name: str = "Delivery Note Service"
    app_mode: str = Field(default="demo", validation_alias="DELIVERY_APP_MODE")

    database_url: str = Field(
        default="sqlite+pysqlite:///./test.db",
        validation_alias="DELIVERY_DATABASE_URL",
    )
    cors_allowed_origins: str = "http://localhost:3000"
    testing: bool = Field(default=False, validation_alias="DELIVERY_TESTING")
    auto_create_schema: bool = Field(default=True, validation_alias="DELIVERY_AUTO_CREATE_SCHEMA")
    require_migrations: bool = Field(
        default=False, validation_alias="DELIVERY_REQUIRE_MIGRATIONS"
    )

    nats_enabled: bool = Field(default=True, validation_alias="DELIVERY_NATS_ENABLED")
    nats_url: str = Field(default="nats://localhost:4222", validation_alias="NATS_URL")
    nats_connect_timeout_s: float = 2.0
    delivery_events_stream: str = "DELIVERY_EVENTS"
    order_events_stream: str = "ORDER_EVENTS"
    order_fulfilled_subject: str = "order.fulfilled"
    order_fulfilled_durable: str = "delivery-service"

    carrier_timeout_s: float = 30.0
    carrier_max_attempts: int = 3
    carrier_initial_backoff_s: float = 1.0

    inventory_service_url: str = Field(
        default="http://localhost:3003", validation_alias="INVENTORY_SERVICE_URL"
    )
    inventory_timeout_s: float = 10.0

    registry_service_url: str = Field(default="", validation_alias="REGISTRY_SERVICE_URL")
    registry_timeout_s: float = 5.0

    tracking_interval_s: int = 30 * 60
    tracking_batch_size: int = 100

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    @field_validator("app_mode")
    @classmethod
    def validate_app_mode(cls, value: str) -> str:
        mode = value.lower().strip()
        if mode not in ALLOWED_APP_MODES:
            allowed = ", ".join(sorted(ALLOWED_APP_MODES))
            raise ValueError(f"DELIVERY_APP_MODE must be one of: {allowed}")
        return mode

    @field_validator("carrier_max_attempts")
    @classmethod
    def validate_carrier_max_attempts(cls, value: int) -> int:
        if value < 1:
            raise ValueError("carrier_max_attempts must be >= 1")
        return value


settings = Settings()


def is_production_mode() -> bool:
    return settings.app_mode == "production"


def allowed_origins() -> list[str]:
    return [origin.strip() for origin in settings.cors_allowed_origins.split(",") if origin.strip()]


def ensure_secure_runtime_settings() -> None:
    """Fail fast when production-like runtime uses unsafe defaults."""
    if not is_production_mode():
        return
    if _is_sqlite_url(settings.database_url):
        raise RuntimeError("DELIVERY_DATABASE_URL must use postgres when DELIVERY_APP_MODE=production")
    if settings.auto_create_schema:
        raise RuntimeError("DELIVERY_AUTO_CREATE_SCHEMA must be disabled in DELIVERY_APP_MODE=production")


def _is_sqlite_url(database_url: str) -> bool:
    value = database_url.strip().lower()
    return value.startswith("sqlite")
