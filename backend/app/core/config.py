"""Application configuration via pydantic settings."""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from typing import Any

from pydantic import Field
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed application configuration."""

    app_env: str = Field("local", alias="APP_ENV")
    app_name: str = "Stable Ride API"
    api_v1_prefix: str = "/api/v1"

    database_url: str = Field(..., alias="DATABASE_URL")
    sync_database_url: str | None = Field(default=None, alias="SYNC_DATABASE_URL")

    secret_key: str = Field(..., alias="SECRET_KEY")
    jwt_secret_key: str = Field(default="", alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(60, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    default_admin_email: str | None = Field(default=None, alias="DEFAULT_ADMIN_EMAIL")
    default_admin_password: str | None = Field(
        default=None, alias="DEFAULT_ADMIN_PASSWORD"
    )

    redis_url: str | None = Field(default=None, alias="REDIS_URL")

    smtp_host: str | None = Field(default=None, alias="SMTP_HOST")
    smtp_port: int | None = Field(default=None, alias="SMTP_PORT")
    smtp_username: str | None = Field(default=None, alias="SMTP_USER")
    smtp_password: str | None = Field(default=None, alias="SMTP_PASSWORD")
    smtp_from: str | None = Field(default=None, alias="SMTP_FROM")

    google_maps_api_key: str | None = Field(default=None, alias="GOOGLE_MAPS_API_KEY")
    maps_distance_url: str = Field(
        "https://maps.googleapis.com/maps/api/distancematrix/json",
        alias="MAPS_DISTANCE_URL",
    )
    maps_timeout_seconds: float = Field(10.0, alias="MAPS_TIMEOUT_SECONDS")

    business_timezone: str = Field("America/Los_Angeles", alias="BUSINESS_TIMEZONE")
    enforce_business_hours: bool = Field(False, alias="ENFORCE_BUSINESS_HOURS")

    quote_ttl_minutes: int = Field(30, alias="QUOTE_TTL_MINUTES")
    sales_tax_percentage: Decimal = Field(Decimal("8.5"), alias="SALES_TAX_PERCENTAGE")
    airport_fee: Decimal = Field(Decimal("15.00"), alias="AIRPORT_FEE")
    hourly_min_hours: Decimal = Field(Decimal("2"), alias="HOURLY_MIN_HOURS")
    hourly_max_hours: Decimal = Field(Decimal("8"), alias="HOURLY_MAX_HOURS")
    max_trip_distance_miles: Decimal = Field(
        Decimal("100"), alias="MAX_TRIP_DISTANCE_MILES"
    )
    long_trip_warning_miles: Decimal = Field(
        Decimal("80"), alias="LONG_TRIP_WARNING_MILES"
    )
    service_area_center_lat: float | None = Field(
        default=None, alias="SERVICE_AREA_CENTER_LAT"
    )
    service_area_center_lng: float | None = Field(
        default=None, alias="SERVICE_AREA_CENTER_LNG"
    )
    service_area_radius_miles: float | None = Field(
        default=None, alias="SERVICE_AREA_RADIUS_MILES"
    )

    modification_cutoff_hours: int = Field(2, alias="MODIFICATION_CUTOFF_HOURS")
    max_modifications: int = Field(3, alias="MAX_MODIFICATIONS")
    cancellation_full_refund_hours: int = Field(
        24, alias="CANCELLATION_FULL_REFUND_HOURS"
    )
    cancellation_partial_refund_hours: int = Field(
        1, alias="CANCELLATION_PARTIAL_REFUND_HOURS"
    )
    cancellation_partial_refund_percentage: Decimal = Field(
        Decimal("50"), alias="CANCELLATION_PARTIAL_REFUND_PERCENTAGE"
    )
    cancellation_fee: Decimal = Field(Decimal("10.00"), alias="CANCELLATION_FEE")
    late_cancellation_fee: Decimal = Field(
        Decimal("25.00"), alias="LATE_CANCELLATION_FEE"
    )
    trip_protection_min_hours: int = Field(1, alias="TRIP_PROTECTION_MIN_HOURS")
    trip_protection_processing_fee: Decimal = Field(
        Decimal("5.00"), alias="TRIP_PROTECTION_PROCESSING_FEE"
    )
    emergency_cancellation_reasons: list[str] = Field(
        default_factory=lambda: ["medical_emergency", "weather", "vehicle_breakdown"],
        alias="EMERGENCY_CANCELLATION_REASONS",
    )

    cors_allow_origins: list[str] = Field(
        default_factory=lambda: [
            "http://localhost:5173",
            "http://localhost:3000",
        ],
        alias="CORS_ALLOW_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=False, alias="CORS_ALLOW_CREDENTIALS")

    rate_limit_default: str = Field("100/minute", alias="RATE_LIMIT_DEFAULT")
    rate_limit_login: str = Field("10/minute", alias="RATE_LIMIT_LOGIN")

    model_config = SettingsConfigDict(
        env_file=Path(__file__).resolve().parents[3] / ".env",
        case_sensitive=False,
        extra="ignore",
    )

    def model_post_init(self, __context: Any) -> None:
        """Populate JWT secret from the generic secret when not provided."""

        if not self.jwt_secret_key:
            object.__setattr__(self, "jwt_secret_key", self.secret_key)

    @field_validator("cors_allow_origins", "emergency_cancellation_reasons", mode="before")
    @classmethod
    def _split_csv(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""
    return Settings()  # type: ignore[call-arg]
