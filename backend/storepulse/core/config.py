from functools import lru_cache

from pydantic import AnyUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    debug: bool = Field(False, description="Enable FastAPI debug mode")
    environment: str = Field(
        default="development",
        description="Runtime environment (development|staging|production)",
    )
    store_api_base_url: AnyUrl | str = Field(
        default="http://localhost:5000",
        description="Base URL of the store platform REST API",
    )
    store_api_token: str | None = Field(
        default=None,
        description="Optional bearer token forwarded to the store platform API",
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        description="Transport timeout applied to every platform API request",
        gt=0,
    )
    default_period_days: int = Field(
        default=30,
        description="Analytics window in days used when a view does not specify one",
        ge=1,
    )
    product_view_limit: int = Field(
        default=10,
        description="Number of ranked products requested from product-view analytics",
        ge=1,
    )
    insight_display_limit: int = Field(
        default=3,
        description="Number of insights shown on the dashboard",
        ge=1,
    )
    promo_display_limit: int = Field(
        default=6,
        description="Number of promotional suggestions shown on the insights view",
        ge=1,
    )
    orders_display_limit: int = Field(
        default=50,
        description="Rows of the orders report shown on screen (exports are never capped)",
        ge=1,
    )
    currency_symbol: str = Field(
        default="₹",
        description="Currency symbol used when rendering amounts into insight text",
    )

    @field_validator("store_api_base_url", mode="before")
    @classmethod
    def _strip_trailing_slash(cls, value: object) -> object:
        if isinstance(value, str):
            candidate = value.strip()
            if not candidate:
                raise ValueError("STORE_API_BASE_URL must not be blank")
            return candidate.rstrip("/")
        return value

    @field_validator("store_api_token", mode="before")
    @classmethod
    def _blank_token_is_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def resolved_base_url(self) -> str:
        return str(self.store_api_base_url).rstrip("/")


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
