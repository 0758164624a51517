from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from functools import lru_cache
from decimal import Decimal
from typing import List
from zoneinfo import ZoneInfo


class Settings(BaseSettings):
    # Environment
    environment: str = Field(default="development", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=True, alias="LOG_JSON")

    # Property
    property_name: str = Field(default="The Tiny Home", alias="PROPERTY_NAME")
    property_timezone: str = Field(default="Europe/Paris", alias="PROPERTY_TIMEZONE")
    property_address: str = Field(
        default="98 chemin de la combe 73420 Voglans",
        alias="PROPERTY_ADDRESS"
    )
    key_handover_phone: str = Field(default="+336 62 89 45 47", alias="KEY_HANDOVER_PHONE")

    # ==============================================
    # Calendar feed (Airbnb / Booking iCal export)
    # ==============================================
    ical_url: str = Field(default="", alias="ICAL_URL")
    calendar_cache_ttl_seconds: int = Field(default=15 * 60, alias="CALENDAR_CACHE_TTL_SECONDS")
    calendar_fetch_timeout_seconds: float = Field(default=30.0, alias="CALENDAR_FETCH_TIMEOUT_SECONDS")

    # Booking window (days ahead the calendar is open)
    booking_horizon_days: int = Field(default=730, alias="BOOKING_HORIZON_DAYS")

    # ==============================================
    # Pricing
    # ==============================================
    default_nightly_price: Decimal = Field(default=Decimal("149"), alias="DEFAULT_NIGHTLY_PRICE")
    # Format: MM-DD:MM-DD:price, comma-separated, checked in order (first match wins)
    special_prices: str = Field(
        default="12-24:12-26:200,02-14:02-14:250,02-13:02-13:250,12-31:01-01:250",
        alias="SPECIAL_PRICES"
    )
    currency: str = Field(default="EUR", alias="CURRENCY")

    # ==============================================
    # PayPal (server-side order verification)
    # ==============================================
    paypal_client_id_sandbox: str = Field(default="", alias="PAYPAL_CLIENT_ID_SANDBOX")
    paypal_client_secret_sandbox: str = Field(default="", alias="PAYPAL_CLIENT_SECRET_SANDBOX")
    paypal_client_id_live: str = Field(default="", alias="PAYPAL_CLIENT_ID_LIVE")
    paypal_client_secret_live: str = Field(default="", alias="PAYPAL_CLIENT_SECRET_LIVE")
    paypal_token_timeout_seconds: float = Field(default=20.0, alias="PAYPAL_TOKEN_TIMEOUT_SECONDS")
    paypal_order_timeout_seconds: float = Field(default=30.0, alias="PAYPAL_ORDER_TIMEOUT_SECONDS")

    # ==============================================
    # Email (SendGrid)
    # ==============================================
    sendgrid_api_key: str = Field(default="", alias="SENDGRID_API_KEY")
    sendgrid_timeout_seconds: float = Field(default=20.0, alias="SENDGRID_TIMEOUT_SECONDS")
    email_from: str = Field(default="thetinyhome73@gmail.com", alias="EMAIL_FROM")
    owner_email: str = Field(default="thetinyhome73@gmail.com", alias="OWNER_EMAIL")

    # CORS - Frontend URLs from environment (comma-separated)
    allowed_origins: str = Field(
        default="http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000",
        alias="ALLOWED_ORIGINS"
    )

    # Rate limiting
    rate_limit_enabled: bool = Field(default=True, alias="RATE_LIMIT_ENABLED")
    rate_limit_storage_uri: str = Field(default="memory://", alias="RATE_LIMIT_STORAGE_URI")

    @field_validator("property_timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Fail at startup rather than on the first booking"""
        try:
            ZoneInfo(v)
        except (KeyError, ValueError) as e:
            raise ValueError(f"Unknown timezone {v!r}") from e
        return v

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.property_timezone)

    @property
    def paypal_is_live(self) -> bool:
        """Live PayPal only in production and only when both live keys are set"""
        return bool(
            self.is_production and
            self.paypal_client_id_live and
            self.paypal_client_secret_live
        )

    @property
    def paypal_api_base(self) -> str:
        if self.paypal_is_live:
            return "https://api-m.paypal.com"
        return "https://api-m.sandbox.paypal.com"

    @property
    def paypal_client_id(self) -> str:
        return self.paypal_client_id_live if self.paypal_is_live else self.paypal_client_id_sandbox

    @property
    def paypal_client_secret(self) -> str:
        return self.paypal_client_secret_live if self.paypal_is_live else self.paypal_client_secret_sandbox

    @property
    def cors_origins(self) -> List[str]:
        """
        Parse allowed origins from comma-separated string.
        Returns a list suitable for CORSMiddleware.
        """
        origins = []
        seen = set()
        for origin in self.allowed_origins.split(","):
            origin = origin.strip().rstrip("/")
            if origin and origin not in seen:
                seen.add(origin)
                origins.append(origin)
        return origins or ["http://localhost:5173"]

    @property
    def special_price_rules(self) -> list:
        """
        Parse SPECIAL_PRICES into SpecialPriceRule objects, preserving order.
        """
        from .services.pricing_engine import parse_special_prices
        return parse_special_prices(self.special_prices)

    class Config:
        env_file = ".env"
        extra = "ignore"
        populate_by_name = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
