"""Application settings.

Values come from ``MARKETPLACE_*`` environment variables or a ``.env`` file.
Defaults are suitable for development and tests; production refuses the
development JWT secret.
"""

import json

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEV_JWT_SECRET = "dev-only-marketplace-secret"

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="MARKETPLACE_", env_file=".env", extra="ignore")

    environment: str = "development"

    # Auth
    jwt_secret: str = DEV_JWT_SECRET
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    cors_origins: list[str] = DEFAULT_CORS_ORIGINS

    # Logging; level defaults per environment, log_dir "" disables file logs
    log_level: str | None = None
    log_dir: str = "logs"

    # Checkout
    checkout_session_ttl_seconds: int = 600
    currency: str = "myr"
    online_payment_minimum: float = 10.0

    # Platform fee tiers: (lower bound of subtotal + delivery, percentage)
    platform_fee_tiers: list[tuple[float, float]] = [(0.01, 0.0), (10.0, 3.0), (50.0, 5.0)]
    processing_fee_percentage: float = 2.9
    processing_fee_fixed: float = 1.5

    # Fallback delivery fees per address type when a seller has no settings
    default_delivery_fees: dict[str, float] = {"personal": 5.0, "campus": 2.5, "pickup": 1.0}

    # Quote expiry windows, in days
    quote_pending_expiry_days: int = 7
    quote_quoted_expiry_days: int = 14
    quote_accepted_expiry_days: int = 3

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            if not v.strip():
                return DEFAULT_CORS_ORIGINS
            if v.startswith("["):
                return json.loads(v)
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @model_validator(mode="after")
    def refuse_insecure_production(self):
        if self.environment == "production" and self.jwt_secret == DEV_JWT_SECRET:
            raise ValueError("MARKETPLACE_JWT_SECRET must be set in production")
        return self

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


settings = Settings()
