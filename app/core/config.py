from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - SUPABASE_URL
      - DATABASE_URL (Supabase Postgres connection string)
      - SUPABASE_JWT_SECRET (JWT signing secret from Supabase project settings)

    Optional:
      - SUPABASE_SERVICE_ROLE_KEY (only used for the pincode import)
      - UPI_* / SHIPPING_* / PAYMENT_* / GEOCODE_* (checkout tuning)
    """

    PROJECT_NAME: str = "Cigarro Checkout API"
    API_V1_STR: str = "/api/v1"

    # Supabase / DB config
    SUPABASE_URL: str
    DATABASE_URL: str

    # JWT verification (backend-side)
    SUPABASE_JWT_SECRET: str
    SUPABASE_JWT_ALG: str = "HS256"

    # Service role key bypasses RLS (backend only)
    SUPABASE_SERVICE_ROLE_KEY: str | None = None

    # UPI payee shown in wallet apps
    UPI_PAYEE_VPA: str = "hrejuh@upi"
    UPI_PAYEE_NAME: str = "Cigarro"

    # Shipping schedule (INR), keyed by method
    SHIPPING_STANDARD_COST: float = 0.0
    SHIPPING_EXPRESS_COST: float = 150.0
    SHIPPING_OVERNIGHT_COST: float = 300.0

    # Cosmetic per-session discount in [0.01, 0.99]
    LUCKY_DISCOUNT_ENABLED: bool = True

    # Payment verification
    PAYMENT_VERIFY_DELAY_SECONDS: float = 60.0
    PAYMENT_WEBHOOK_URL: str = "http://localhost:8788/payment-email-webhook"
    PAYMENT_WEBHOOK_SECRET: str = "default-secret"
    PAYMENT_WEBHOOK_TIMEOUT_SECONDS: float = 90.0

    # Reverse geocoding (Nominatim-compatible)
    GEOCODE_REVERSE_URL: str = "https://nominatim.openstreetmap.org/reverse"
    GEOCODE_USER_AGENT: str = "Cigarro-Checkout/1.0"
    GEOCODE_TIMEOUT_SECONDS: float = 15.0

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
