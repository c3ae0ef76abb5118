from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_aliases(name: str) -> dict:
    # "orders=orders@shop.com,support=help@shop.com"
    aliases = {}
    for pair in os.environ.get(name, "").split(","):
        alias, _, address = pair.partition("=")
        if alias.strip() and address.strip():
            aliases[alias.strip()] = address.strip()
    return aliases


def _engine_options(database_uri: str) -> dict:
    # SQLite uses a singleton/static pool; pool sizing only applies to server databases
    if database_uri.startswith("sqlite"):
        return {"pool_pre_ping": True}
    return {
        "pool_size": int(os.environ.get("DB_POOL_SIZE", "10")),
        "pool_timeout": int(os.environ.get("DB_POOL_TIMEOUT", "10")),
        "pool_recycle": int(os.environ.get("DB_POOL_RECYCLE", "1800")),
        "pool_pre_ping": True,
    }


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # optional alternative location
        "sqlite:///storefront.sqlite3",  # default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = _engine_options(SQLALCHEMY_DATABASE_URI)

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Identity
    ADMIN_API_TOKEN = os.environ.get("ADMIN_API_TOKEN", "")
    CUSTOMER_TOKEN_MAX_AGE_SECONDS = int(os.environ.get("CUSTOMER_TOKEN_MAX_AGE_SECONDS", str(7 * 24 * 3600)))
    PUBLIC_BASE_URL = os.environ.get("PUBLIC_BASE_URL", "http://localhost:5000")
    CORS_ALLOWED_ORIGINS = tuple(
        o.strip() for o in os.environ.get(
            "CORS_ALLOWED_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173"
        ).split(",") if o.strip()
    )

    # Store location and delivery rules
    STORE_TIMEZONE = os.environ.get("STORE_TIMEZONE", "America/Chicago")
    STORE_LAT = float(os.environ.get("STORE_LAT", "33.1507"))
    STORE_LNG = float(os.environ.get("STORE_LNG", "-96.8236"))
    DELIVERY_RADIUS_MILES = float(os.environ.get("DELIVERY_RADIUS_MILES", "3"))
    TAX_RATE = os.environ.get("TAX_RATE", "0.0825")
    DELIVERY_FEE_TYPE = os.environ.get("DELIVERY_FEE_TYPE", "flat")
    DELIVERY_FLAT_FEE = os.environ.get("DELIVERY_FLAT_FEE", "10.00")
    DELIVERY_PER_MILE_FEE = os.environ.get("DELIVERY_PER_MILE_FEE", "1.50")
    DELIVERY_PER_ITEM_FEE = os.environ.get("DELIVERY_PER_ITEM_FEE", "0.50")
    WINDOW_CUTOFF_MINUTES = int(os.environ.get("WINDOW_CUTOFF_MINUTES", "60"))
    WINDOW_DAYS_AHEAD = int(os.environ.get("WINDOW_DAYS_AHEAD", "4"))

    # Clover POS (inventory REST API)
    CLOVER_ENVIRONMENT = os.environ.get("CLOVER_ENVIRONMENT", "sandbox")
    CLOVER_API_BASE = os.environ.get("CLOVER_API_BASE", "https://sandbox.dev.clover.com")
    CLOVER_API_TOKEN = os.environ.get("CLOVER_API_TOKEN", "")
    CLOVER_MERCHANT_ID = os.environ.get("CLOVER_MERCHANT_ID", "")
    # Clover ecommerce (card charges / refunds)
    CLOVER_ECOMM_PRIVATE_TOKEN = os.environ.get("CLOVER_ECOMM_PRIVATE_TOKEN", "")
    # Clover hosted checkout
    CLOVER_HOSTED_CHECKOUT_TOKEN = os.environ.get("CLOVER_HOSTED_CHECKOUT_TOKEN", "")
    CLOVER_WEBHOOK_SECRET = os.environ.get("CLOVER_WEBHOOK_SECRET", "")
    HTTP_TIMEOUT_SECONDS = float(os.environ.get("HTTP_TIMEOUT_SECONDS", "30"))

    # Google APIs
    GOOGLE_GEOCODING_API_KEY = os.environ.get("GOOGLE_GEOCODING_API_KEY", "")
    GOOGLE_PLACES_API_KEY = os.environ.get("GOOGLE_PLACES_API_KEY", "")
    GOOGLE_PLACE_ID = os.environ.get("GOOGLE_PLACE_ID", "")
    REVIEWS_CACHE_TTL_SECONDS = int(os.environ.get("REVIEWS_CACHE_TTL_SECONDS", str(6 * 3600)))

    # Email Configuration
    MAIL_SERVER = os.environ.get("MAIL_SERVER", "localhost")
    MAIL_PORT = int(os.environ.get("MAIL_PORT", "587"))
    MAIL_USE_TLS = _env_bool("MAIL_USE_TLS", True)
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME")
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD")
    MAIL_DOMAIN = os.environ.get("MAIL_DOMAIN", "example.com")
    MAIL_DEFAULT_SENDER = os.environ.get("MAIL_DEFAULT_SENDER", "noreply@example.com")
    MAIL_ALIASES = _env_aliases("MAIL_ALIASES")
    MAIL_SUPPRESS_SEND = _env_bool("MAIL_SUPPRESS_SEND", False)
    DRIVER_NOTIFICATION_EMAIL = os.environ.get("DRIVER_NOTIFICATION_EMAIL", "")

    # Background jobs
    BACKGROUND_JOBS_ENABLED = _env_bool("BACKGROUND_JOBS_ENABLED", True)
    GENERATE_WINDOWS_ON_STARTUP = _env_bool("GENERATE_WINDOWS_ON_STARTUP", True)
    CLOVER_SYNC_INTERVAL_SECONDS = int(os.environ.get("CLOVER_SYNC_INTERVAL_SECONDS", "300"))
    ABANDONED_CART_INTERVAL_SECONDS = int(os.environ.get("ABANDONED_CART_INTERVAL_SECONDS", "3600"))
    ABANDONED_CART_STARTUP_DELAY_SECONDS = int(os.environ.get("ABANDONED_CART_STARTUP_DELAY_SECONDS", "60"))
    ABANDONED_CART_HOURS = int(os.environ.get("ABANDONED_CART_HOURS", "24"))
    MAX_CART_REMINDERS = int(os.environ.get("MAX_CART_REMINDERS", "2"))
    CART_REMINDER_INTERVAL_HOURS = int(os.environ.get("CART_REMINDER_INTERVAL_HOURS", "48"))
    HOSTED_CHECKOUT_TTL_MINUTES = int(os.environ.get("HOSTED_CHECKOUT_TTL_MINUTES", "60"))
    HOSTED_CHECKOUT_SWEEP_INTERVAL_SECONDS = int(os.environ.get("HOSTED_CHECKOUT_SWEEP_INTERVAL_SECONDS", "600"))


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    ADMIN_API_TOKEN = "test-admin-token"
    STORE_TIMEZONE = "UTC"
    CLOVER_API_BASE = "https://clover.test"
    CLOVER_API_TOKEN = "test-token"
    CLOVER_MERCHANT_ID = "MERCHANT1"
    CLOVER_WEBHOOK_SECRET = "whsec-test"
    MAIL_SUPPRESS_SEND = True
    BACKGROUND_JOBS_ENABLED = False
    GENERATE_WINDOWS_ON_STARTUP = False
