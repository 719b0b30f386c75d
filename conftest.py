import os

# Load .env.test for local overrides before any settings are read
from dotenv import load_dotenv

env_test_path = os.path.join(os.path.dirname(__file__), ".env.test")
if os.path.exists(env_test_path):
    load_dotenv(env_test_path, override=False)

# Tests run against an in-memory SQLite database and never reach a gateway
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("PAYPAL_CLIENT_ID", "paypal-client-id")
os.environ.setdefault("PAYPAL_SECRET", "paypal-secret")
os.environ.setdefault("PAYPAL_BASE_URL", "https://paypal.test")
os.environ.setdefault("SITE_URL", "http://shop.test")
os.environ.setdefault("SHIPPING_FLAT_RATE", "5.00")
os.environ.setdefault("FREE_SHIPPING_THRESHOLD", "50.00")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from libs.common.config import get_settings  # noqa: E402

# Clear cached settings to reload with the test env vars
get_settings.cache_clear()
settings = get_settings()
