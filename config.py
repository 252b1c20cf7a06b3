import os

SECRET_KEY = os.getenv("SECRET_KEY", "supersecretkey")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24 * 7))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", 12))

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "storefront")
SEED_DATA = os.getenv("SEED_DATA", "true").lower() in ("1", "true", "yes")

# Checkout pricing
SHIPPING_FEE = float(os.getenv("SHIPPING_FEE", 9.99))
FREE_SHIPPING_THRESHOLD = float(os.getenv("FREE_SHIPPING_THRESHOLD", 0))
TAX_RATE = float(os.getenv("TAX_RATE", 0.06))
CURRENCY = os.getenv("CURRENCY", "USD")
PAYMENT_DELAY_SECONDS = float(os.getenv("PAYMENT_DELAY_SECONDS", 1.0))

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
PORT = int(os.getenv("PORT", 8000))
