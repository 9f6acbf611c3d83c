"""
Runtime configuration for the Netpay storefront.

Values come from the environment (optionally a .env file). Request handlers
read them through this module at call time, e.g. ``config.DELIVERY_LEAD_DAYS``.
"""
import os

from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _csv(name: str) -> list:
    return [v.strip() for v in os.getenv(name, "").split(",") if v.strip()]


DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

JWT_SECRET = os.getenv("JWT_SECRET", "change-me")
JWT_ALGORITHM = "HS256"
JWT_EXPIRES_DAYS = int(os.getenv("JWT_EXPIRES_DAYS", 7))

CLOUDINARY_URL = os.getenv("CLOUDINARY_URL")
CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME")
CLOUDINARY_API_KEY = os.getenv("CLOUDINARY_API_KEY")
CLOUDINARY_API_SECRET = os.getenv("CLOUDINARY_API_SECRET")

SMTP_HOST = os.getenv("SMTP_HOST", "smtp.gmail.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", 587))
SMTP_USER = os.getenv("SMTP_USER")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL")

# Phones that receive admin rights when they sign up
ADMIN_PHONES = _csv("ADMIN_PHONES")

DELIVERY_LEAD_DAYS = int(os.getenv("DELIVERY_LEAD_DAYS", 15))
ENFORCE_OFFER_EXPIRY = _flag("ENFORCE_OFFER_EXPIRY")

API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000")
API_TIMEOUT = float(os.getenv("API_TIMEOUT", 30))

PORT = int(os.getenv("PORT", 8000))
