"""Configuration management."""
import os
from datetime import timedelta

from dotenv import load_dotenv

# Load environment variables from the .env file
load_dotenv()


class Config:
    """Application configuration."""

    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
    SECRET_KEY = os.getenv("FLASK_SECRET_KEY")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=1)

    # MongoDB Configuration
    MONGODB_SETTINGS = {
        "db": os.getenv("MONGODB_DB", "bookhaven"),
        "host": os.getenv("MONGODB_URI", "mongodb://localhost:27017/bookhaven"),
    }

    # Cloudinary
    CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME")
    CLOUDINARY_API_KEY = os.getenv("CLOUDINARY_API_KEY")
    CLOUDINARY_API_SECRET = os.getenv("CLOUDINARY_API_SECRET")

    CORS_ORIGIN = os.getenv("VERCEL_URL", "http://localhost:3000")
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    # Client side
    API_URL = os.getenv("BOOKHAVEN_API_URL", "http://localhost:5000")
    GOOGLE_BOOKS_API_KEY = os.getenv("GOOGLE_BOOKS_API_KEY")
    HTTP_TIMEOUT = int(os.getenv("BOOKHAVEN_HTTP_TIMEOUT", "10"))
    CACHE_TTL = int(os.getenv("BOOKHAVEN_CACHE_TTL", "3600"))
