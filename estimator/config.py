"""
Application configuration.

Values come from the environment (a local .env file is loaded first).
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


class Config:
    """Base configuration."""

    # Flask
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-in-production")
    MAX_CONTENT_LENGTH = int(os.environ.get("MAX_CONTENT_LENGTH", 10 * 1024 * 1024))

    # Model endpoint (Gemini through its OpenAI-compatible API)
    GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY", "")
    API_KEY = os.environ.get("API_KEY", "")
    GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-2.5-flash")
    GEMINI_BASE_URL = os.environ.get(
        "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta/openai/"
    )
    REQUEST_TIMEOUT = float(os.environ.get("REQUEST_TIMEOUT", 120))

    # History
    BASE_DIR = Path(__file__).parent.parent
    HISTORY_PATH = os.environ.get("HISTORY_PATH", str(BASE_DIR / "instance" / "history.json"))
    HISTORY_MAX_ITEMS = int(os.environ.get("HISTORY_MAX_ITEMS", 10))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class DevelopmentConfig(Config):
    """Development configuration."""

    DEBUG = True
    TESTING = False


class ProductionConfig(Config):
    """Production configuration."""

    DEBUG = False
    TESTING = False


class TestingConfig(Config):
    """Testing configuration."""

    DEBUG = True
    TESTING = True
    GEMINI_API_KEY = ""
    API_KEY = ""


config = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig,
}


def get_config(env=None):
    """Get configuration based on environment."""
    env = env or os.environ.get("FLASK_ENV", "development")
    return config.get(env, config["default"])


def load_settings(env=None) -> dict:
    """Plain dict of the selected configuration, for use outside Flask."""
    cls = get_config(env)
    return {key: getattr(cls, key) for key in dir(cls) if key.isupper()}
