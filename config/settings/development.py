"""
Development settings for PageWatch.

Uses local SQLite, Redis, and relaxed security settings for development.
"""

import os
from .base import *

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = True

ALLOWED_HOSTS = ["localhost", "127.0.0.1"]

# Development database - SQLite for simplicity
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
    }
}

# Uncomment below to develop against PostgreSQL
# DATABASES = {
#     "default": {
#         "ENGINE": "django.db.backends.postgresql",
#         "NAME": os.getenv("DB_NAME", "pagewatch"),
#         "USER": os.getenv("DB_USER", "postgres"),
#         "PASSWORD": os.getenv("DB_PASSWORD", ""),
#         "HOST": os.getenv("DB_HOST", "localhost"),
#         "PORT": os.getenv("DB_PORT", "5432"),
#     }
# }

# Development Cache - backs the API throttle only, local memory is enough
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "pagewatch-dev",
    }
}

# Development Celery
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/1")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")

# Development logging - verbose output
LOGGING["loggers"]["django"]["level"] = "DEBUG"
LOGGING["loggers"]["pagewatch"]["level"] = "DEBUG"

# Email backend for development - console output
EMAIL_BACKEND = "django.core.mail.backends.console.EmailBackend"

# Development-specific settings
INTERNAL_IPS = ["127.0.0.1"]

# Less strict password validators for development
AUTH_PASSWORD_VALIDATORS = []

# Relaxed pipeline settings for development
PAGEWATCH_ACCURATE_TIMEOUT = 90  # More time for debugging
PAGEWATCH_MAX_CONCURRENCY = 2
PAGEWATCH_FAILURE_COOLDOWN_HOURS = 0  # Retry failed targets immediately
