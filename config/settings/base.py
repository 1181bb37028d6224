"""
Django base settings for PageWatch.

This module contains settings common to all environments.
For more information on this file, see
https://docs.djangoproject.com/en/4.2/topics/settings/
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent


# Quick-start development settings - unsuitable for production
# See https://docs.djangoproject.com/en/4.2/howto/deployment/checklist/

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv(
    "SECRET_KEY",
    "django-insecure-pagewatch-dev-key-change-in-production"
)

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = os.getenv("DEBUG", "True") == "True"

ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",")


# Application definition

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Third-party apps
    "rest_framework",
    "drf_spectacular",
    # Local apps
    "pagewatch",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "config.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "config.wsgi.application"


# Database
# https://docs.djangoproject.com/en/4.2/ref/settings/#databases
# PostgreSQL in production, SQLite for development and tests
# Configured in environment-specific settings (development.py, production.py, test.py)

DATABASES = {
    # Override in environment-specific settings
}


# Password validation
# https://docs.djangoproject.com/en/4.2/ref/settings/#auth-password-validators

AUTH_PASSWORD_VALIDATORS = [
    {
        "NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.MinimumLengthValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.CommonPasswordValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.NumericPasswordValidator",
    },
]


# Internationalization
# https://docs.djangoproject.com/en/4.2/topics/i18n/

LANGUAGE_CODE = "en-us"

TIME_ZONE = "UTC"

USE_I18N = True

USE_TZ = True


# Static files (CSS, JavaScript, Images)
# https://docs.djangoproject.com/en/4.2/howto/static-files/

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

# Default primary key field type
# https://docs.djangoproject.com/en/4.2/ref/settings/#default-auto-field

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"


# Redis Cache Configuration
# https://docs.djangoproject.com/en/4.2/topics/cache/
# Configured in environment-specific settings

CACHES = {
    # Override in environment-specific settings
}


# Celery Configuration
# https://docs.celeryproject.org/en/stable/django/first-steps-with-django.html

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/1")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_TRACK_STARTED = True
CELERY_TASK_TIME_LIMIT = 10 * 60  # Tick deadline plus headroom for in-flight targets

# Task routing - crawl and maintenance queues
CELERY_TASK_ROUTES = {
    "pagewatch.tasks.run_crawl_tick": {"queue": "crawl"},
    "pagewatch.tasks.check_target_now": {"queue": "crawl"},
    "pagewatch.tasks.run_retention_sweep": {"queue": "maintenance"},
    "pagewatch.tasks.reset_daily_quotas": {"queue": "maintenance"},
    "pagewatch.tasks.purge_expired_leases": {"queue": "maintenance"},
}


# Django REST Framework Configuration
# https://www.django-rest-framework.org/

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.SessionAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "DEFAULT_PAGINATION_CLASS": "rest_framework.pagination.PageNumberPagination",
    "PAGE_SIZE": 100,
}


# DRF Spectacular (OpenAPI/Swagger) Configuration
# https://drf-spectacular.readthedocs.io/

SPECTACULAR_SETTINGS = {
    "TITLE": "PageWatch API",
    "DESCRIPTION": "Competitor pricing page change detection",
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
}


# Logging Configuration
# https://docs.djangoproject.com/en/4.2/topics/logging/

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {module} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": os.getenv("LOG_LEVEL", "INFO"),
        },
        "pagewatch": {
            "handlers": ["console"],
            "level": os.getenv("LOG_LEVEL", "INFO"),
        },
    },
}


# Sentry Configuration
# https://docs.sentry.io/platforms/python/guides/django/

SENTRY_DSN = os.getenv("SENTRY_DSN", "")
SENTRY_ENVIRONMENT = os.getenv("SENTRY_ENVIRONMENT", "development")
SENTRY_TRACES_SAMPLE_RATE = float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.1"))
SENTRY_PROFILE_SAMPLE_RATE = float(os.getenv("SENTRY_PROFILE_SAMPLE_RATE", "0.0"))

# Initialize Sentry (no-op when SENTRY_DSN is empty)
import sentry_sdk

sentry_sdk.init(
    dsn=SENTRY_DSN,
    send_default_pii=False,
    traces_sample_rate=SENTRY_TRACES_SAMPLE_RATE,
    # Profile sample rate (requires sentry-sdk[profiling])
    profiles_sample_rate=SENTRY_PROFILE_SAMPLE_RATE,
    environment=SENTRY_ENVIRONMENT,
)


# PageWatch Configuration

# Orchestrator: targets in flight per tick and the tick time budget (seconds)
PAGEWATCH_MAX_CONCURRENCY = int(os.getenv("PAGEWATCH_MAX_CONCURRENCY", "5"))
PAGEWATCH_TICK_DEADLINE_SECONDS = int(os.getenv("PAGEWATCH_TICK_DEADLINE_SECONDS", "240"))

# Per-target lease length (seconds); an expired lease can be taken over
PAGEWATCH_LEASE_SECONDS = int(os.getenv("PAGEWATCH_LEASE_SECONDS", "300"))

# Fetch timeouts (seconds)
PAGEWATCH_CHEAP_TIMEOUT = int(os.getenv("PAGEWATCH_CHEAP_TIMEOUT", "30"))
PAGEWATCH_ACCURATE_TIMEOUT = int(os.getenv("PAGEWATCH_ACCURATE_TIMEOUT", "60"))

# Requests per second allowed per fetch backend
PAGEWATCH_BACKEND_QPS = {
    "cheap": float(os.getenv("PAGEWATCH_CHEAP_QPS", "5.0")),
    "accurate": float(os.getenv("PAGEWATCH_ACCURATE_QPS", "1.0")),
}

# Eligibility: consecutive failures before pausing, and retry cooldown
PAGEWATCH_FAILURE_THRESHOLD = int(os.getenv("PAGEWATCH_FAILURE_THRESHOLD", "3"))
PAGEWATCH_FAILURE_COOLDOWN_HOURS = int(os.getenv("PAGEWATCH_FAILURE_COOLDOWN_HOURS", "24"))

# Revert detection lookback: most recent N snapshots within D days
PAGEWATCH_HASH_DEDUP_SNAPSHOTS = int(os.getenv("PAGEWATCH_HASH_DEDUP_SNAPSHOTS", "10"))
PAGEWATCH_HASH_DEDUP_DAYS = int(os.getenv("PAGEWATCH_HASH_DEDUP_DAYS", "7"))

# Normalized snapshot text cap (characters)
PAGEWATCH_MAX_NORMALIZED_LENGTH = int(os.getenv("PAGEWATCH_MAX_NORMALIZED_LENGTH", "4000"))

# Also create (non-meaningful) alerts for minor changes
PAGEWATCH_ALERT_ON_MINOR = os.getenv("PAGEWATCH_ALERT_ON_MINOR", "False") == "True"

# Global circuit breaker: throttle when today's crawls exceed expected * multiplier
PAGEWATCH_EXPECTED_DAILY_CRAWLS = int(os.getenv("PAGEWATCH_EXPECTED_DAILY_CRAWLS", "10000"))
PAGEWATCH_THROTTLE_MULTIPLIER = float(os.getenv("PAGEWATCH_THROTTLE_MULTIPLIER", "1.5"))

# Volatile targets are checked at most once per this many days
PAGEWATCH_THROTTLED_CHECK_DAYS = int(os.getenv("PAGEWATCH_THROTTLED_CHECK_DAYS", "7"))

# History retention by plan (days); None keeps everything
PAGEWATCH_RETENTION_DAYS = {
    "free": 7,
    "pro": None,
}

# Cheap fetches shorter than this (characters) escalate to the browser
PAGEWATCH_MIN_CONTENT_LENGTH = int(os.getenv("PAGEWATCH_MIN_CONTENT_LENGTH", "500"))
