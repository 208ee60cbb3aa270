"""
Django settings for core_backend project.

Environment overrides:
    DJANGO_SECRET_KEY, DJANGO_DEBUG, DJANGO_ALLOWED_HOSTS, DATABASE_PATH,
    CELERY_BROKER_URL, REDIS_URL (channel layer; in-memory when unset)

A backend/.env file, when present, is loaded first.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

# Values already in the environment win over backend/.env
load_dotenv(BASE_DIR / ".env")

SECRET_KEY = os.environ.get(
    "DJANGO_SECRET_KEY", "django-insecure-order-engine-development-key"
)
DEBUG = os.environ.get("DJANGO_DEBUG", "True").lower() in ("1", "true", "yes")
ALLOWED_HOSTS = [
    h.strip() for h in os.environ.get("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if h.strip()
]

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "django.contrib.staticfiles",
    "rest_framework",
    "django_filters",
    "channels",
    "core_backend",
    "orders",
    "kds",
    "payments",
    "notifications",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
    "core_backend.infrastructure.middleware.ActorContextMiddleware",
]

ROOT_URLCONF = "core_backend.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {"context_processors": ["django.template.context_processors.request"]},
    },
]

ASGI_APPLICATION = "core_backend.asgi.application"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get("DATABASE_PATH", str(BASE_DIR / "db.sqlite3")),
        "OPTIONS": {"timeout": 5},
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "en-us"
TIME_ZONE = os.environ.get("DJANGO_TIME_ZONE", "Asia/Kolkata")
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"

# --- Django REST Framework ---
REST_FRAMEWORK = {
    "DEFAULT_RENDERER_CLASSES": ["rest_framework.renderers.JSONRenderer"],
    "DEFAULT_PARSER_CLASSES": ["rest_framework.parsers.JSONParser"],
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "DEFAULT_PERMISSION_CLASSES": ["rest_framework.permissions.AllowAny"],
    "UNAUTHENTICATED_USER": None,
    "EXCEPTION_HANDLER": "core_backend.exceptions.coordination_exception_handler",
    "COERCE_DECIMAL_TO_STRING": True,
}

# --- Channels ---
REDIS_URL = os.environ.get("REDIS_URL")
if REDIS_URL:
    CHANNEL_LAYERS = {
        "default": {
            "BACKEND": "channels_redis.core.RedisChannelLayer",
            "CONFIG": {"hosts": [REDIS_URL]},
        }
    }
else:
    CHANNEL_LAYERS = {"default": {"BACKEND": "channels.layers.InMemoryChannelLayer"}}

# --- Celery ---
CELERY_BROKER_URL = os.environ.get("CELERY_BROKER_URL", "memory://")
CELERY_RESULT_BACKEND = os.environ.get("CELERY_RESULT_BACKEND", None)
CELERY_TASK_ALWAYS_EAGER = os.environ.get("CELERY_TASK_ALWAYS_EAGER", "False").lower() in ("1", "true", "yes")
CELERY_TIMEZONE = TIME_ZONE
CELERY_BEAT_SCHEDULE = {
    "purge-expired-idempotency-records": {
        "task": "core_backend.infrastructure.tasks.purge_expired_idempotency_records",
        "schedule": 60 * 60,
    },
}

# --- Order engine ---
ORDER_ENGINE = {
    "CURRENCY": os.environ.get("ORDER_ENGINE_CURRENCY", "INR"),
    "TAX_RATE": os.environ.get("ORDER_ENGINE_TAX_RATE", "0.18"),
    "CAS_MAX_ATTEMPTS": 5,
    "IDEMPOTENCY_TTL_SECONDS": 60 * 60 * 24,
    "PUBLISH_TIMEOUT_SECONDS": 2.0,
    "SETTLEMENT_TOLERANCE_MINOR": 0,
    "CATALOG_BACKEND": "orders.catalog.SettingsCatalog",
    "CATALOG": {
        "masala-dosa": {"name": "Masala Dosa", "price": "120.00", "station": "tawa", "prep_sequence": 20, "prep_minutes": 10},
        "paneer-tikka": {"name": "Paneer Tikka", "price": "260.00", "station": "tandoor", "prep_sequence": 10, "prep_minutes": 15},
        "butter-naan": {"name": "Butter Naan", "price": "60.00", "station": "tandoor", "prep_sequence": 30, "prep_minutes": 5},
        "dal-makhani": {"name": "Dal Makhani", "price": "220.00", "station": "curry", "prep_sequence": 10, "prep_minutes": 12},
        "masala-chai": {"name": "Masala Chai", "price": "40.00", "station": "beverages", "prep_sequence": 50, "prep_minutes": 3},
    },
    "TICKET_ITEM_ORDERING": "catalog",
}

# --- Logging ---
LOG_LEVEL = os.environ.get("DJANGO_LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{asctime} {levelname} {name} {message}",
            "style": "{",
        },
        "simple": {
            "format": "{levelname} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "WARNING",
    },
    "loggers": {
        "django": {"handlers": ["console"], "level": "WARNING", "propagate": False},
        "core_backend": {"level": LOG_LEVEL},
        "orders": {"level": LOG_LEVEL},
        "kds": {"level": LOG_LEVEL},
        "payments": {"level": LOG_LEVEL},
        "notifications": {"level": LOG_LEVEL},
    },
}
