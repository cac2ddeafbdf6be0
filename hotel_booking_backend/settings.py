"""Settings for the hotel booking backend.

Values come from the environment; a ``.env`` file next to ``manage.py`` is
loaded first when present. Defaults target local development on SQLite.
PostgreSQL is selected with ``DB_ENGINE=django.db.backends.postgresql``.
"""

import os
from pathlib import Path

import structlog
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

load_dotenv(BASE_DIR / ".env")


def get_env(var_name, default=None):
    value = os.environ.get(var_name)
    return default if value in (None, "") else value


SECRET_KEY = get_env("DJANGO_SECRET_KEY", "replace-me-in-production")

DEBUG = get_env("DJANGO_DEBUG", "False").lower() == "true"

ALLOWED_HOSTS = [host.strip() for host in get_env("DJANGO_ALLOWED_HOSTS", "*").split(",") if host.strip()]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "hotel_booking",
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

ROOT_URLCONF = "hotel_booking_backend.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "hotel_booking_backend.wsgi.application"

# Database

DB_ENGINE = get_env("DB_ENGINE", "django.db.backends.sqlite3")

if DB_ENGINE == "django.db.backends.sqlite3":
    DATABASES = {
        "default": {
            "ENGINE": DB_ENGINE,
            "NAME": get_env("DB_NAME", BASE_DIR / "db.sqlite3"),
            "OPTIONS": {
                # writers queue on the busy timeout instead of failing on lock upgrade
                "transaction_mode": "IMMEDIATE",
                "timeout": 20,
            },
            # file-backed so concurrency tests share one database across threads
            "TEST": {"NAME": BASE_DIR / "test_db.sqlite3"},
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": DB_ENGINE,
            "NAME": get_env("DB_NAME", "hotel_booking"),
            "USER": get_env("DB_USER", ""),
            "PASSWORD": get_env("DB_PASSWORD", ""),
            "HOST": get_env("DB_HOST", ""),
            "PORT": get_env("DB_PORT", ""),
            "CONN_MAX_AGE": int(get_env("DB_CONN_MAX_AGE", 60)),
        }
    }

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# Internationalization

LANGUAGE_CODE = "en-us"

TIME_ZONE = get_env("DJANGO_TIME_ZONE", "UTC")

USE_I18N = True

USE_TZ = True

STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

# Django Rest Framework

REST_FRAMEWORK = {
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.AllowAny",
    ],
    "EXCEPTION_HANDLER": "hotel_booking.errors.exception_handler",
}

# Booking admission

BOOKING_LOCK_TIMEOUT = float(get_env("BOOKING_LOCK_TIMEOUT", 5))
BOOKING_LOCK_LEASE = float(get_env("BOOKING_LOCK_LEASE", 30))
BOOKING_REFERENCE_ATTEMPTS = int(get_env("BOOKING_REFERENCE_ATTEMPTS", 3))

# Logging

LOG_LEVEL = get_env("LOG_LEVEL", "INFO").upper()

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "json": {
            "()": "structlog.stdlib.ProcessorFormatter",
            "processor": structlog.processors.JSONRenderer(),
            "foreign_pre_chain": [
                structlog.stdlib.add_logger_name,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.add_log_level,
            ],
        }
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json",
        }
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        "django": {"handlers": ["console"], "level": "INFO", "propagate": False},
        "hotel_booking": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
    },
}
