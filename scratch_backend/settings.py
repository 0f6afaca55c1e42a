import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "django-insecure-scratchcard-dev-key")

DEBUG = os.getenv("DJANGO_DEBUG", "false").lower() in {"1", "true", "yes"}

ALLOWED_HOSTS = [host for host in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",") if host]

INSTALLED_APPS = [
    "scratchcard",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.locale.LocaleMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
]

ROOT_URLCONF = "scratch_backend.urls"

WSGI_APPLICATION = "scratch_backend.wsgi.application"

# Cards, prizes and results live in the ledger backend; nothing is stored locally.
DATABASES = {}

LANGUAGE_CODE = os.getenv("LANGUAGE_CODE", "en-us")
LANGUAGES = [
    ("en", "English"),
    ("zh-hant", "Traditional Chinese"),
]
TIME_ZONE = os.getenv("TIME_ZONE", "UTC")
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LEDGER_API_URL = os.getenv("LEDGER_API_URL", "")
LEDGER_TIMEOUT = int(os.getenv("LEDGER_TIMEOUT", "10"))

REDIS_URL = os.getenv("REDIS_URL", "redis://127.0.0.1:6379/0")
SCRATCHCARD_LOCK_PREFIX = os.getenv("SCRATCHCARD_LOCK_PREFIX", "scratchcard:play:")
SCRATCHCARD_LOCK_TIMEOUT = int(os.getenv("SCRATCHCARD_LOCK_TIMEOUT", "10"))
SCRATCHCARD_LOCK_WAIT = int(os.getenv("SCRATCHCARD_LOCK_WAIT", "5"))

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "default"},
    },
    "root": {"handlers": ["console"], "level": os.getenv("LOG_LEVEL", "INFO")},
}
