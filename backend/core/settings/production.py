# flake8: noqa
"""
Production settings. Every secret comes from ``.env.production`` or the
process environment; logs are written as JSON for the aggregator.
"""

import logging
from pathlib import Path

from .base import *
from .utils import load_environment_config, rotating_handler, route_loggers

config = load_environment_config("production")

ENVIRONMENT = "production"
DEBUG = False
SECRET_KEY = config("SECRET_KEY")
ALLOWED_HOSTS = [
    host.strip()
    for host in config("ALLOWED_HOSTS", default="api.budget-ledger.app").split(",")
    if host.strip()
]

CORS_ALLOW_ALL_ORIGINS = False
CORS_ALLOWED_ORIGINS = [
    origin.strip()
    for origin in config(
        "CORS_ALLOWED_ORIGINS", default="https://budget-ledger.app"
    ).split(",")
    if origin.strip()
]

SECURE_SSL_REDIRECT = config("SECURE_SSL_REDIRECT", default=True, cast=bool)
SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
SECURE_CONTENT_TYPE_NOSNIFF = True
SECURE_HSTS_SECONDS = config("SECURE_HSTS_SECONDS", default=3600, cast=int)
SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True

EMAIL_BACKEND = "django.core.mail.backends.smtp.EmailBackend"
EMAIL_HOST = config("EMAIL_HOST")
EMAIL_PORT = config("EMAIL_PORT", default=587, cast=int)
EMAIL_HOST_USER = config("EMAIL_HOST_USER")
EMAIL_HOST_PASSWORD = config("EMAIL_HOST_PASSWORD")
EMAIL_USE_TLS = True
DEFAULT_FROM_EMAIL = config("DEFAULT_FROM_EMAIL", default="noreply@budget-ledger.app")
ACCOUNT_DEFAULT_HTTP_PROTOCOL = "https"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": config("POSTGRES_DB"),
        "USER": config("POSTGRES_USER"),
        "PASSWORD": config("POSTGRES_PASSWORD"),
        "HOST": config("DB_HOST"),
        "PORT": config("DB_PORT", default="5432"),
        "CONN_MAX_AGE": config("DB_CONN_MAX_AGE", default=60, cast=int),
        "OPTIONS": {"connect_timeout": 5},
    }
}

# Static assets are served by whitenoise right behind SecurityMiddleware.
MIDDLEWARE.insert(
    MIDDLEWARE.index("django.middleware.security.SecurityMiddleware") + 1,
    "whitenoise.middleware.WhiteNoiseMiddleware",
)
STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage"},
}

# -----------------------------------------------------------------------------
# Logging
# -----------------------------------------------------------------------------

LOG_DIR = Path(config("LOG_DIR", default="/var/log/budget-ledger"))
LOG_DIR.mkdir(parents=True, exist_ok=True)

LOGGING["handlers"].update(
    {
        "app_json": rotating_handler(
            LOG_DIR / "app.log", formatter="json", megabytes=100, backups=10
        ),
        "errors_json": rotating_handler(
            LOG_DIR / "errors.log", level="ERROR", formatter="json", megabytes=50, backups=10
        ),
        "security_json": rotating_handler(
            LOG_DIR / "security.log", level="WARNING", formatter="json", megabytes=50, backups=10
        ),
    }
)
route_loggers(LOGGING, ["console", "app_json", "errors_json"], "INFO")
route_loggers(
    LOGGING,
    ["console", "app_json", "errors_json", "security_json"],
    "INFO",
    names=("axes",),
)
route_loggers(LOGGING, ["security_json"], "WARNING", names=("django.security",))
LOGGING["loggers"]["django.db.backends"]["level"] = "ERROR"

logging.getLogger(__name__).info(
    "Settings loaded",
    extra={
        "environment": ENVIRONMENT,
        "allowed_hosts": ALLOWED_HOSTS,
        "action": "environment_startup",
        "component": "settings",
        "severity": "low",
    },
)
