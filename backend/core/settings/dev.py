# flake8: noqa
"""
Local development settings: Postgres on localhost, console e-mail, open CORS
for the frontend dev server and per-request query counting.
"""

import logging

from .base import *
from .utils import load_environment_config, rotating_handler, route_loggers

config = load_environment_config("development")

ENVIRONMENT = "development"
DEBUG = True
SECRET_KEY = config("SECRET_KEY", default="django-insecure-ledger-dev-key")
ALLOWED_HOSTS = ["localhost", "127.0.0.1", "0.0.0.0"]

FRONTEND_ORIGIN = config("FRONTEND_ORIGIN", default="http://localhost:3000")
CORS_ALLOWED_ORIGINS = [FRONTEND_ORIGIN, "http://127.0.0.1:3000"]
CORS_ALLOW_ALL_ORIGINS = config("CORS_ALLOW_ALL_ORIGINS", default=True, cast=bool)

EMAIL_BACKEND = "django.core.mail.backends.console.EmailBackend"
DEFAULT_FROM_EMAIL = "ledger@localhost"
ACCOUNT_DEFAULT_HTTP_PROTOCOL = "http"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": config("POSTGRES_DB", default="budget_ledger"),
        "USER": config("POSTGRES_USER", default="postgres"),
        "PASSWORD": config("POSTGRES_PASSWORD", default="postgres"),
        "HOST": config("DB_HOST", default="localhost"),
        "PORT": config("DB_PORT", default="5432"),
    }
}

# Query counting: thresholds live in core.middleware; set
# LEDGER_SQL_ECHO=True to also stream every statement to the console.
LEDGER_SQL_ECHO = config("LEDGER_SQL_ECHO", default=False, cast=bool)

MIDDLEWARE.insert(
    MIDDLEWARE.index("django.middleware.security.SecurityMiddleware") + 1,
    "core.middleware.QueryCountMiddleware",
)

# -----------------------------------------------------------------------------
# Logging
# -----------------------------------------------------------------------------

LOG_DIR = BASE_DIR / "logs"
LOG_DIR.mkdir(exist_ok=True)

LOGGING["handlers"].update(
    {
        "ledger_dev_file": rotating_handler(LOG_DIR / "ledger_dev.log", level="DEBUG"),
        "query_file": rotating_handler(
            LOG_DIR / "queries.log", level="DEBUG", megabytes=5, backups=3
        ),
    }
)
route_loggers(LOGGING, ["console", "ledger_dev_file"], "DEBUG")

LOGGING["loggers"]["core.middleware"] = {
    "handlers": ["console", "query_file"],
    "level": "DEBUG",
    "propagate": False,
}
LOGGING["loggers"]["django.db.backends"]["level"] = "DEBUG" if LEDGER_SQL_ECHO else "INFO"

logging.getLogger(__name__).info(
    "Settings loaded",
    extra={
        "environment": ENVIRONMENT,
        "sql_echo": LEDGER_SQL_ECHO,
        "action": "environment_startup",
        "component": "settings",
        "severity": "low",
    },
)
