# flake8: noqa
"""
Test settings: in-memory SQLite, no lockouts, no e-mail verification.
"""

from .base import *

ENVIRONMENT = "test"

DEBUG = False
SECRET_KEY = "django-insecure-test-key"
ALLOWED_HOSTS = ["testserver", "localhost"]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]
EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"

ACCOUNT_EMAIL_VERIFICATION = "none"
AXES_ENABLED = False

# Never call the real OpenAI API from tests
OPENAI_API_KEY = ""

MEDIA_ROOT = BASE_DIR / "test_media"

LOGGING["handlers"]["console"]["level"] = "WARNING"
