"""
Helpers shared by the environment settings modules.

``load_environment_config`` picks the ``.env`` file for an environment;
``rotating_handler`` and ``route_loggers`` keep the per-environment LOGGING
tweaks short.
"""

import logging
from pathlib import Path

from decouple import Config, RepositoryEnv
from decouple import config as default_config

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[3]

ENV_FILES = {
    "development": ".env.dev",
    "production": ".env.production",
}

APP_LOGGERS = ("django", "users", "ledger", "axes", "allauth")


def load_environment_config(environment, root=PROJECT_ROOT):
    """
    Return a decouple config reading ``<root>/<env file>`` when it exists,
    otherwise the process environment.
    """
    env_path = Path(root) / ENV_FILES.get(environment, ".env")

    if env_path.exists():
        logger.info(
            "Loading environment file",
            extra={
                "environment": environment,
                "env_file": env_path.name,
                "action": "environment_config_loaded",
                "component": "settings",
                "severity": "low",
            },
        )
        return Config(RepositoryEnv(str(env_path)))

    logger.warning(
        "Environment file missing, falling back to process environment",
        extra={
            "environment": environment,
            "env_file": env_path.name,
            "action": "environment_config_missing",
            "component": "settings",
            "severity": "medium",
        },
    )
    return default_config


def rotating_handler(filename, level="INFO", formatter="structured", megabytes=10, backups=5):
    """Build a RotatingFileHandler entry for ``LOGGING["handlers"]``."""
    return {
        "level": level,
        "class": "logging.handlers.RotatingFileHandler",
        "filename": str(filename),
        "maxBytes": megabytes * 1024 * 1024,
        "backupCount": backups,
        "formatter": formatter,
        "encoding": "utf-8",
    }


def route_loggers(logging_config, handlers, level, names=APP_LOGGERS):
    """Point every named logger that exists in ``logging_config`` at ``handlers``."""
    loggers = logging_config["loggers"]
    for name in names:
        if name in loggers:
            loggers[name]["handlers"] = list(handlers)
            loggers[name]["level"] = level
    return logging_config
