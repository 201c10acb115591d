#!/usr/bin/env python
"""
Command-line entry point for the budget ledger backend.

Settings default to ``core.settings.dev``; export DJANGO_SETTINGS_MODULE to
run against ``core.settings.production`` or ``core.settings.test``.
"""

import os
import sys


def main():
    os.environ.setdefault("DJANGO_SETTINGS_MODULE", "core.settings.dev")

    try:
        from django.core.management import execute_from_command_line
    except ImportError as exc:
        raise ImportError(
            "Couldn't import Django. Is it installed and is the virtual "
            "environment active?"
        ) from exc

    execute_from_command_line(sys.argv)


if __name__ == "__main__":
    main()
