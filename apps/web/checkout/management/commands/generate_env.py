"""
Write a starter environment file for local development.

Usage:
    uv run python apps/web/manage.py generate_env
    uv run python apps/web/manage.py generate_env --path .env.development
"""

import logging
from pathlib import Path
from typing import Any

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

logger = logging.getLogger(__name__)

DEFAULT_ENV_FILE = ".env.development"

ENV_TEMPLATE = [
    "# Environment variables file for development",
    "# DO NOT commit this file to version control (Git)",
    "SECRET_KEY=YOUR_SECRET_KEY_HERE",
    "STOREFRONT_API_URL=YOUR_API_URL_HERE",
    "STRIPE_PUBLISHABLE_KEY=YOUR_STRIPE_PUBLISHABLE_KEY_HERE",
    "CHECKOUT_REDIRECT_DELAY=10",
    "# Add other development-specific variables here if you have any",
    "DEBUG=true",
    "LOG_LEVEL=DEBUG",
]


class Command(BaseCommand):
    help = "Generate a development .env file (never overwrites an existing one)"

    def add_arguments(self, parser: Any) -> None:
        parser.add_argument(
            "--path",
            default=None,
            help=f"File to write (default: {DEFAULT_ENV_FILE} in the project root)",
        )

    def handle(self, *_args: Any, **options: Any) -> None:
        path = (
            Path(options["path"])
            if options["path"]
            else Path(settings.BASE_DIR).parent.parent / DEFAULT_ENV_FILE
        )

        if path.exists():
            self.stdout.write(
                self.style.WARNING(
                    f"The file {path.name} already exists. It will not be overwritten."
                )
            )
            self.stdout.write(
                "  If you need to update it, delete it manually and run the command again."
            )
            return

        try:
            path.write_text("\n".join(ENV_TEMPLATE) + "\n")
        except OSError as e:
            logger.exception("Error generating %s", path)
            raise CommandError(f"Could not write {path}: {e}") from e

        self.stdout.write(self.style.SUCCESS(f"File {path.name} generated successfully."))
        self.stdout.write(
            f"  Remember to fill in the API keys and other variables in {path.name}!"
        )
