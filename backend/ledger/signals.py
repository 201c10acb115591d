import logging

from django.db.models.signals import post_migrate
from django.dispatch import receiver

logger = logging.getLogger(__name__)


@receiver(post_migrate)
def seed_global_categories(sender, app_config=None, using="default", **kwargs):
    """
    Create the default global categories after ``migrate``.

    Runs once per migrated app; only the ledger app triggers seeding and
    existing names (case-insensitive) are left untouched.
    """
    if app_config is None or app_config.label != "ledger":
        return

    from .models import Category

    existing = {
        name.lower()
        for name in Category.objects.using(using)
        .filter(user__isnull=True)
        .values_list("name", flat=True)
    }
    missing = [name for name in Category.DEFAULT_GLOBAL_NAMES if name.lower() not in existing]
    Category.objects.using(using).bulk_create(
        [Category(name=name, kind=Category.GLOBAL) for name in missing]
    )

    if missing:
        logger.info(
            "Global categories seeded",
            extra={
                "created_count": len(missing),
                "action": "global_categories_seeded",
                "component": "signals",
            },
        )
