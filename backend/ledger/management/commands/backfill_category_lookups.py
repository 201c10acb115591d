import logging

from django.core.management.base import BaseCommand
from django.db import transaction

from ledger.models import CategoryLookup, Transaction

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Build category lookups from already categorized transactions"

    def handle(self, *args, **options):
        transactions = (
            Transaction.objects.filter(category__isnull=False, transfer=False)
            .exclude(description="")
            .select_related("account__user", "category")
            .order_by("trx_date", "id")
        )

        upserted = 0
        with transaction.atomic():
            for trx in transactions.iterator():
                lookup = CategoryLookup.upsert_for(trx.account.user, trx.category, trx.description)
                if lookup is not None:
                    upserted += 1

        logger.info(
            "Category lookup backfill finished",
            extra={
                "upserted_count": upserted,
                "action": "category_lookups_backfilled",
                "component": "backfill_category_lookups",
            },
        )
        self.stdout.write(
            self.style.SUCCESS(
                f"Processed {upserted} transactions, {CategoryLookup.objects.count()} lookups total"
            )
        )
