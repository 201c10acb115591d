import logging

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand

from ledger.models import Transaction
from ledger.services import CategorySuggester

logger = logging.getLogger(__name__)

User = get_user_model()


class Command(BaseCommand):
    help = "Assign suggested categories to uncategorized transactions"

    def add_arguments(self, parser):
        parser.add_argument(
            "--user",
            help="Only backfill transactions of the user with this e-mail",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Report what would change without saving",
        )

    def handle(self, *args, **options):
        users = User.objects.all()
        if options.get("user"):
            users = users.filter(email__iexact=options["user"])

        updated = 0
        for user in users.iterator():
            suggester = CategorySuggester(user)
            transactions = (
                Transaction.objects.filter(account__user=user, category__isnull=True, transfer=False)
                .exclude(description="")
                .only("id", "description")
            )
            for trx in transactions.iterator():
                suggestion = suggester.suggest(trx.description)
                if suggestion is None or suggestion.category is None:
                    continue
                updated += 1
                self.stdout.write(
                    f"{trx.id}: {trx.description!r} -> {suggestion.category.name} ({suggestion.source})"
                )
                if not options["dry_run"]:
                    # Queryset update keeps balances and lookups untouched
                    Transaction.objects.filter(pk=trx.pk).update(category=suggestion.category)

        logger.info(
            "Category backfill finished",
            extra={
                "updated_count": updated,
                "dry_run": options["dry_run"],
                "action": "categories_backfilled",
                "component": "backfill_categories",
            },
        )
        verb = "Would update" if options["dry_run"] else "Updated"
        self.stdout.write(self.style.SUCCESS(f"{verb} {updated} transactions"))
