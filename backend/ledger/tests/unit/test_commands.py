# ledger/tests/unit/test_commands.py
from io import StringIO

import pytest
from django.core.management import call_command

from ledger.models import CategoryLookup
from ledger.tests.factories import CategoryLookupFactory, TransactionFactory

pytestmark = pytest.mark.django_db


def run(command, *args, **options):
    out = StringIO()
    call_command(command, *args, stdout=out, **options)
    return out.getvalue()


class TestBackfillCategories:
    @pytest.fixture
    def uncategorized(self, checking, groceries, test_user):
        CategoryLookupFactory(user=test_user, category=groceries, description_norm="corner market")
        return TransactionFactory(account=checking, description="Corner  Market", category=None)

    def test_assigns_lookup_suggestion(self, uncategorized, groceries):
        output = run("backfill_categories")

        uncategorized.refresh_from_db()
        assert uncategorized.category == groceries
        assert "Updated 1 transactions" in output

    def test_dry_run_saves_nothing(self, uncategorized):
        output = run("backfill_categories", "--dry-run")

        uncategorized.refresh_from_db()
        assert uncategorized.category is None
        assert "Would update 1 transactions" in output

    def test_user_filter(self, uncategorized):
        output = run("backfill_categories", user="other@example.com")

        uncategorized.refresh_from_db()
        assert uncategorized.category is None
        assert "Updated 0 transactions" in output


class TestBackfillCategoryLookups:
    def test_rebuilds_lookups_from_categorized_transactions(self, checking, groceries, test_user):
        TransactionFactory(account=checking, description="Corner Market", category=groceries)
        TransactionFactory(account=checking, description="corner market", category=groceries)
        TransactionFactory(account=checking, description="No Category", category=None)
        CategoryLookup.objects.all().delete()

        output = run("backfill_category_lookups")

        lookup = CategoryLookup.objects.get(user=test_user)
        assert lookup.description_norm == "corner market"
        assert lookup.category == groceries
        assert lookup.usage_count == 2
        assert "Processed 2 transactions, 1 lookups total" in output
