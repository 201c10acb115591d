# ledger/tests/unit/test_models.py
from datetime import date, timedelta
from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError
from django.utils import timezone

from ledger.models import (
    Account,
    Bill,
    BillTransactionBatch,
    Category,
    CategoryLookup,
    Document,
    HiddenCategory,
    Stash,
    Transaction,
)
from ledger.tests.factories import (
    AccountFactory,
    AttachmentFactory,
    BillFactory,
    CategoryFactory,
    CategoryLookupFactory,
    DocumentFactory,
    StashFactory,
    TransactionFactory,
    uploaded_file,
)

pytestmark = pytest.mark.django_db


# =============================================================================
# ACCOUNTS
# =============================================================================


class TestAccountModel:
    def test_opening_balance_is_booked_as_locked_transaction(self, checking):
        assert checking.current_balance == Decimal("1000.00")

        opening = checking.transactions.get()
        assert opening.description == Account.STARTING_BALANCE_DESCRIPTION
        assert opening.amount == Decimal("1000.00")
        assert opening.locked is True
        assert opening.pending is False

    def test_negative_opening_balance_is_a_debit(self, test_user):
        account = AccountFactory(
            user=test_user, account_type=Account.CREDIT, starting_balance=Decimal("-250.00")
        )

        assert account.current_balance == Decimal("-250.00")
        assert account.transactions.get().amount == Decimal("-250.00")

    def test_zero_opening_balance_books_nothing(self, test_user):
        account = AccountFactory(user=test_user)

        assert account.current_balance == Decimal("0.00")
        assert not account.transactions.exists()

    def test_name_must_have_two_characters(self, test_user):
        account = Account(user=test_user, name="A", account_type=Account.CASH)

        with pytest.raises(ValidationError) as exc_info:
            account.full_clean()

        assert "name" in exc_info.value.message_dict

    def test_credit_limit_only_on_credit_accounts(self, test_user):
        account = Account(
            user=test_user,
            name="Checking",
            account_type=Account.CHECKING,
            credit_limit=Decimal("100.00"),
        )

        with pytest.raises(ValidationError) as exc_info:
            account.full_clean()

        assert "credit_limit" in exc_info.value.message_dict

    def test_available_balance_subtracts_stashes(self, checking):
        StashFactory(account=checking, name="Car", balance=Decimal("200.00"))

        assert checking.stashed == Decimal("200.00")
        assert checking.available_balance == Decimal("800.00")

    def test_deactivate_and_activate(self, checking):
        checking.deactivate()
        checking.refresh_from_db()
        assert checking.active is False

        checking.activate()
        checking.refresh_from_db()
        assert checking.active is True


# =============================================================================
# TRANSACTIONS
# =============================================================================


class TestTransactionBookkeeping:
    def test_debit_reduces_balance(self, checking):
        TransactionFactory(account=checking, amount=Decimal("40.00"), trx_type=Transaction.DEBIT)

        checking.refresh_from_db()
        assert checking.current_balance == Decimal("960.00")

    def test_credit_increases_balance(self, checking):
        trx = TransactionFactory(
            account=checking, amount=Decimal("-15.00"), trx_type=Transaction.CREDIT
        )

        assert trx.amount == Decimal("15.00")
        checking.refresh_from_db()
        assert checking.current_balance == Decimal("1015.00")

    def test_new_transactions_start_pending(self, checking):
        trx = Transaction(
            account=checking,
            trx_date=date(2025, 3, 1),
            description="Coffee",
            amount=Decimal("4.00"),
            trx_type=Transaction.DEBIT,
            pending=False,
        )
        trx.save()

        assert trx.pending is True

    def test_amount_update_adjusts_balance(self, checking, reviewed_debit):
        reviewed_debit.amount = Decimal("50.50")
        reviewed_debit.save()

        assert reviewed_debit.amount == Decimal("-50.50")
        checking.refresh_from_db()
        assert checking.current_balance == Decimal("949.50")

    def test_moving_between_accounts_moves_balance(self, checking, savings, reviewed_debit):
        reviewed_debit.account = savings
        reviewed_debit.save()

        checking.refresh_from_db()
        savings.refresh_from_db()
        assert checking.current_balance == Decimal("1000.00")
        assert savings.current_balance == Decimal("454.50")

    def test_delete_restores_balance(self, checking, reviewed_debit):
        reviewed_debit.delete()

        checking.refresh_from_db()
        assert checking.current_balance == Decimal("1000.00")

    def test_balance_equals_sum_of_amounts(self, checking):
        for amount, trx_type in [("12.00", "debit"), ("30.00", "credit"), ("7.25", "debit")]:
            TransactionFactory(account=checking, amount=Decimal(amount), trx_type=trx_type)

        checking.refresh_from_db()
        total = sum(t.amount for t in checking.transactions.all())
        assert checking.current_balance == total == Decimal("1010.75")

    def test_new_amount_without_type_takes_its_sign(self, checking):
        trx = TransactionFactory(account=checking, amount=Decimal("-30.00"), trx_type=None)

        assert trx.amount == Decimal("-30.00")
        assert trx.trx_type == Transaction.DEBIT
        checking.refresh_from_db()
        assert checking.current_balance == Decimal("970.00")

    def test_positive_update_without_type_becomes_credit(self, checking, reviewed_debit):
        fresh = Transaction.objects.get(pk=reviewed_debit.pk)
        fresh.amount = Decimal("45.00")
        fresh.save()

        assert fresh.amount == Decimal("45.00")
        assert fresh.trx_type == Transaction.CREDIT
        checking.refresh_from_db()
        assert checking.current_balance == Decimal("1045.00")

    def test_quick_receipt_without_type_is_debit(self, checking):
        trx = Transaction(account=checking, trx_date=date(2025, 3, 1), quick_receipt=True)
        trx.amount = Decimal("12.00")
        trx.normalize_amount()

        assert trx.amount == Decimal("-12.00")
        assert trx.trx_type == Transaction.DEBIT

    def test_update_date_only_skips_bookkeeping(self, checking, reviewed_debit):
        reviewed_debit.update_date_only(date(2025, 1, 1))

        reviewed_debit.refresh_from_db()
        checking.refresh_from_db()
        assert reviewed_debit.trx_date == date(2025, 1, 1)
        assert checking.current_balance == Decimal("954.50")


class TestTransactionValidation:
    def test_reviewed_requires_description_and_amount(self, checking):
        trx = Transaction(account=checking, trx_date=date(2025, 3, 1), pending=False)

        with pytest.raises(ValidationError) as exc_info:
            trx.full_clean()

        errors = exc_info.value.message_dict
        assert errors["trx_type"] == ["Please select debit or credit"]
        assert "description" in errors
        assert "amount" in errors

    def test_pending_may_be_incomplete(self, checking):
        trx = Transaction(account=checking, trx_date=date(2025, 3, 1), pending=True)

        trx.full_clean()

    def test_debit_with_positive_amount_is_rejected_on_update(self, reviewed_debit):
        trx = Transaction.objects.get(pk=reviewed_debit.pk)
        trx.trx_type = Transaction.DEBIT
        trx.amount = Decimal("5.00")
        # Bypass normalization to reach the sign rule
        trx.normalize_amount = lambda: None

        with pytest.raises(ValidationError) as exc_info:
            trx.full_clean()

        assert exc_info.value.message_dict["amount"] == [
            "must be negative for debit transactions"
        ]

    def test_non_numeric_amount_is_reported(self, reviewed_debit):
        trx = Transaction.objects.get(pk=reviewed_debit.pk)
        trx.trx_type = Transaction.DEBIT
        trx.amount = "abc"

        with pytest.raises(ValidationError) as exc_info:
            trx.full_clean()

        assert "must be a number" in exc_info.value.message_dict["amount"]

    def test_quick_receipt_requires_attachments(self, checking):
        trx = Transaction(
            account=checking, trx_date=date(2025, 3, 1), quick_receipt=True
        )

        with pytest.raises(ValidationError) as exc_info:
            trx.full_clean()

        assert exc_info.value.message_dict["attachments"] == [
            "are required for quick receipt transactions"
        ]

    def test_staged_files_satisfy_quick_receipt(self, checking):
        trx = Transaction(
            account=checking,
            trx_date=date(2025, 3, 1),
            quick_receipt=True,
            staged_files=[uploaded_file()],
        )

        trx.full_clean()
        assert trx.trx_type == Transaction.DEBIT

    def test_foreign_category_is_rejected(self, checking, foreign_category):
        trx = Transaction(
            account=checking,
            trx_date=date(2025, 3, 1),
            description="Books",
            amount=Decimal("10.00"),
            trx_type=Transaction.DEBIT,
            category=foreign_category,
        )

        with pytest.raises(ValidationError) as exc_info:
            trx.full_clean()

        assert "category" in exc_info.value.message_dict

    def test_moving_to_another_users_account_is_rejected(self, reviewed_debit, other_account):
        trx = Transaction.objects.get(pk=reviewed_debit.pk)
        trx.account = other_account

        with pytest.raises(ValidationError) as exc_info:
            trx.full_clean()

        assert exc_info.value.message_dict["account"] == ["must belong to the same user"]

    def test_memo_length_limit(self, checking):
        trx = Transaction(account=checking, trx_date=date(2025, 3, 1), memo="x" * 501)

        with pytest.raises(ValidationError) as exc_info:
            trx.full_clean()

        assert "memo" in exc_info.value.message_dict


class TestTransactionPresentation:
    def test_transaction_type_follows_sign(self, reviewed_debit, checking):
        credit = TransactionFactory(account=checking, trx_type=Transaction.CREDIT)

        assert reviewed_debit.transaction_type == ("Debit", "debit")
        assert credit.transaction_type == ("Credit", "credit")

    def test_has_attachments(self, reviewed_debit):
        assert reviewed_debit.has_attachments is False

        AttachmentFactory(content_object=reviewed_debit)

        assert reviewed_debit.has_attachments is True

    def test_quick_receipt_flag_clears_once_completed(self, checking):
        trx = Transaction(
            account=checking,
            trx_date=date(2025, 3, 1),
            quick_receipt=True,
            staged_files=[uploaded_file()],
        )
        trx.save()
        assert trx.quick_receipt is True

        trx.description = "Hardware Store"
        trx.amount = Decimal("22.00")
        trx.save()

        assert trx.quick_receipt is False


# =============================================================================
# CATEGORIES AND LOOKUPS
# =============================================================================


class TestCategoryModel:
    def test_name_is_squished_and_kind_follows_owner(self, test_user):
        custom = Category.objects.create(user=test_user, name="  Pet    Supplies ")
        global_category = Category.objects.create(name="Zoo Tickets")

        assert custom.name == "Pet Supplies"
        assert custom.kind == Category.CUSTOM
        assert global_category.is_global

    def test_duplicate_name_is_case_insensitive(self, test_user, custom_category):
        duplicate = Category(user=test_user, name="HOBBIES")

        with pytest.raises(ValidationError) as exc_info:
            duplicate.full_clean()

        assert exc_info.value.message_dict["name"] == ["has already been taken"]

    def test_same_name_allowed_for_other_users(self, other_user, custom_category):
        Category(user=other_user, name="Hobbies").full_clean()

    def test_visible_to_excludes_hidden_globals(self, test_user, other_user, groceries, dining, custom_category):
        HiddenCategory.objects.create(user=test_user, category=groceries)

        visible = set(Category.objects.visible_to(test_user))
        assert groceries not in visible
        assert dining in visible
        assert custom_category in visible
        assert groceries in set(Category.objects.visible_to(other_user))

    def test_transfer_category_is_global(self):
        category = Category.transfer_category()

        assert category.user_id is None
        assert Category.transfer_category() == category


class TestCategoryLookupModel:
    def test_normalize(self):
        assert CategoryLookup.normalize("  STARBUCKS   #123 ") == "starbucks #123"

    def test_upsert_increments_usage(self, test_user, groceries):
        first = CategoryLookup.upsert_for(test_user, groceries, "Whole Foods")
        second = CategoryLookup.upsert_for(test_user, groceries, "whole   FOODS")

        assert first.pk == second.pk
        assert second.usage_count == 2
        assert second.description_norm == "whole foods"

    def test_upsert_ignores_blank_description(self, test_user, groceries):
        assert CategoryLookup.upsert_for(test_user, groceries, "   ") is None

    def test_saving_categorized_transaction_records_lookup(self, checking, groceries):
        TransactionFactory(account=checking, description="Trader Joes", category=groceries)

        lookup = CategoryLookup.objects.get(user=checking.user)
        assert lookup.description_norm == "trader joes"
        assert lookup.category == groceries

    def test_suggest_prefers_exact_match(self, test_user, groceries, dining):
        CategoryLookupFactory(user=test_user, category=dining, description_norm="whole foods market")
        exact = CategoryLookupFactory(user=test_user, category=groceries, description_norm="whole foods")

        assert CategoryLookup.suggest_for(test_user, "Whole Foods") == exact

    def test_suggest_falls_back_to_similarity(self, test_user, groceries):
        lookup = CategoryLookupFactory(
            user=test_user, category=groceries, description_norm="starbucks coffee"
        )

        assert CategoryLookup.suggest_for(test_user, "Starbucks Coffee 123") == lookup
        assert CategoryLookup.suggest_for(test_user, "Electric Company") is None

    def test_suggest_ignores_word_order(self, test_user, groceries):
        lookup = CategoryLookupFactory(
            user=test_user, category=groceries, description_norm="whole foods market"
        )

        assert CategoryLookup.suggest_for(test_user, "Market Whole Foods") == lookup

    def test_suggest_ties_go_to_most_used(self, test_user, groceries, dining):
        CategoryLookupFactory(
            user=test_user, category=dining, description_norm="corner shop a", usage_count=1
        )
        busy = CategoryLookupFactory(
            user=test_user, category=groceries, description_norm="corner shop b", usage_count=9
        )

        assert CategoryLookup.suggest_for(test_user, "Corner Shop C") == busy

    def test_suggest_is_scoped_to_user(self, test_user, other_user, groceries):
        CategoryLookupFactory(user=other_user, category=groceries, description_norm="whole foods")

        assert CategoryLookup.suggest_for(test_user, "whole foods") is None

    def test_confidence_grows_with_usage(self, test_user, groceries):
        lookup = CategoryLookupFactory(user=test_user, category=groceries, usage_count=0)
        assert lookup.confidence == pytest.approx(0.6)

        lookup.usage_count = 1000
        assert lookup.confidence == pytest.approx(0.95)


# =============================================================================
# STASHES
# =============================================================================


class TestStashModel:
    def test_goal_must_cover_balance(self, checking):
        stash = Stash(account=checking, name="Bike", goal=Decimal("50.00"), balance=Decimal("80.00"))

        with pytest.raises(ValidationError) as exc_info:
            stash.full_clean()

        assert "goal" in exc_info.value.message_dict

    def test_name_unique_per_account(self, checking, vacation_stash):
        stash = Stash(account=checking, name="Vacation", goal=Decimal("10.00"))

        with pytest.raises(ValidationError) as exc_info:
            stash.full_clean()

        assert "name" in exc_info.value.message_dict

    def test_delete_returns_funds_to_account(self, checking):
        stash = StashFactory(account=checking, name="Emergency", balance=Decimal("120.00"))

        stash.delete()

        refund = checking.transactions.get(description="Transfer from Emergency Stash (Stash Deleted)")
        assert refund.amount == Decimal("120.00")
        assert refund.transfer is True
        assert refund.locked is True
        assert refund.category == Category.transfer_category()
        checking.refresh_from_db()
        assert checking.current_balance == Decimal("1120.00")


# =============================================================================
# BILLS
# =============================================================================


class TestBillRecurrence:
    def test_monthly_day_is_clamped_to_month_end(self, test_user):
        bill = BillFactory(user=test_user, day_of_month=31)

        assert bill.occurrences_for_month(date(2025, 2, 10)) == [date(2025, 2, 28)]
        assert bill.occurrences_for_month(date(2024, 2, 10)) == [date(2024, 2, 29)]

    def test_two_days_mode(self, test_user):
        bill = BillFactory(
            user=test_user,
            frequency=Bill.BI_WEEKLY,
            biweekly_mode=Bill.TWO_DAYS,
            day_of_month=1,
            second_day_of_month=15,
        )

        assert bill.occurrences_for_month(date(2025, 4, 1)) == [date(2025, 4, 1), date(2025, 4, 15)]
        assert bill.monthly_normalized_amount == Decimal("200.00")

    def test_every_other_week_from_anchor(self, test_user):
        bill = BillFactory(
            user=test_user,
            frequency=Bill.BI_WEEKLY,
            biweekly_mode=Bill.EVERY_OTHER_WEEK,
            biweekly_anchor_date=date(2025, 3, 7),
        )

        assert bill.occurrences_for_month(date(2025, 3, 1)) == [date(2025, 3, 7), date(2025, 3, 21)]
        assert bill.occurrences_for_month(date(2025, 4, 1)) == [date(2025, 4, 4), date(2025, 4, 18)]
        # Sunday-based weekday of a Friday
        assert bill.biweekly_anchor_weekday == 5
        assert bill.monthly_normalized_amount == Decimal("216.67")

    def test_quarterly_and_annual(self, test_user):
        quarterly = BillFactory(
            user=test_user, frequency=Bill.QUARTERLY, next_occurrence_month=2, amount=Decimal("90.00")
        )
        annual = BillFactory(
            user=test_user, frequency=Bill.ANNUAL, next_occurrence_month=6, amount=Decimal("120.00")
        )

        assert quarterly.occurrences_for_month(date(2025, 5, 1)) == [date(2025, 5, 5)]
        assert quarterly.occurrences_for_month(date(2025, 6, 1)) == []
        assert annual.occurrences_for_month(date(2025, 6, 1)) == [date(2025, 6, 5)]
        assert annual.occurrences_for_month(date(2025, 7, 1)) == []
        assert quarterly.monthly_normalized_amount == Decimal("30.00")
        assert annual.monthly_normalized_amount == Decimal("10.00")

    def test_save_clears_fields_of_other_modes(self, test_user):
        bill = BillFactory(
            user=test_user,
            frequency=Bill.MONTHLY,
            second_day_of_month=20,
            next_occurrence_month=3,
        )

        assert bill.second_day_of_month is None
        assert bill.next_occurrence_month is None

    def test_signed_amount(self, rent_bill, salary_bill):
        assert rent_bill.signed_amount == Decimal("-1200.00")
        assert salary_bill.signed_amount == Decimal("2500.00")


class TestBillValidation:
    def test_two_days_requires_distinct_second_day(self, test_user, checking):
        bill = Bill(
            user=test_user,
            account=checking,
            bill_type=Bill.EXPENSE,
            description="Daycare",
            frequency=Bill.BI_WEEKLY,
            biweekly_mode=Bill.TWO_DAYS,
            day_of_month=10,
            second_day_of_month=10,
            amount=Decimal("50.00"),
        )

        with pytest.raises(ValidationError) as exc_info:
            bill.full_clean()

        assert "second_day_of_month" in exc_info.value.message_dict

    def test_every_other_week_requires_anchor(self, test_user, checking):
        bill = Bill(
            user=test_user,
            account=checking,
            bill_type=Bill.INCOME,
            description="Paycheck",
            frequency=Bill.BI_WEEKLY,
            day_of_month=1,
            amount=Decimal("900.00"),
        )

        with pytest.raises(ValidationError) as exc_info:
            bill.full_clean()

        assert "biweekly_anchor_date" in exc_info.value.message_dict
        assert bill.biweekly_mode == Bill.EVERY_OTHER_WEEK

    def test_annual_requires_month(self, test_user, checking):
        bill = Bill(
            user=test_user,
            account=checking,
            bill_type=Bill.EXPENSE,
            description="Insurance",
            frequency=Bill.ANNUAL,
            day_of_month=1,
            amount=Decimal("600.00"),
        )

        with pytest.raises(ValidationError) as exc_info:
            bill.full_clean()

        assert "next_occurrence_month" in exc_info.value.message_dict

    def test_account_must_belong_to_user(self, test_user, other_account):
        bill = Bill(
            user=test_user,
            account=other_account,
            bill_type=Bill.EXPENSE,
            description="Gym",
            day_of_month=3,
            amount=Decimal("30.00"),
        )

        with pytest.raises(ValidationError) as exc_info:
            bill.full_clean()

        assert exc_info.value.message_dict["account"] == ["must belong to your profile"]


class TestBillTransactionBatchModel:
    def test_month_label(self, test_user):
        monthly = BillTransactionBatch(user=test_user, period_month=date(2025, 3, 1))
        ranged = BillTransactionBatch(
            user=test_user, range_start_date=date(2025, 3, 1), range_end_date=date(2025, 3, 20)
        )

        assert monthly.month_label == "March 2025"
        assert ranged.month_label == "Mar 1, 2025 - Mar 20, 2025"
        assert BillTransactionBatch(user=test_user).month_label == "Custom range"

    def test_requires_month_or_range(self, test_user):
        with pytest.raises(ValidationError):
            BillTransactionBatch(user=test_user).full_clean()

    def test_range_must_be_ordered(self, test_user):
        batch = BillTransactionBatch(
            user=test_user, range_start_date=date(2025, 3, 20), range_end_date=date(2025, 3, 1)
        )

        with pytest.raises(ValidationError) as exc_info:
            batch.full_clean()

        assert "range_end_date" in exc_info.value.message_dict

    def test_reference_is_generated(self, test_user):
        batch = BillTransactionBatch.objects.create(user=test_user, period_month=date(2025, 3, 1))

        assert len(batch.reference) == 36


# =============================================================================
# DOCUMENTS
# =============================================================================


class TestDocumentModel:
    def test_tax_documents_need_a_valid_year(self, test_user):
        document = DocumentFactory.build(attachable=test_user, tax_year=None)

        with pytest.raises(ValidationError) as exc_info:
            document.full_clean()
        assert exc_info.value.message_dict["tax_year"] == ["can't be blank"]

        document.tax_year = 1850
        with pytest.raises(ValidationError):
            document.full_clean()

    def test_levels(self, test_user, checking):
        user_doc = DocumentFactory(attachable=test_user)
        account_doc = DocumentFactory(attachable=checking, category="Statements", tax_year=None)

        assert user_doc.level == Document.LEVEL_USER
        assert user_doc.account_name == "N/A"
        assert user_doc.owner == test_user
        assert account_doc.level == Document.LEVEL_ACCOUNT
        assert account_doc.account_name == "Everyday Checking"
        assert account_doc.owner == test_user

    def test_for_user_includes_account_documents(self, test_user, other_user, checking, other_account):
        mine = {DocumentFactory(attachable=test_user), DocumentFactory(attachable=checking)}
        DocumentFactory(attachable=other_user)
        DocumentFactory(attachable=other_account)

        assert set(Document.objects.for_user(test_user)) == mine
