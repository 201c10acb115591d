# ledger/tests/unit/test_bill_generator.py
from datetime import date
from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError

from ledger.models import Bill, BillTransactionBatch, Transaction
from ledger.services import BillTransactionGenerator
from ledger.services.bill_presenter import (
    BillPresenter,
    bills_by_calendar_date,
    grouped_bills_by_type,
    summary_payload,
)
from ledger.services.bill_transaction_generator import UNDO_REVIEWED_MESSAGE, DateRange
from ledger.tests.factories import BillFactory, TransactionFactory

pytestmark = pytest.mark.django_db


class TestRangeNormalization:
    def test_period_month(self):
        window = BillTransactionGenerator.normalize_range(period_month="2025-02")

        assert window == DateRange(date(2025, 2, 1), date(2025, 2, 28))
        assert window.is_single_month

    def test_missing_end_is_end_of_start_month(self):
        window = BillTransactionGenerator.normalize_range(start_date="2025-03-10")

        assert window == DateRange(date(2025, 3, 10), date(2025, 3, 31))
        assert not window.is_single_month

    def test_end_before_start_collapses(self):
        window = BillTransactionGenerator.normalize_range(
            start_date=date(2025, 3, 10), end_date=date(2025, 3, 1)
        )

        assert window == DateRange(date(2025, 3, 10), date(2025, 3, 10))

    def test_explicit_dates_win_over_month(self):
        window = BillTransactionGenerator.normalize_range(
            period_month="2025-01", start_date=date(2025, 6, 1), end_date=date(2025, 6, 30)
        )

        assert window.start_date == date(2025, 6, 1)


class TestPreviewAndGenerate:
    def test_preview_is_sorted_and_signed(self, test_user, rent_bill, salary_bill):
        items = BillTransactionGenerator(test_user).preview(period_month="2025-03")

        assert [(i.trx_date, i.description, i.amount) for i in items] == [
            (date(2025, 3, 1), "Rent", Decimal("-1200.00")),
            (date(2025, 3, 15), "Salary", Decimal("2500.00")),
        ]
        assert items[0].trx_type == Transaction.DEBIT
        assert items[1].trx_type == Transaction.CREDIT

    def test_preview_over_range_spans_months(self, test_user, rent_bill):
        items = BillTransactionGenerator(test_user).preview(
            start_date=date(2025, 1, 15), end_date=date(2025, 3, 15)
        )

        assert [i.trx_date for i in items] == [date(2025, 2, 1), date(2025, 3, 1)]

    def test_preview_single_bill(self, test_user, rent_bill, salary_bill):
        items = BillTransactionGenerator(test_user).preview(period_month="2025-03", bill=salary_bill)

        assert [i.bill for i in items] == [salary_bill]

    def test_generate_creates_pending_batch(self, test_user, checking, rent_bill, salary_bill, groceries):
        rent_bill.category = groceries
        rent_bill.save()

        batch, created = BillTransactionGenerator(test_user).generate(period_month="2025-03")

        assert batch.period_month == date(2025, 3, 1)
        assert batch.transactions_count == 2
        assert batch.total_amount == Decimal("1300.00")
        assert all(trx.pending for trx in created)
        assert all(trx.batch_reference == batch.reference for trx in created)
        rent = next(trx for trx in created if trx.description == "Rent")
        assert rent.category == groceries
        checking.refresh_from_db()
        assert checking.current_balance == Decimal("2300.00")

    def test_generate_skips_existing(self, test_user, checking, rent_bill, salary_bill):
        TransactionFactory(
            account=checking,
            trx_date=date(2025, 3, 1),
            description="Rent ",
            amount=Decimal("1200.00"),
            trx_type=Transaction.DEBIT,
        )

        batch, created = BillTransactionGenerator(test_user).generate(period_month="2025-03")

        assert [trx.description for trx in created] == ["Salary"]
        assert batch.transactions_count == 1

    def test_generate_twice_creates_nothing(self, test_user, rent_bill):
        generator = BillTransactionGenerator(test_user)
        generator.generate(period_month="2025-03")

        batch, created = generator.generate(period_month="2025-03")

        assert batch is None
        assert created == []
        assert BillTransactionBatch.objects.count() == 1

    def test_range_batch_records_dates(self, test_user, rent_bill):
        batch, _ = BillTransactionGenerator(test_user).generate(
            start_date=date(2025, 3, 1), end_date=date(2025, 4, 15)
        )

        assert batch.period_month is None
        assert batch.range_start_date == date(2025, 3, 1)
        assert batch.range_end_date == date(2025, 4, 15)
        assert batch.month_label == "Mar 1, 2025 - Apr 15, 2025"

    def test_no_bills_means_no_batch(self, test_user):
        assert BillTransactionGenerator(test_user).generate(period_month="2025-03") == (None, [])


class TestUndo:
    def test_undo_deletes_transactions_and_restores_balance(self, test_user, checking, rent_bill):
        batch, _ = BillTransactionGenerator(test_user).generate(period_month="2025-03")

        deleted = BillTransactionGenerator.undo(batch)

        assert deleted == 1
        assert not BillTransactionBatch.objects.exists()
        checking.refresh_from_db()
        assert checking.current_balance == Decimal("1000.00")

    def test_undo_refused_after_review(self, test_user, rent_bill):
        batch, created = BillTransactionGenerator(test_user).generate(period_month="2025-03")
        Transaction.objects.filter(pk=created[0].pk).update(pending=False)

        with pytest.raises(ValidationError) as exc_info:
            BillTransactionGenerator.undo(batch)

        assert exc_info.value.messages == [UNDO_REVIEWED_MESSAGE]
        assert Transaction.objects.filter(pk=created[0].pk).exists()


class TestSingleBillHelpers:
    def test_next_occurrence(self, rent_bill, salary_bill):
        reference = date(2025, 3, 10)

        assert BillTransactionGenerator.next_occurrence_for(rent_bill, reference) == date(2025, 4, 1)
        assert BillTransactionGenerator.next_occurrence_for(salary_bill, reference) == date(2025, 3, 15)

    def test_next_occurrence_of_annual_bill(self, test_user):
        bill = BillFactory(user=test_user, frequency=Bill.ANNUAL, next_occurrence_month=1, day_of_month=20)

        assert BillTransactionGenerator.next_occurrence_for(bill, date(2025, 3, 10)) == date(2026, 1, 20)


class TestBillPresenter:
    def test_labels(self, rent_bill):
        presenter = BillPresenter(rent_bill)

        assert presenter.bill_type_label == "Expense"
        assert presenter.frequency_label == "Monthly"
        assert presenter.day_of_month_label == "1st"
        assert presenter.amount_display == "$1,200.00"
        assert presenter.category_label == "—"
        assert presenter.monthly_normalized_breakdown == "Monthly: $1,200.00"

    def test_two_days_breakdown(self, test_user):
        bill = BillFactory(
            user=test_user,
            frequency=Bill.BI_WEEKLY,
            biweekly_mode=Bill.TWO_DAYS,
            day_of_month=1,
            second_day_of_month=15,
            amount=Decimal("75.00"),
        )

        assert BillPresenter(bill).monthly_normalized_breakdown == (
            "Bi-Weekly (1st & 15th): $75.00 × 2 = $150.00"
        )
        assert BillPresenter(bill).summary_detail == "(Bi Weekly) - $75.00 × 2 = $150.00"

    def test_grouping_and_calendar(self, rent_bill, salary_bill):
        grouped = grouped_bills_by_type([rent_bill, salary_bill])
        assert list(grouped) == [key for key, _ in Bill.BILL_TYPES]
        assert grouped[Bill.EXPENSE] == [rent_bill]
        assert grouped[Bill.DEBT_REPAYMENT] == []

        calendar = bills_by_calendar_date([salary_bill, rent_bill], date(2025, 3, 1))
        assert list(calendar.items()) == [
            (date(2025, 3, 1), [rent_bill]),
            (date(2025, 3, 15), [salary_bill]),
        ]

    def test_summary_payload(self, rent_bill, salary_bill):
        payload = summary_payload([rent_bill, salary_bill])

        assert payload["groups"][Bill.INCOME]["monthly_total"] == Decimal("2500.00")
        assert payload["groups"][Bill.EXPENSE]["bills"][0]["detail"] == "(Monthly) - $1,200.00"
        assert payload["net_monthly"] == Decimal("1300.00")
