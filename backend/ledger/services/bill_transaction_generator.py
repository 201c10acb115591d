"""
Pending transaction generation from recurring bills.

The generator expands each bill's recurrence rule over a date range,
previews the resulting items, and creates pending transactions grouped in
a ``BillTransactionBatch`` that can later be undone as a whole.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from django.core.exceptions import ValidationError
from django.db import transaction as db_transaction

from ..models import Account, Bill, BillTransactionBatch, Transaction
from ..utils import dates

# Get structured logger for this module
logger = logging.getLogger(__name__)

UNDO_REVIEWED_MESSAGE = "Cannot undo because some transactions were already reviewed."


@dataclass
class PreviewItem:
    bill: Bill
    account: Account
    trx_date: date
    amount: Decimal
    description: str

    @property
    def trx_type(self):
        return Transaction.DEBIT if self.amount < 0 else Transaction.CREDIT

    @property
    def key(self):
        return (self.account.id, self.trx_date, self.description.strip(), self.amount)


@dataclass
class DateRange:
    start_date: date
    end_date: date

    @property
    def is_single_month(self):
        return (
            self.start_date == dates.beginning_of_month(self.start_date)
            and self.end_date == dates.end_of_month(self.start_date)
        )


class BillTransactionGenerator:
    """
    Expand a user's bills into pending transactions.

    Usage:
        generator = BillTransactionGenerator(user)
        items = generator.preview(period_month="2025-03")
        batch, created = generator.generate(period_month="2025-03")
    """

    def __init__(self, user):
        self.user = user

    # ---------------------------------------------------------------
    # Range handling
    # ---------------------------------------------------------------

    @staticmethod
    def normalize_range(period_month=None, start_date=None, end_date=None) -> DateRange:
        """
        Resolve the requested window.

        Explicit dates win: a missing start is the first of the current
        month, a missing end is the end of the start's month, and an end
        before the start collapses to the start. Otherwise ``period_month``
        (``YYYY-MM``) selects a whole month, falling back to the current one.
        """
        if start_date not in (None, "") or end_date not in (None, ""):
            start = dates.parse_date(start_date) or dates.beginning_of_month(dates.today())
            end = dates.parse_date(end_date) or dates.end_of_month(start)
            if end < start:
                end = start
            return DateRange(start, end)

        month = dates.parse_month(period_month) or dates.beginning_of_month(dates.today())
        return DateRange(month, dates.end_of_month(month))

    # ---------------------------------------------------------------
    # Preview / generate
    # ---------------------------------------------------------------

    def _bills(self, bill=None):
        if bill is not None:
            return [bill]
        return list(Bill.objects.for_user(self.user).select_related("account", "category"))

    @staticmethod
    def occurrences_for_bill(bill, date_range: DateRange):
        items = []
        cursor = dates.beginning_of_month(date_range.start_date)
        while cursor <= date_range.end_date:
            for occurrence in bill.occurrences_for_month(cursor):
                if date_range.start_date <= occurrence <= date_range.end_date:
                    items.append(
                        PreviewItem(
                            bill=bill,
                            account=bill.account,
                            trx_date=occurrence,
                            amount=bill.signed_amount,
                            description=bill.description,
                        )
                    )
            cursor = dates.next_month(cursor)
        return items

    def preview(self, period_month=None, start_date=None, end_date=None, bill=None):
        """
        Every occurrence of the user's bills (or of ``bill``) in the range.

        Returns:
            list[PreviewItem]: sorted by date, description and account name
        """
        date_range = self.normalize_range(period_month, start_date, end_date)
        items = []
        for current in self._bills(bill):
            items.extend(self.occurrences_for_bill(current, date_range))
        items.sort(key=lambda item: (item.trx_date, item.description, item.account.name))
        return items

    def _existing_keys(self, date_range: DateRange):
        rows = Transaction.objects.filter(
            account__user=self.user,
            trx_date__range=(date_range.start_date, date_range.end_date),
            amount__isnull=False,
        ).values_list("account_id", "trx_date", "description", "amount")
        return {
            (account_id, trx_date, (description or "").strip(), Decimal(amount))
            for account_id, trx_date, description, amount in rows
        }

    @db_transaction.atomic
    def generate(self, period_month=None, start_date=None, end_date=None, bill=None):
        """
        Create pending transactions for every previewed item not already booked.

        An item is already booked when a transaction with the same account,
        date, stripped description and amount exists.

        Returns:
            tuple[BillTransactionBatch | None, list[Transaction]]
        """
        date_range = self.normalize_range(period_month, start_date, end_date)
        items = self.preview(period_month, start_date, end_date, bill)
        if not items:
            return None, []

        existing = self._existing_keys(date_range)
        to_create = []
        for item in items:
            if item.key in existing:
                continue
            existing.add(item.key)
            to_create.append(item)

        if not to_create:
            logger.info(
                "Bill generation skipped - everything already booked",
                extra={
                    "user_id": self.user.id,
                    "items_count": len(items),
                    "action": "bill_generation_noop",
                    "component": "BillTransactionGenerator",
                },
            )
            return None, []

        batch = BillTransactionBatch(user=self.user)
        if date_range.is_single_month:
            batch.period_month = date_range.start_date
        else:
            batch.range_start_date = date_range.start_date
            batch.range_end_date = date_range.end_date
        batch.full_clean()
        batch.save()

        created = []
        for item in to_create:
            trx = Transaction(
                account=item.account,
                trx_date=item.trx_date,
                description=item.description,
                amount=item.amount,
                trx_type=item.trx_type,
                category=item.bill.category,
                pending=True,
                bill_transaction_batch=batch,
                batch_reference=batch.reference,
            )
            trx.save()
            created.append(trx)

        batch.transactions_count = len(created)
        batch.total_amount = sum((trx.amount for trx in created), Decimal("0"))
        batch.save(update_fields=["transactions_count", "total_amount", "updated_at"])

        logger.info(
            "Bill transactions generated",
            extra={
                "user_id": self.user.id,
                "batch_id": batch.id,
                "batch_reference": batch.reference,
                "created_count": len(created),
                "skipped_count": len(items) - len(created),
                "action": "bill_generation_success",
                "component": "BillTransactionGenerator",
            },
        )
        return batch, created

    # ---------------------------------------------------------------
    # Undo
    # ---------------------------------------------------------------

    @staticmethod
    @db_transaction.atomic
    def undo(batch):
        """
        Delete a batch and its transactions, reverting balances.

        Raises:
            ValidationError: when any transaction was already reviewed
        """
        transactions = list(batch.transactions.select_related("account"))
        if any(not trx.pending for trx in transactions):
            logger.warning(
                "Batch undo refused - reviewed transactions present",
                extra={
                    "batch_id": batch.id,
                    "action": "bill_batch_undo_refused",
                    "component": "BillTransactionGenerator",
                    "severity": "low",
                },
            )
            raise ValidationError(UNDO_REVIEWED_MESSAGE)

        for trx in transactions:
            trx.delete()
        batch_id = batch.id
        batch.delete()

        logger.info(
            "Bill batch undone",
            extra={
                "batch_id": batch_id,
                "deleted_count": len(transactions),
                "action": "bill_batch_undone",
                "component": "BillTransactionGenerator",
            },
        )
        return len(transactions)

    # ---------------------------------------------------------------
    # Single bill helpers
    # ---------------------------------------------------------------

    @staticmethod
    def next_occurrence_for(bill, reference: Optional[date] = None) -> date:
        """First occurrence on or after ``reference`` within the next 12 months."""
        reference = reference or dates.today()
        cursor = dates.beginning_of_month(reference)
        for _ in range(12):
            upcoming = [d for d in bill.occurrences_for_month(cursor) if d >= reference]
            if upcoming:
                return min(upcoming)
            cursor = dates.next_month(cursor)
        return reference

    @classmethod
    def default_range_for(cls, bill) -> DateRange:
        occurrence = cls.next_occurrence_for(bill)
        month = dates.beginning_of_month(occurrence)
        return DateRange(month, dates.end_of_month(month))
