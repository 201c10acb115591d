"""
Stash management service.

Moving money into or out of a stash books a locked transfer transaction on
the stash's account and a matching stash entry, keeping the account balance
and the stash balance consistent.
"""

import logging
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import transaction as db_transaction
from django.db.models import F

from ..models import Category, Stash, StashEntry, Transaction
from ..utils import dates

# Get structured logger for this module
logger = logging.getLogger(__name__)


class StashService:
    """
    Create, edit and fund stashes inside an account.
    """

    @staticmethod
    @db_transaction.atomic
    def create_stash(account, data):
        stash = Stash(account=account, balance=Decimal("0"), **data)
        stash.full_clean()
        stash.save()
        logger.info(
            "Stash created",
            extra={
                "stash_id": stash.id,
                "account_id": account.id,
                "goal": float(stash.goal),
                "action": "stash_created",
                "component": "StashService",
            },
        )
        return stash

    @staticmethod
    @db_transaction.atomic
    def update_stash(stash, data):
        for field, value in data.items():
            setattr(stash, field, value)
        stash.full_clean()
        stash.save()
        return stash

    @staticmethod
    @db_transaction.atomic
    def delete_stash(stash):
        """Delete the stash, returning any remaining balance to the account."""
        stash_id = stash.id
        stash.delete()
        logger.info(
            "Stash deleted",
            extra={
                "stash_id": stash_id,
                "action": "stash_deleted",
                "component": "StashService",
            },
        )

    @staticmethod
    @db_transaction.atomic
    def add_entry(stash, amount, entry_date=None, description=""):
        """
        Move money into (positive ``amount``) or out of (negative) a stash.

        Adding books a debit "Transfer to <stash> Stash" on the account;
        removing books a credit "Transfer from <stash> Stash".

        Args:
            stash: Target stash
            amount: Signed amount, non-zero
            entry_date: Date of the movement (defaults to today)
            description: Optional note stored on the entry

        Returns:
            StashEntry: the recorded entry

        Raises:
            ValidationError: for zero amounts, goal overflow or overdraw
        """
        amount = Decimal(amount)
        stash = Stash.objects.select_for_update().get(pk=stash.pk)
        entry_date = entry_date or dates.today()

        if amount == 0:
            raise ValidationError({"amount": "must not be zero"})
        if amount > 0 and stash.balance + amount > stash.goal:
            raise ValidationError({"amount": "would exceed the stash goal"})
        if amount < 0 and stash.balance + amount < 0:
            raise ValidationError({"amount": "exceeds the stash balance"})

        if amount > 0:
            trx_type = Transaction.DEBIT
            label = f"Transfer to {stash.name} Stash"
        else:
            trx_type = Transaction.CREDIT
            label = f"Transfer from {stash.name} Stash"

        trx = Transaction(
            account_id=stash.account_id,
            trx_type=trx_type,
            trx_date=entry_date,
            description=label,
            amount=abs(amount),
            category=Category.transfer_category(),
            pending=False,
            skip_pending_default=True,
            locked=True,
            transfer=True,
        )
        trx.full_clean()
        trx.save()

        entry = StashEntry.objects.create(
            stash=stash,
            transaction=trx,
            stash_entry_date=entry_date,
            amount=amount,
            description=description or "",
        )
        Stash.objects.filter(pk=stash.pk).update(balance=F("balance") + amount)

        logger.info(
            "Stash entry recorded",
            extra={
                "stash_id": stash.id,
                "account_id": stash.account_id,
                "transaction_id": trx.id,
                "amount": float(amount),
                "action": "stash_entry_created",
                "component": "StashService",
            },
        )
        return entry
