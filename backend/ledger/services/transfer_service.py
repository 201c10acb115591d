"""
Account-to-account transfers.

A transfer is two linked, locked transactions: a debit on the source
account and a credit on the target account. Each references the other as
its counterpart so later edits of one side are mirrored on the other.
"""

import logging
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import transaction as db_transaction

from ..models import Account, Category, Transaction
from ..utils import dates

logger = logging.getLogger(__name__)


class TransferService:
    @staticmethod
    @db_transaction.atomic
    def perform_transfer(user, from_account_id, to_account_id, amount, trx_date=None, memo=""):
        """
        Move ``amount`` from one of the user's accounts to another.

        Args:
            user: Owner of both accounts
            from_account_id: Source account id
            to_account_id: Target account id
            amount: Positive amount to move
            trx_date: Date of both transactions (defaults to today)
            memo: Optional memo copied to both sides

        Returns:
            tuple[Transaction, Transaction]: (debit on source, credit on target)

        Raises:
            ValidationError: for invalid amount or account selection
            PermissionError: when either account is inactive
        """
        accounts = {
            account.pk: account
            for account in Account.objects.select_for_update().filter(
                user=user, pk__in=[from_account_id, to_account_id]
            )
        }
        source = accounts.get(_as_int(from_account_id))
        target = accounts.get(_as_int(to_account_id))

        errors = {}
        if source is None:
            errors["from_account"] = "must be one of your accounts"
        if target is None:
            errors["to_account"] = "must be one of your accounts"
        if source is not None and target is not None and source.pk == target.pk:
            errors["to_account"] = "must differ from the source account"
        if amount is None or Decimal(amount) <= 0:
            errors["amount"] = "must be greater than 0"
        if errors:
            logger.warning(
                "Transfer rejected",
                extra={
                    "user_id": user.id,
                    "error_fields": sorted(errors),
                    "action": "transfer_rejected",
                    "component": "TransferService",
                    "severity": "low",
                },
            )
            raise ValidationError(errors)

        if not (source.active and target.active):
            raise PermissionError("Account is inactive")

        trx_date = trx_date or dates.today()
        category = Category.transfer_category()
        common = {
            "trx_date": trx_date,
            "amount": Decimal(amount),
            "memo": memo or "",
            "category": category,
            "pending": False,
            "skip_pending_default": True,
            "locked": True,
            "transfer": True,
        }

        debit = Transaction(
            account=source,
            trx_type=Transaction.DEBIT,
            description=f"Transfer to {target.name}",
            **common,
        )
        debit.full_clean()
        debit.save()

        credit = Transaction(
            account=target,
            trx_type=Transaction.CREDIT,
            description=f"Transfer from {source.name}",
            counterpart_transaction=debit,
            **common,
        )
        credit.full_clean()
        credit.save()

        Transaction.objects.filter(pk=debit.pk).update(counterpart_transaction=credit)
        debit.counterpart_transaction = credit
        debit._remember_state()

        logger.info(
            "Transfer performed",
            extra={
                "user_id": user.id,
                "from_account_id": source.id,
                "to_account_id": target.id,
                "amount": float(amount),
                "action": "transfer_performed",
                "component": "TransferService",
            },
        )
        return debit, credit


def _as_int(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
