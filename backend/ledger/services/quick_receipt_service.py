"""
Quick receipt capture: photograph a receipt now, fill in the details later.
"""

import logging

from django.core.exceptions import ValidationError

from ..models import Account, Transaction
from ..utils import dates
from .transaction_service import TransactionService

logger = logging.getLogger(__name__)


class QuickReceiptService:
    @staticmethod
    def resolve_account(user, account_id=None):
        """
        Pick the target account: an explicit one of the user's accounts,
        otherwise the user's default account.

        Raises:
            ValidationError: when no usable account can be determined
            PermissionError: when the account is inactive
        """
        accounts = Account.objects.filter(user=user)
        if account_id:
            account = accounts.filter(pk=account_id).first()
        elif user.default_account_id:
            account = accounts.filter(pk=user.default_account_id).first()
        else:
            account = None

        if account is None:
            raise ValidationError(
                {"account": "Choose an account or set a default account first"}
            )
        if not account.active:
            raise PermissionError("Account is inactive")
        return account

    @staticmethod
    def create(user, files, account_id=None):
        """
        Create a pending debit transaction dated today holding ``files``.

        Returns:
            Transaction: the new quick receipt
        """
        files = list(files or [])
        account = QuickReceiptService.resolve_account(user, account_id)

        trx = TransactionService.create_transaction(
            account,
            {
                "trx_date": dates.today(),
                "quick_receipt": True,
                "trx_type": Transaction.DEBIT,
            },
            files=files,
        )

        logger.info(
            "Quick receipt captured",
            extra={
                "user_id": user.id,
                "account_id": account.id,
                "transaction_id": trx.id,
                "files_count": len(files),
                "action": "quick_receipt_created",
                "component": "QuickReceiptService",
            },
        )
        return trx
