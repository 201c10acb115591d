"""
Account lifecycle service.
"""

import logging

from django.db import transaction

from ..models import Account

logger = logging.getLogger(__name__)


class AccountService:
    @staticmethod
    @transaction.atomic
    def create_account(user, data):
        """
        Create an account for ``user``; a non-zero ``starting_balance`` is
        booked as the opening transaction by ``Account.save``.
        """
        account = Account(user=user, **data)
        account.full_clean()
        account.save()

        logger.info(
            "Account created",
            extra={
                "user_id": user.id,
                "account_id": account.id,
                "account_type": account.account_type,
                "action": "account_created",
                "component": "AccountService",
            },
        )
        return account

    @staticmethod
    @transaction.atomic
    def update_account(account, data):
        # Balances are owned by the transaction bookkeeping
        data.pop("starting_balance", None)
        for field, value in data.items():
            setattr(account, field, value)
        account.full_clean()
        account.save()
        return account

    @staticmethod
    def set_active(account, active):
        if active:
            account.activate()
        else:
            account.deactivate()
            if account.user.default_account_id == account.id:
                account.user.default_account = None
                account.user.save(update_fields=["default_account"])

        logger.info(
            "Account activation changed",
            extra={
                "account_id": account.id,
                "active": account.active,
                "action": "account_activated" if active else "account_deactivated",
                "component": "AccountService",
            },
        )
        return account

    @staticmethod
    @transaction.atomic
    def delete_account(account):
        account_id = account.id
        account.delete()
        logger.info(
            "Account deleted",
            extra={
                "account_id": account_id,
                "action": "account_deleted",
                "component": "AccountService",
            },
        )
