"""
Service for transaction operations with proper error handling and logging.

This module provides the TransactionService class used by the transaction
views: creating and editing transactions inside an account, review state
changes, attachment management and running balances for list pages.
"""

import logging
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import transaction as db_transaction

from ..models import Attachment, Category, Transaction

# Get structured logger for this module
logger = logging.getLogger(__name__)


class TransactionService:
    """
    Service for handling transaction operations with transaction safety.

    Every write goes through ``full_clean()`` and the model's ``save()`` so
    sign normalization and balance bookkeeping always run.
    """

    EDITABLE_FIELDS = (
        "trx_date",
        "description",
        "amount",
        "memo",
        "pending",
        "category",
        "trx_type",
    )
    LOCKED_EDITABLE_FIELDS = frozenset({"memo", "category", "trx_type"})
    TRANSFER_EDITABLE_FIELDS = frozenset({"trx_date", "amount", "description"})

    @staticmethod
    def _check_category(category, account):
        if category is None:
            return
        if category.user_id not in (None, account.user_id):
            raise ValidationError({"category": "must belong to the same user"})

    @staticmethod
    @db_transaction.atomic
    def create_transaction(account, data, files=None):
        """
        Create a transaction in ``account``.

        New transactions start pending unless ``skip_pending_default`` is
        passed. Uploaded ``files`` are attached after the row exists.

        Args:
            account: Account receiving the transaction
            data: Validated field values (``trx_type`` included)
            files: Optional iterable of uploaded files

        Returns:
            Transaction: The saved transaction

        Raises:
            ValidationError: If model validation fails
        """
        files = list(files or [])
        TransactionService._check_category(data.get("category"), account)

        trx = Transaction(account=account, **data)
        trx.staged_files = files
        trx.full_clean()
        trx.save()

        for uploaded in files:
            Attachment.build_for(trx, uploaded).save()

        logger.info(
            "Transaction created",
            extra={
                "transaction_id": trx.id,
                "account_id": account.id,
                "pending": trx.pending,
                "attachments_count": len(files),
                "action": "transaction_created",
                "component": "TransactionService",
            },
        )
        return trx

    @staticmethod
    @db_transaction.atomic
    def update_transaction(trx, data):
        """
        Apply ``data`` to ``trx`` and save it with full bookkeeping.

        Moving to another account is expressed by an ``account`` key.
        Locked rows accept only ``LOCKED_EDITABLE_FIELDS``; locked transfers
        may also change date, amount and description, which the model then
        mirrors onto the counterpart transaction or stash entry.
        """
        if trx.locked:
            allowed = TransactionService.LOCKED_EDITABLE_FIELDS
            if trx.transfer:
                allowed = allowed | TransactionService.TRANSFER_EDITABLE_FIELDS
            forbidden = set(data) - allowed
            if forbidden:
                logger.warning(
                    "Locked transaction edit refused",
                    extra={
                        "transaction_id": trx.id,
                        "transfer": trx.transfer,
                        "fields": sorted(forbidden),
                        "action": "locked_transaction_edit_refused",
                        "component": "TransactionService",
                        "severity": "low",
                    },
                )
                message = (
                    "Transfers can only change date, amount, description, memo and category"
                    if trx.transfer
                    else "Locked transactions can only change memo and category"
                )
                raise ValidationError({"base": message})

        target_account = data.get("account", trx.account)
        TransactionService._check_category(data.get("category"), target_account)

        for field, value in data.items():
            setattr(trx, field, value)

        trx.full_clean()
        trx.save()

        logger.info(
            "Transaction updated",
            extra={
                "transaction_id": trx.id,
                "account_id": trx.account_id,
                "updated_fields": sorted(data),
                "action": "transaction_updated",
                "component": "TransactionService",
            },
        )
        return trx

    @staticmethod
    @db_transaction.atomic
    def delete_transaction(trx):
        if trx.locked:
            raise ValidationError({"base": "Locked transactions cannot be deleted"})
        trx_id = trx.id
        trx.delete()
        logger.info(
            "Transaction deleted via service",
            extra={
                "transaction_id": trx_id,
                "action": "transaction_delete",
                "component": "TransactionService",
            },
        )

    @staticmethod
    @db_transaction.atomic
    def mark_reviewed(trx, trx_type=None):
        """Clear the pending flag, enforcing the reviewed-record validations."""
        trx.pending = False
        if trx_type:
            trx.trx_type = trx_type
        trx.full_clean()
        trx.save()
        return trx

    @staticmethod
    @db_transaction.atomic
    def mark_pending(trx):
        trx.pending = True
        trx.full_clean()
        trx.save()
        return trx

    @staticmethod
    def update_date(trx, new_date):
        """Change only the date (drag and drop on the list page)."""
        if new_date is None:
            raise ValidationError({"trx_date": "can't be blank"})
        trx.update_date_only(new_date)
        logger.debug(
            "Transaction date updated",
            extra={
                "transaction_id": trx.id,
                "trx_date": new_date.isoformat(),
                "action": "transaction_date_updated",
                "component": "TransactionService",
            },
        )
        return trx

    @staticmethod
    def descriptions(account, query="", limit=10):
        """
        Distinct past descriptions of the account's owner for autocomplete,
        each with the category last used for it.
        """
        qs = (
            Transaction.objects.for_user(account.user)
            .exclude(description="")
            .order_by("-trx_date", "-id")
        )
        if query:
            qs = qs.filter(description__icontains=query.strip())

        seen = {}
        for description, category_id in qs.values_list("description", "category_id"):
            key = description.strip().lower()
            if key not in seen:
                seen[key] = (description.strip(), category_id)
            if len(seen) >= limit:
                break

        names = dict(
            Category.objects.filter(
                id__in=[c for _, c in seen.values() if c]
            ).values_list("id", "name")
        )
        return [
            {
                "description": description,
                "category_id": category_id,
                "category_name": names.get(category_id),
            }
            for description, category_id in seen.values()
        ]

    @staticmethod
    @db_transaction.atomic
    def add_attachments(trx, files):
        files = list(files or [])
        if not files:
            raise ValidationError({"attachments": "at least one file is required"})
        created = [Attachment.build_for(trx, uploaded) for uploaded in files]
        for attachment in created:
            attachment.save()
        logger.info(
            "Attachments appended to transaction",
            extra={
                "transaction_id": trx.id,
                "attachments_count": len(created),
                "action": "transaction_attachments_added",
                "component": "TransactionService",
            },
        )
        return created

    @staticmethod
    @db_transaction.atomic
    def remove_attachment(trx, attachment_id):
        attachment = trx.attachments.filter(pk=attachment_id).first()
        if attachment is None:
            raise ValidationError({"attachment": "not found"})
        if trx.quick_receipt and trx.attachments.count() == 1:
            raise ValidationError(
                {"attachments": "are required for quick receipt transactions"}
            )
        attachment.delete()

    @staticmethod
    def running_balances(account, transactions):
        """
        Balance after each transaction in list ordering.

        ``transactions`` is one page of ``ordered_for_list()``; the balance
        of the newest row equals the account balance minus everything that
        sorts above the page.
        """
        rows = list(transactions)
        if not rows:
            return {}

        ordered_ids = list(
            Transaction.objects.filter(account=account)
            .ordered_for_list()
            .values_list("id", "amount")
        )
        balance = Decimal(account.current_balance)
        result = {}
        for trx_id, amount in ordered_ids:
            result[trx_id] = balance
            balance -= amount or Decimal("0")
        return {row.id: result.get(row.id) for row in rows}
