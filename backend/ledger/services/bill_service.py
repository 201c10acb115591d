"""
Bill persistence: recurring income and expense rules owned by a user.
"""

import logging

from django.db import transaction

from ..models import Bill

logger = logging.getLogger(__name__)


class BillService:
    @staticmethod
    def _apply(bill, data):
        for field, value in data.items():
            setattr(bill, field, value)
        bill.full_clean()
        bill.save()
        return bill

    @staticmethod
    @transaction.atomic
    def create_bill(user, data):
        bill = BillService._apply(Bill(user=user), data)
        logger.info(
            "Bill created",
            extra={
                "user_id": user.id,
                "bill_id": bill.id,
                "frequency": bill.frequency,
                "action": "bill_created",
                "component": "BillService",
            },
        )
        return bill

    @staticmethod
    @transaction.atomic
    def update_bill(bill, data):
        """Apply ``data`` and re-validate the recurrence rule as a whole."""
        bill = BillService._apply(bill, data)
        logger.info(
            "Bill updated",
            extra={
                "bill_id": bill.id,
                "updated_fields": sorted(data),
                "action": "bill_updated",
                "component": "BillService",
            },
        )
        return bill
