"""
Display helpers for bills: labels, monthly breakdown text, grouping for the
list and calendar views, and the monthly summary payload.
"""

from collections import OrderedDict
from decimal import Decimal

from ..models import Bill
from ..utils import dates
from ..utils.formatting import currency, humanize_title, ordinalize

EMPTY = "—"


class BillPresenter:
    def __init__(self, bill):
        self.bill = bill

    @property
    def bill_type_label(self):
        return humanize_title(self.bill.bill_type)

    @property
    def category_label(self):
        return self.bill.category.name if self.bill.category_id else EMPTY

    @property
    def frequency_label(self):
        return humanize_title(self.bill.frequency)

    @property
    def biweekly_mode_label(self):
        if not self.bill.biweekly_mode:
            return "Bi-Weekly"
        return humanize_title(self.bill.biweekly_mode)

    @property
    def day_of_month_label(self):
        return ordinalize(self.bill.day_of_month)

    @property
    def second_day_of_month_label(self):
        if self.bill.second_day_of_month is None:
            return None
        return ordinalize(self.bill.second_day_of_month)

    @property
    def amount_display(self):
        return currency(self.bill.amount)

    @property
    def notes_display(self):
        return self.bill.notes or EMPTY

    @property
    def monthly_normalized_breakdown(self):
        bill = self.bill
        base = currency(bill.amount)
        monthly = currency(bill.monthly_normalized_amount)

        if bill.frequency == Bill.MONTHLY:
            return f"Monthly: {base}"
        if bill.frequency == Bill.BI_WEEKLY:
            if bill.biweekly_mode == Bill.TWO_DAYS:
                days = " & ".join(
                    label
                    for label in (self.day_of_month_label, self.second_day_of_month_label)
                    if label
                )
                return (
                    f"Bi-Weekly ({days or 'twice per month'}): "
                    f"{base} × {bill.occurrence_days_count} = {monthly}"
                )
            return f"Bi-Weekly (every other week): {base} × 26 / 12 = {monthly}"
        if bill.frequency == Bill.QUARTERLY:
            return f"Quarterly: {base} ÷ 3 = {monthly}"
        if bill.frequency == Bill.ANNUAL:
            return f"Annual: {base} ÷ 12 = {monthly}"
        return monthly

    @property
    def summary_detail(self):
        bill = self.bill
        label = f"({self.frequency_label})"
        base = currency(bill.amount)
        monthly = currency(bill.monthly_normalized_amount)

        if bill.frequency == Bill.MONTHLY:
            return f"{label} - {base}"
        if bill.frequency == Bill.BI_WEEKLY:
            if bill.biweekly_mode == Bill.TWO_DAYS:
                return f"{label} - {base} × {bill.occurrence_days_count} = {monthly}"
            return f"{label} - {base} × 26 / 12 = {monthly}"
        if bill.frequency == Bill.QUARTERLY:
            return f"{label} - {base} ÷ 3 = {monthly}"
        if bill.frequency == Bill.ANNUAL:
            return f"{label} - {base} ÷ 12 = {monthly}"
        return f"{label} - {monthly}"


def grouped_bills_by_type(bills):
    """Bills keyed by every bill type, including types without bills."""
    grouped = OrderedDict((key, []) for key, _ in Bill.BILL_TYPES)
    for bill in bills:
        grouped.setdefault(bill.bill_type, []).append(bill)
    return grouped


def bills_by_calendar_date(bills, reference=None):
    reference = reference or dates.today()
    grouped = OrderedDict()
    for bill in sorted(bills, key=lambda b: (b.calendar_date_for(reference), b.description)):
        grouped.setdefault(bill.calendar_date_for(reference), []).append(bill)
    return grouped


def summary_payload(bills):
    """
    Monthly totals per bill type with one detail line per bill.

    Returns:
        dict: ``{"groups": {type: {...}}, "net_monthly": Decimal}``
    """
    groups = OrderedDict()
    net = Decimal("0")
    for bill_type, members in grouped_bills_by_type(bills).items():
        rows = [
            {
                "id": bill.id,
                "description": bill.description,
                "detail": BillPresenter(bill).summary_detail,
                "monthly_amount": bill.monthly_normalized_amount,
            }
            for bill in members
        ]
        total = sum((row["monthly_amount"] for row in rows), Decimal("0"))
        groups[bill_type] = {
            "label": humanize_title(bill_type),
            "bills": rows,
            "monthly_total": total,
        }
        net += total if bill_type == Bill.INCOME else -total
    return {"groups": groups, "net_monthly": net}
