"""
Read-only reporting services: spending by category, the dashboard account
summary and transaction search.
"""

import logging
from datetime import timedelta
from decimal import Decimal

from django.db.models import Q, Sum
from django.db.models.functions import Abs

from ..models import Account, Transaction
from ..utils import dates
from ..utils.formatting import round_money

logger = logging.getLogger(__name__)

UNCATEGORIZED = "Uncategorized"
ZERO = Decimal("0")


class SpendingByCategory:
    """
    Compare spending per category between a period and the equally long
    period right before it.

    Only reviewed debits on active accounts count as spending.
    """

    def __init__(self, user, start_date=None, end_date=None, category_ids=None, account_ids=None):
        self.user = user
        self.start_date = start_date or dates.beginning_of_month(dates.today())
        self.end_date = end_date or dates.today()
        self.category_ids = [c for c in (category_ids or []) if c not in (None, "")]
        self.account_ids = [a for a in (account_ids or []) if a not in (None, "")]

    @property
    def previous_range(self):
        length = (self.end_date - self.start_date).days
        previous_end = self.start_date - timedelta(days=1)
        return previous_end - timedelta(days=length), previous_end

    def base_transactions(self):
        qs = Transaction.objects.filter(
            account__user=self.user,
            account__active=True,
            pending=False,
            amount__lt=0,
        )
        if self.account_ids:
            qs = qs.filter(account_id__in=self.account_ids)
        if self.category_ids:
            qs = qs.filter(category_id__in=self.category_ids)
        return qs

    def spending_between(self, start, end):
        rows = (
            self.base_transactions()
            .filter(trx_date__range=(start, end))
            .values("category__name")
            .annotate(total=Sum(Abs("amount")))
        )
        result = {}
        for row in rows:
            name = row["category__name"] or UNCATEGORIZED
            result[name] = result.get(name, ZERO) + row["total"]
        return {name: round_money(total) for name, total in result.items()}

    @staticmethod
    def period_label(start, end):
        if start.year == end.year and start.month == end.month:
            return start.strftime("%b %Y")
        return f"{start.strftime('%b %d')} - {end.strftime('%b %d, %Y')}"

    def call(self):
        previous_start, previous_end = self.previous_range
        current = self.spending_between(self.start_date, self.end_date)
        previous = self.spending_between(previous_start, previous_end)
        names = sorted(set(current) | set(previous))

        current_total = sum(current.values(), ZERO)
        previous_total = sum(previous.values(), ZERO)
        difference = current_total - previous_total
        if previous_total > 0:
            percentage_change = round(float(difference / previous_total * 100), 1)
        else:
            percentage_change = 0

        logger.debug(
            "Spending report computed",
            extra={
                "user_id": self.user.id,
                "start_date": self.start_date.isoformat(),
                "end_date": self.end_date.isoformat(),
                "categories_count": len(names),
                "action": "spending_report_computed",
                "component": "SpendingByCategory",
            },
        )

        return {
            "categories": names,
            "current_period": {
                "label": self.period_label(self.start_date, self.end_date),
                "data": [current.get(name, ZERO) for name in names],
            },
            "previous_period": {
                "label": self.period_label(previous_start, previous_end),
                "data": [previous.get(name, ZERO) for name in names],
            },
            "totals": {
                "current": round_money(current_total),
                "previous": round_money(previous_total),
                "difference": round_money(difference),
                "percentage_change": percentage_change,
            },
        }


def account_summary(user):
    """Dashboard totals over the user's active accounts."""
    accounts = Account.objects.filter(user=user, active=True).order_by("created_at", "id")

    def total(qs, field="current_balance"):
        return qs.aggregate(value=Sum(field))["value"] or ZERO

    checking = accounts.filter(account_type=Account.CHECKING)
    savings_cash = accounts.filter(account_type__in=[Account.SAVINGS, Account.CASH])
    credit = accounts.filter(account_type=Account.CREDIT)

    credit_total = total(credit)
    credit_limit_total = total(credit, "credit_limit")
    if credit_limit_total > 0:
        utilization = round_money(abs(credit_total) / credit_limit_total * 100)
    else:
        utilization = ZERO

    return {
        "accounts": accounts,
        "checking_total": total(checking),
        "savings_cash_total": total(savings_cash),
        "credit_total": credit_total,
        "credit_limit_total": credit_limit_total,
        "credit_utilization_total": utilization,
    }


def search_transactions(user, query="", account_id=None, category_id=None, start_date=None, end_date=None):
    """
    Search across all of the user's transactions.

    Every whitespace separated term must appear in the description or memo.
    """
    qs = Transaction.objects.filter(account__user=user).select_related("account", "category")

    for term in (query or "").split():
        qs = qs.filter(Q(description__icontains=term) | Q(memo__icontains=term))

    if account_id:
        qs = qs.filter(account_id=account_id)
    if category_id:
        qs = qs.filter(category_id=category_id)
    start = dates.parse_date(start_date)
    if start:
        qs = qs.filter(trx_date__gte=start)
    end = dates.parse_date(end_date)
    if end:
        qs = qs.filter(trx_date__lte=end)

    return qs.order_by("-trx_date", "-id")
