"""
Presentation helpers shared by serializers and reports.
"""

import re
from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")


def squish(value):
    """Strip and collapse internal whitespace runs to a single space."""
    if value is None:
        return ""
    return re.sub(r"\s+", " ", str(value)).strip()


def round_money(value) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def currency(value) -> str:
    """Format an amount as ``$1,234.56`` (negative as ``-$1,234.56``)."""
    if value is None:
        return ""
    amount = round_money(value)
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


def ordinalize(number) -> str:
    """``1`` -> ``1st``, ``12`` -> ``12th``, ``22`` -> ``22nd``."""
    if number is None:
        return ""
    number = int(number)
    if 10 <= number % 100 <= 13:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")
    return f"{number}{suffix}"


def humanize_title(value) -> str:
    """``debt_repayment`` -> ``Debt Repayment``."""
    if not value:
        return ""
    return " ".join(word.capitalize() for word in str(value).replace("_", " ").split())
