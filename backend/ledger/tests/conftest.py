# ledger/tests/conftest.py
from datetime import date
from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from ledger.models import Account, Bill, Category, Transaction

from .factories import (
    AccountFactory,
    BillFactory,
    CategoryFactory,
    StashFactory,
    TransactionFactory,
    UserFactory,
)

# =============================================================================
# USER FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def media_root(settings, tmp_path):
    """Keep uploaded files out of the source tree."""
    settings.MEDIA_ROOT = tmp_path / "media"
    return settings.MEDIA_ROOT


@pytest.fixture
def test_user(db):
    return UserFactory(email="test@example.com", first_name="Test", last_name="User")


@pytest.fixture
def other_user(db):
    return UserFactory(email="other@example.com", first_name="Other", last_name="User")


@pytest.fixture
def api_client(test_user):
    client = APIClient()
    client.force_authenticate(user=test_user)
    return client


@pytest.fixture
def anonymous_client():
    return APIClient()


# =============================================================================
# ACCOUNT FIXTURES
# =============================================================================


@pytest.fixture
def checking(db, test_user):
    """Checking account opened with 1000.00"""
    return AccountFactory(
        user=test_user,
        name="Everyday Checking",
        account_type=Account.CHECKING,
        starting_balance=Decimal("1000.00"),
    )


@pytest.fixture
def savings(db, test_user):
    return AccountFactory(
        user=test_user,
        name="Rainy Day Savings",
        account_type=Account.SAVINGS,
        starting_balance=Decimal("500.00"),
    )


@pytest.fixture
def credit_card(db, test_user):
    return AccountFactory(
        user=test_user,
        name="Visa",
        account_type=Account.CREDIT,
        credit_limit=Decimal("2000.00"),
    )


@pytest.fixture
def other_account(db, other_user):
    return AccountFactory(user=other_user, name="Other Checking")


# =============================================================================
# CATEGORY FIXTURES
# =============================================================================


@pytest.fixture
def groceries(db):
    """Global Groceries category (seeded after migrate, created when missing)."""
    category = Category.objects.filter(user__isnull=True, name__iexact="Groceries").first()
    return category or Category.objects.create(name="Groceries")


@pytest.fixture
def dining(db):
    category = Category.objects.filter(user__isnull=True, name__iexact="Dining").first()
    return category or Category.objects.create(name="Dining")


@pytest.fixture
def custom_category(db, test_user):
    return CategoryFactory(user=test_user, name="Hobbies")


@pytest.fixture
def foreign_category(db, other_user):
    return CategoryFactory(user=other_user, name="Secret Stuff")


# =============================================================================
# TRANSACTION FIXTURES
# =============================================================================


@pytest.fixture
def reviewed_debit(db, checking):
    return TransactionFactory(
        account=checking,
        trx_date=date(2025, 3, 10),
        description="Corner Market",
        amount=Decimal("45.50"),
        trx_type=Transaction.DEBIT,
    )


@pytest.fixture
def pending_transaction(db, checking):
    return TransactionFactory(
        account=checking,
        trx_date=date(2025, 3, 12),
        description="Gas Station",
        amount=Decimal("30.00"),
        trx_type=Transaction.DEBIT,
        pending=True,
        skip_pending_default=False,
    )


# =============================================================================
# STASH AND BILL FIXTURES
# =============================================================================


@pytest.fixture
def vacation_stash(db, checking):
    return StashFactory(account=checking, name="Vacation", goal=Decimal("300.00"))


@pytest.fixture
def rent_bill(db, test_user, checking):
    return BillFactory(
        user=test_user,
        account=checking,
        description="Rent",
        day_of_month=1,
        amount=Decimal("1200.00"),
    )


@pytest.fixture
def salary_bill(db, test_user, checking):
    return BillFactory(
        user=test_user,
        account=checking,
        bill_type=Bill.INCOME,
        description="Salary",
        day_of_month=15,
        amount=Decimal("2500.00"),
    )
