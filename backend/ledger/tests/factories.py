"""
Test factories for the budget ledger models.
"""

from datetime import date, timezone as dt_timezone
from decimal import Decimal

import factory
from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from factory.django import DjangoModelFactory
from faker import Faker

from ledger.models import (
    Account,
    Attachment,
    Bill,
    Category,
    CategoryLookup,
    Document,
    Stash,
    Transaction,
)

fake = Faker()
User = get_user_model()


def uploaded_file(name="receipt.pdf", content=b"%PDF-1.4 test", content_type="application/pdf"):
    return SimpleUploadedFile(name, content, content_type=content_type)


class UserFactory(DjangoModelFactory):
    class Meta:
        model = User
        skip_postgeneration_save = True

    email = factory.Sequence(lambda n: f"user_{n}@example.com")
    password = "testpass123"
    first_name = factory.LazyAttribute(lambda _: fake.first_name())
    last_name = factory.LazyAttribute(lambda _: fake.last_name())
    timezone = "UTC"
    is_active = True

    @classmethod
    def _create(cls, model_class, *args, **kwargs):
        """Use create_user for proper password handling."""
        manager = cls._get_manager(model_class)
        return manager.create_user(*args, **kwargs)


class AccountFactory(DjangoModelFactory):
    class Meta:
        model = Account

    user = factory.SubFactory(UserFactory)
    name = factory.Sequence(lambda n: f"Account {n}")
    account_type = Account.CHECKING
    starting_balance = Decimal("0.00")


class CategoryFactory(DjangoModelFactory):
    """Custom category of a user; pass ``user=None`` for a global one."""

    class Meta:
        model = Category

    user = factory.SubFactory(UserFactory)
    name = factory.Sequence(lambda n: f"Custom Category {n}")


class TransactionFactory(DjangoModelFactory):
    """
    Reviewed debit by default. ``pending=True`` leaves it pending.
    """

    class Meta:
        model = Transaction

    account = factory.SubFactory(AccountFactory)
    trx_date = factory.LazyFunction(date.today)
    description = factory.Sequence(lambda n: f"Purchase {n}")
    amount = Decimal("10.00")
    trx_type = Transaction.DEBIT
    pending = False
    skip_pending_default = True


class CategoryLookupFactory(DjangoModelFactory):
    class Meta:
        model = CategoryLookup

    user = factory.SubFactory(UserFactory)
    category = factory.SubFactory(CategoryFactory, user=factory.SelfAttribute("..user"))
    description_norm = factory.Sequence(lambda n: f"merchant {n}")
    usage_count = 1
    last_used_at = factory.Faker("date_time_this_year", tzinfo=dt_timezone.utc)


class StashFactory(DjangoModelFactory):
    class Meta:
        model = Stash

    account = factory.SubFactory(AccountFactory)
    name = factory.Sequence(lambda n: f"Stash {n}")
    goal = Decimal("500.00")
    balance = Decimal("0.00")


class BillFactory(DjangoModelFactory):
    class Meta:
        model = Bill

    user = factory.SubFactory(UserFactory)
    account = factory.SubFactory(AccountFactory, user=factory.SelfAttribute("..user"))
    bill_type = Bill.EXPENSE
    description = factory.Sequence(lambda n: f"Bill {n}")
    frequency = Bill.MONTHLY
    day_of_month = 5
    amount = Decimal("100.00")


class AttachmentFactory(DjangoModelFactory):
    class Meta:
        model = Attachment

    content_object = factory.SubFactory(TransactionFactory)
    file = factory.LazyFunction(uploaded_file)
    filename = "receipt.pdf"
    mime_type = "application/pdf"
    byte_size = 13


class DocumentFactory(DjangoModelFactory):
    """User-level document; set ``attachable`` to an account for account-level."""

    class Meta:
        model = Document

    attachable = factory.SubFactory(UserFactory)
    category = "Taxes"
    description = factory.Sequence(lambda n: f"Document {n}")
    document_date = factory.LazyFunction(date.today)
    tax_year = 2024
