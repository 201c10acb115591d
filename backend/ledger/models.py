"""
Database models for the budget ledger.

This module defines accounts, transactions, categories and their lookup
memory, stashes, recurring bills with their generated batches, documents
and generic file attachments. Balance bookkeeping lives in the
``Transaction`` save/delete hooks so that an account's ``current_balance``
always equals the sum of its transaction amounts.
"""

import logging
import math
import uuid
from datetime import timedelta
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.contrib.contenttypes.fields import GenericForeignKey, GenericRelation
from django.contrib.contenttypes.models import ContentType
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models, transaction
from django.db.models import F, Q
from django.db.models.functions import Lower
from django.utils import timezone
from rapidfuzz import fuzz, process

from .managers import (
    BillQuerySet,
    CategoryQuerySet,
    DocumentQuerySet,
    TransactionQuerySet,
)
from .utils import dates
from .utils.formatting import round_money, squish


# Get structured logger for this module
logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def _to_decimal(value):
    """Best-effort numeric conversion; ``None`` when the value is not a number."""
    if value is None or value == "":
        return None
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return number if number.is_finite() else None


# -------------------------------------------------------------------
# ACCOUNTS
# -------------------------------------------------------------------
# Bank accounts owned by a single user


class Account(models.Model):
    """
    A bank, credit or cash account.

    ``current_balance`` is maintained by ``Transaction`` hooks and is never
    edited directly. A non-zero ``starting_balance`` is booked as an opening
    transaction when the account is created.
    """

    CHECKING = "checking"
    SAVINGS = "savings"
    CREDIT = "credit"
    CASH = "cash"
    ACCOUNT_TYPES = [
        (CHECKING, "Checking"),
        (SAVINGS, "Savings"),
        (CREDIT, "Credit"),
        (CASH, "Cash"),
    ]

    STARTING_BALANCE_DESCRIPTION = "Starting Balance"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="accounts"
    )
    name = models.CharField(max_length=50)
    account_type = models.CharField(max_length=10, choices=ACCOUNT_TYPES)
    starting_balance = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    current_balance = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    credit_limit = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True
    )
    active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["user", "active"]),
            models.Index(fields=["user", "account_type"]),
        ]

    def __str__(self):
        return self.name

    def clean(self):
        """Validate account data."""
        super().clean()

        if not self.name or len(self.name.strip()) < 2:
            raise ValidationError({"name": "must be at least 2 characters long"})

        if self.credit_limit is not None and self.account_type != self.CREDIT:
            raise ValidationError(
                {"credit_limit": "can only be set on credit accounts"}
            )

        if self.credit_limit is not None and self.credit_limit < 0:
            raise ValidationError({"credit_limit": "must be zero or greater"})

        logger.debug(
            "Account validation completed",
            extra={
                "account_id": self.id if self.id else "new",
                "account_type": self.account_type,
                "action": "account_validation",
                "component": "Account",
            },
        )

    def save(self, *args, **kwargs):
        """Create the account and book its opening balance atomically."""
        with transaction.atomic():
            creating = self._state.adding
            opening = _to_decimal(self.starting_balance) or ZERO
            if creating:
                self.current_balance = ZERO

            super().save(*args, **kwargs)

            if creating and opening != ZERO:
                Transaction(
                    account=self,
                    trx_date=dates.today(),
                    description=self.STARTING_BALANCE_DESCRIPTION,
                    amount=abs(opening),
                    trx_type="credit" if opening > 0 else "debit",
                    pending=False,
                    locked=True,
                    skip_pending_default=True,
                ).save()

                logger.info(
                    "Opening balance booked",
                    extra={
                        "account_id": self.id,
                        "user_id": self.user_id,
                        "starting_balance": float(opening),
                        "action": "account_opening_balance",
                        "component": "Account",
                    },
                )

    @property
    def pending_balance(self):
        return self.transactions.filter(pending=True).aggregate(
            total=models.Sum("amount")
        )["total"] or ZERO

    @property
    def stashed(self):
        return self.stashes.aggregate(total=models.Sum("balance"))["total"] or ZERO

    @property
    def available_balance(self):
        return self.current_balance - self.stashed

    def activate(self):
        self.active = True
        self.save(update_fields=["active", "updated_at"])

    def deactivate(self):
        self.active = False
        self.save(update_fields=["active", "updated_at"])


# -------------------------------------------------------------------
# CATEGORIES
# -------------------------------------------------------------------
# Global and user-custom spending categories, hidden per user


class Category(models.Model):
    """
    Spending category.

    Global categories (``user`` is null) are shared by everyone; custom
    categories belong to one user. Names are squished and unique per user
    case-insensitively.
    """

    GLOBAL = 0
    CUSTOM = 1
    KIND_CHOICES = [(GLOBAL, "Global"), (CUSTOM, "Custom")]

    TRANSFER_NAME = "Transfer"
    DEFAULT_GLOBAL_NAMES = [
        "Groceries",
        "Dining",
        "Utilities",
        "Rent",
        "Mortgage",
        "Transportation",
        "Fuel",
        "Healthcare",
        "Insurance",
        "Entertainment",
        "Travel",
        "Income",
        "Savings",
        "Investments",
        "Subscriptions",
        "Education",
        "Gifts",
        "Miscellaneous",
        TRANSFER_NAME,
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="categories",
    )
    name = models.CharField(max_length=80)
    kind = models.PositiveSmallIntegerField(choices=KIND_CHOICES, default=CUSTOM)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = CategoryQuerySet.as_manager()

    class Meta:
        ordering = ["name"]
        verbose_name_plural = "Categories"
        constraints = [
            models.UniqueConstraint(
                Lower("name"), "user", name="uniq_category_name_per_user"
            ),
            models.UniqueConstraint(
                Lower("name"),
                condition=Q(user__isnull=True),
                name="uniq_global_category_name",
            ),
        ]

    def __str__(self):
        return self.name

    @property
    def is_global(self):
        return self.kind == self.GLOBAL

    @classmethod
    def transfer_category(cls):
        """The global category used for transfer and stash transactions."""
        category = cls.objects.filter(
            user__isnull=True, name__iexact=cls.TRANSFER_NAME
        ).first()
        if category is None:
            category = cls.objects.create(name=cls.TRANSFER_NAME, kind=cls.GLOBAL)
        return category

    def clean(self):
        """Validate name length and per-user case-insensitive uniqueness."""
        super().clean()
        self.name = squish(self.name)

        if not self.name:
            raise ValidationError({"name": "can't be blank"})

        duplicates = Category.objects.filter(
            name__iexact=self.name, user_id=self.user_id
        )
        if self.pk:
            duplicates = duplicates.exclude(pk=self.pk)
        if duplicates.exists():
            logger.warning(
                "Category validation failed - duplicate name",
                extra={
                    "category_id": self.id if self.id else "new",
                    "user_id": self.user_id,
                    "action": "category_validation_failed",
                    "component": "Category",
                    "severity": "low",
                },
            )
            raise ValidationError({"name": "has already been taken"})

    def save(self, *args, **kwargs):
        self.name = squish(self.name)
        self.kind = self.GLOBAL if self.user_id is None else self.CUSTOM
        super().save(*args, **kwargs)


class HiddenCategory(models.Model):
    """A global category a user chose to hide (after renaming or deleting it)."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="hidden_categories",
    )
    category = models.ForeignKey(
        Category, on_delete=models.CASCADE, related_name="hidden_entries"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["user", "category"], name="uniq_hidden_category_per_user"
            )
        ]

    def __str__(self):
        return f"{self.user} hides {self.category}"


class CategoryLookup(models.Model):
    """
    Description to category memory.

    Every time a described transaction is categorized the normalized
    description is remembered with a usage counter; suggestions are served
    from here before asking the AI client.
    """

    # rapidfuzz token_sort_ratio score, 0 to 100
    SIMILARITY_THRESHOLD = 70

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="category_lookups",
    )
    category = models.ForeignKey(
        Category, on_delete=models.CASCADE, related_name="lookups"
    )
    description_norm = models.CharField(max_length=255)
    usage_count = models.PositiveIntegerField(default=0)
    last_used_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-last_used_at", "-usage_count"]
        constraints = [
            models.UniqueConstraint(
                fields=["user", "description_norm"],
                name="uniq_lookup_description_per_user",
            )
        ]
        indexes = [models.Index(fields=["user", "category"])]

    def __str__(self):
        return f"{self.description_norm} -> {self.category}"

    @staticmethod
    def normalize(text):
        return squish(text).lower()

    def clean(self):
        super().clean()
        self.description_norm = self.normalize(self.description_norm)
        if not self.description_norm:
            raise ValidationError({"description_norm": "can't be blank"})

    def save(self, *args, **kwargs):
        self.description_norm = self.normalize(self.description_norm)
        super().save(*args, **kwargs)

    @property
    def confidence(self):
        return min(0.6 + math.log(1 + self.usage_count) / 5.0, 0.95)

    @classmethod
    def upsert_for(cls, user, category, description):
        """
        Remember that ``description`` was filed under ``category``.

        Returns:
            CategoryLookup or None: the updated lookup, ``None`` for blank input
        """
        norm = cls.normalize(description)
        if not norm or user is None or category is None:
            return None

        lookup = (
            cls.objects.select_for_update()
            .filter(user=user, description_norm=norm)
            .first()
        )
        if lookup is None:
            lookup = cls(user=user, description_norm=norm)
        lookup.category = category
        lookup.usage_count = (lookup.usage_count or 0) + 1
        lookup.last_used_at = timezone.now()
        lookup.save()

        logger.debug(
            "Category lookup upserted",
            extra={
                "user_id": user.id,
                "category_id": category.id,
                "usage_count": lookup.usage_count,
                "action": "category_lookup_upsert",
                "component": "CategoryLookup",
            },
        )
        return lookup

    @classmethod
    def suggest_for(cls, user, description):
        """
        Best lookup for ``description``: exact match first, then the closest
        remembered description scoring at least ``SIMILARITY_THRESHOLD``.

        Ties on score go to the more used, then the more recently used lookup.
        """
        norm = cls.normalize(description)
        if not norm:
            return None

        lookups = cls.objects.filter(user=user).select_related("category")
        exact = lookups.filter(description_norm=norm).first()
        if exact:
            return exact

        choices = dict(lookups.values_list("id", "description_norm"))
        matches = process.extract(
            norm,
            choices,
            scorer=fuzz.token_sort_ratio,
            score_cutoff=cls.SIMILARITY_THRESHOLD,
            limit=None,
        )
        if not matches:
            return None

        scores = {lookup_id: score for _, score, lookup_id in matches}
        candidates = lookups.filter(id__in=list(scores))
        return max(
            candidates,
            key=lambda lookup: (
                scores[lookup.id],
                lookup.usage_count,
                lookup.last_used_at.timestamp() if lookup.last_used_at else 0,
            ),
        )


# -------------------------------------------------------------------
# ATTACHMENTS
# -------------------------------------------------------------------
# Uploaded files attached to transactions and documents


class Attachment(models.Model):
    """Uploaded file attached to any record through a generic relation."""

    content_type = models.ForeignKey(ContentType, on_delete=models.CASCADE)
    object_id = models.PositiveBigIntegerField()
    content_object = GenericForeignKey("content_type", "object_id")

    file = models.FileField(upload_to="attachments/%Y/%m/")
    filename = models.CharField(max_length=255)
    mime_type = models.CharField(max_length=100, blank=True)
    byte_size = models.PositiveBigIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]
        indexes = [models.Index(fields=["content_type", "object_id"])]

    def __str__(self):
        return self.filename

    @classmethod
    def build_for(cls, owner, uploaded_file):
        return cls(
            content_object=owner,
            file=uploaded_file,
            filename=getattr(uploaded_file, "name", "") or "upload",
            mime_type=getattr(uploaded_file, "content_type", "") or "",
            byte_size=getattr(uploaded_file, "size", 0) or 0,
        )

    def delete(self, *args, **kwargs):
        storage, name = self.file.storage, self.file.name
        result = super().delete(*args, **kwargs)
        if name:
            transaction.on_commit(lambda: storage.delete(name))
        return result


# -------------------------------------------------------------------
# TRANSACTIONS
# -------------------------------------------------------------------
# Signed account entries with balance bookkeeping and transfer sync


class Transaction(models.Model):
    """
    Account transaction with a signed amount.

    ``trx_type`` (debit/credit) is not stored: it decides the sign of the
    amount when the transaction is saved. Create, update and delete keep
    the account's ``current_balance`` equal to the sum of its amounts.
    """

    DEBIT = "debit"
    CREDIT = "credit"
    TRX_TYPES = [DEBIT, CREDIT]

    TRACKED_FIELDS = (
        "account_id",
        "amount",
        "trx_date",
        "description",
        "memo",
        "pending",
        "category_id",
        "counterpart_transaction_id",
    )

    account = models.ForeignKey(
        Account, on_delete=models.CASCADE, related_name="transactions"
    )
    trx_date = models.DateField()
    description = models.CharField(max_length=150, blank=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    memo = models.TextField(max_length=500, blank=True)
    pending = models.BooleanField(default=True)
    quick_receipt = models.BooleanField(default=False)
    locked = models.BooleanField(default=False)
    transfer = models.BooleanField(default=False)
    category = models.ForeignKey(
        Category,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="transactions",
    )
    bill_transaction_batch = models.ForeignKey(
        "BillTransactionBatch",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="transactions",
    )
    batch_reference = models.CharField(max_length=64, blank=True)
    counterpart_transaction = models.ForeignKey(
        "self",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="counterpart_inverse",
    )
    attachments = GenericRelation(Attachment)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = TransactionQuerySet.as_manager()

    class Meta:
        ordering = ["-pending", "-trx_date", "-id"]
        indexes = [
            models.Index(fields=["account", "trx_date"]),
            models.Index(fields=["account", "pending"]),
            models.Index(fields=["description"]),
            models.Index(fields=["batch_reference"]),
        ]

    # Non-persistent attributes, accepted as constructor keywords
    @property
    def trx_type(self):
        return getattr(self, "_trx_type", None)

    @trx_type.setter
    def trx_type(self, value):
        self._trx_type = value or None

    @property
    def skip_pending_default(self):
        return getattr(self, "_skip_pending_default", False)

    @skip_pending_default.setter
    def skip_pending_default(self, value):
        self._skip_pending_default = bool(value)

    @property
    def staged_files(self):
        return getattr(self, "_staged_files", [])

    @staged_files.setter
    def staged_files(self, value):
        self._staged_files = list(value or [])

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._remember_state()
        return instance

    def _remember_state(self):
        self._original = {name: getattr(self, name) for name in self.TRACKED_FIELDS}

    @property
    def original(self):
        return getattr(self, "_original", {})

    def __str__(self):
        return f"{self.trx_date} {self.description or '(pending receipt)'} {self.amount}"

    # ---------------------------------------------------------------
    # Presentation helpers
    # ---------------------------------------------------------------

    @property
    def transaction_type(self):
        """("Credit", "credit") for saved non-negative amounts, else debit."""
        if self.pk and self.amount is not None and self.amount >= 0:
            return ("Credit", self.CREDIT)
        return ("Debit", self.DEBIT)

    @property
    def has_attachments(self):
        return bool(self.pk) and self.attachments.exists()

    @property
    def stash_entry(self):
        if not self.pk:
            return None
        return self.stash_entries.select_related("stash").first()

    @property
    def is_account_to_account(self):
        return self.transfer and self.counterpart_transaction_id is not None

    @property
    def is_account_to_stash(self):
        return self.transfer and self.stash_entry is not None

    # ---------------------------------------------------------------
    # Normalization
    # ---------------------------------------------------------------

    def normalize_amount(self):
        """
        Apply the debit/credit sign rules to ``amount`` and settle ``trx_type``.

        Without a ``trx_type`` a quick receipt is a debit and anything else
        takes its type from the sign of the amount supplied. Non-numeric
        input is left untouched for ``clean()`` to report.
        """
        numeric = _to_decimal(self.amount)

        if not self.trx_type:
            if self.quick_receipt:
                self.trx_type = self.DEBIT
            elif numeric is not None:
                self.trx_type = self.CREDIT if numeric >= 0 else self.DEBIT

        if numeric is None:
            return
        if self.trx_type == self.DEBIT:
            numeric = -abs(numeric)
        elif self.trx_type == self.CREDIT:
            numeric = abs(numeric)
        self.amount = numeric

    def _sync_batch_reference(self):
        if self.bill_transaction_batch_id and not self.batch_reference:
            self.batch_reference = self.bill_transaction_batch.reference

    # ---------------------------------------------------------------
    # Validation
    # ---------------------------------------------------------------

    def clean(self):
        """Validate review requirements, sign rules and ownership."""
        super().clean()
        self.normalize_amount()

        errors = {}

        def add(field, message):
            errors.setdefault(field, []).append(message)

        if self.trx_date is None:
            add("trx_date", "can't be blank")

        if self.memo and len(self.memo) > 500:
            add("memo", "is too long (maximum is 500 characters)")

        amount = _to_decimal(self.amount)
        if self.amount not in (None, "") and amount is None:
            add("amount", "must be a number")

        if not self.pending:
            if not self.trx_type:
                add("trx_type", "Please select debit or credit")
            elif self.trx_type not in self.TRX_TYPES:
                add("trx_type", "is not included in the list")
            if not (self.description or "").strip():
                add("description", "can't be blank")
            if self.amount in (None, ""):
                add("amount", "can't be blank")
            elif amount is not None and not self._state.adding:
                if self.trx_type == self.DEBIT and amount > 0:
                    add("amount", "must be negative for debit transactions")
                elif self.trx_type == self.CREDIT and amount < 0:
                    add("amount", "must be positive for credit transactions")

        if self.quick_receipt and not (self.staged_files or self.has_attachments):
            add("attachments", "are required for quick receipt transactions")

        self._validate_ownership(add)

        if errors:
            logger.warning(
                "Transaction validation failed",
                extra={
                    "transaction_id": self.id if self.id else "new",
                    "account_id": self.account_id,
                    "error_fields": sorted(errors),
                    "action": "transaction_validation_failed",
                    "component": "Transaction",
                    "severity": "medium",
                },
            )
            raise ValidationError(errors)

        logger.debug(
            "Transaction validation completed successfully",
            extra={
                "transaction_id": self.id if self.id else "new",
                "pending": self.pending,
                "trx_type": self.trx_type,
                "action": "transaction_validation_success",
                "component": "Transaction",
            },
        )

    def _validate_ownership(self, add):
        if not self.account_id:
            return
        owner_id = Account.objects.filter(pk=self.account_id).values_list(
            "user_id", flat=True
        ).first()

        previous_account_id = self.original.get("account_id")
        if (
            not self._state.adding
            and previous_account_id
            and previous_account_id != self.account_id
        ):
            previous_owner = Account.objects.filter(pk=previous_account_id).values_list(
                "user_id", flat=True
            ).first()
            if previous_owner != owner_id:
                add("account", "must belong to the same user")

        if self.counterpart_transaction_id:
            counterpart_owner = Transaction.objects.filter(
                pk=self.counterpart_transaction_id
            ).values_list("account__user_id", flat=True).first()
            if counterpart_owner is not None and counterpart_owner != owner_id:
                add("counterpart_transaction", "must belong to the same user")

        if self.category_id:
            category_owner = Category.objects.filter(pk=self.category_id).values_list(
                "user_id", flat=True
            )
            if category_owner and category_owner[0] not in (None, owner_id):
                add("category", "must belong to the same user")

    # ---------------------------------------------------------------
    # Persistence with bookkeeping
    # ---------------------------------------------------------------

    def save(self, *args, **kwargs):
        """Save with sign normalization, balance bookkeeping and transfer sync."""
        with transaction.atomic():
            adding = self._state.adding
            previous = dict(self.original)

            self.normalize_amount()
            self._sync_batch_reference()
            if adding and not self.skip_pending_default:
                self.pending = True
            if self.quick_receipt and (self.description or "").strip() and self.amount is not None:
                self.quick_receipt = False

            super().save(*args, **kwargs)

            if adding:
                self._apply_balance(self.account_id, self.amount)
            else:
                self._update_balances(previous)
                self._sync_transfer(previous)

            self._record_category_lookup(previous, adding)
            self._remember_state()

    def delete(self, *args, **kwargs):
        with transaction.atomic():
            account_id = self.original.get("account_id", self.account_id)
            amount = self.original.get("amount", self.amount)
            result = super().delete(*args, **kwargs)
            if amount is not None:
                self._apply_balance(account_id, -amount)

            logger.info(
                "Transaction deleted",
                extra={
                    "account_id": account_id,
                    "amount": float(amount) if amount is not None else None,
                    "action": "transaction_deleted",
                    "component": "Transaction",
                },
            )
            return result

    def update_date_only(self, new_date):
        """Change the date without running validation or bookkeeping."""
        Transaction.objects.filter(pk=self.pk).update(
            trx_date=new_date, updated_at=timezone.now()
        )
        self.trx_date = new_date
        self._remember_state()

    def _apply_balance(self, account_id, delta):
        if account_id is None or delta in (None, ZERO):
            return
        Account.objects.filter(pk=account_id).update(
            current_balance=F("current_balance") + delta
        )
        if Transaction.account.is_cached(self) and self.account.pk == account_id:
            self.account.refresh_from_db(fields=["current_balance"])

    def _update_balances(self, previous):
        old_account_id = previous.get("account_id", self.account_id)
        old_amount = previous.get("amount") or ZERO
        new_amount = self.amount or ZERO

        if old_account_id != self.account_id:
            logger.info(
                "Transaction moved between accounts",
                extra={
                    "transaction_id": self.id,
                    "from_account_id": old_account_id,
                    "to_account_id": self.account_id,
                    "action": "transaction_account_change",
                    "component": "Transaction",
                },
            )
            self._apply_balance(old_account_id, -old_amount)
            self._apply_balance(self.account_id, new_amount)
        elif old_amount != new_amount:
            self._apply_balance(self.account_id, new_amount - old_amount)

    def _sync_transfer(self, previous):
        """Mirror edits of a transfer onto its counterpart or stash entry."""
        if not self.transfer:
            return

        date_changed = previous.get("trx_date") != self.trx_date
        amount_changed = previous.get("amount") != self.amount
        description_changed = previous.get("description") != self.description
        memo_changed = previous.get("memo") != self.memo
        if not (date_changed or amount_changed or description_changed or memo_changed):
            return

        if self.counterpart_transaction_id:
            counterpart = Transaction.objects.select_related("account").get(
                pk=self.counterpart_transaction_id
            )
            updates = {}
            if date_changed:
                updates["trx_date"] = self.trx_date
            if amount_changed and self.amount is not None:
                updates["amount"] = abs(self.amount) if self.amount < 0 else -abs(self.amount)
            if description_changed and self.description:
                if "Transfer to" in self.description:
                    updates["description"] = f"Transfer from {self.account.name}"
                elif "Transfer from" in self.description:
                    updates["description"] = f"Transfer to {self.account.name}"
            if memo_changed:
                updates["memo"] = self.memo

            if updates:
                Transaction.objects.filter(pk=counterpart.pk).update(
                    **updates, updated_at=timezone.now()
                )
                if "amount" in updates and counterpart.amount is not None:
                    self._apply_balance(
                        counterpart.account_id, updates["amount"] - counterpart.amount
                    )
                logger.info(
                    "Transfer counterpart synchronized",
                    extra={
                        "transaction_id": self.id,
                        "counterpart_id": counterpart.pk,
                        "updated_fields": sorted(updates),
                        "action": "transfer_counterpart_sync",
                        "component": "Transaction",
                    },
                )

        entry = self.stash_entry
        if entry is not None:
            updates = {}
            if date_changed:
                updates["stash_entry_date"] = self.trx_date
            if amount_changed and self.amount is not None:
                updates["amount"] = (
                    -abs(self.amount) if entry.amount < 0 else abs(self.amount)
                )
            if updates:
                StashEntry.objects.filter(pk=entry.pk).update(**updates)
                if "amount" in updates:
                    Stash.objects.filter(pk=entry.stash_id).update(
                        balance=F("balance") - entry.amount + updates["amount"]
                    )
                logger.info(
                    "Stash entry synchronized with transfer",
                    extra={
                        "transaction_id": self.id,
                        "stash_entry_id": entry.pk,
                        "updated_fields": sorted(updates),
                        "action": "stash_entry_sync",
                        "component": "Transaction",
                    },
                )

    def _record_category_lookup(self, previous, adding):
        if not self.category_id or not (self.description or "").strip():
            return
        if self.transfer:
            return
        changed = (
            adding
            or previous.get("category_id") != self.category_id
            or previous.get("description") != self.description
        )
        if changed:
            CategoryLookup.upsert_for(
                user=self.account.user, category=self.category, description=self.description
            )


# -------------------------------------------------------------------
# STASHES
# -------------------------------------------------------------------
# Savings sub-balances set aside inside an account


class Stash(models.Model):
    """
    Money set aside inside an account towards a goal.

    Deleting a stash that still holds money first returns the funds to the
    account with a credit transfer transaction.
    """

    account = models.ForeignKey(
        Account, on_delete=models.CASCADE, related_name="stashes"
    )
    name = models.CharField(max_length=50)
    description = models.TextField(blank=True)
    goal = models.DecimalField(max_digits=12, decimal_places=2)
    balance = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(
                fields=["account", "name"], name="uniq_stash_name_per_account"
            )
        ]

    def __str__(self):
        return self.name

    def clean(self):
        super().clean()
        errors = {}
        name = (self.name or "").strip()
        if len(name) < 2:
            errors["name"] = "is too short (minimum is 2 characters)"
        elif self.account_id:
            clash = Stash.objects.filter(account_id=self.account_id, name=name)
            if self.pk:
                clash = clash.exclude(pk=self.pk)
            if clash.exists():
                errors["name"] = "has already been taken"
        if self.balance is not None and self.balance < 0:
            errors["balance"] = "must be greater than or equal to 0"
        if self.goal is not None and self.balance is not None and self.goal < self.balance:
            errors["goal"] = "must be greater than or equal to the balance"
        if errors:
            raise ValidationError(errors)

    def delete(self, *args, **kwargs):
        with transaction.atomic():
            if self.balance and self.balance > 0:
                refund = Transaction(
                    account_id=self.account_id,
                    trx_type=Transaction.CREDIT,
                    trx_date=dates.today(),
                    category=Category.transfer_category(),
                    description=f"Transfer from {self.name} Stash (Stash Deleted)",
                    amount=abs(self.balance),
                    pending=False,
                    skip_pending_default=True,
                    locked=True,
                    transfer=True,
                )
                refund.full_clean()
                refund.save()

                logger.info(
                    "Stashed funds returned to account",
                    extra={
                        "stash_id": self.id,
                        "account_id": self.account_id,
                        "amount": float(self.balance),
                        "action": "stash_unstash",
                        "component": "Stash",
                    },
                )
            return super().delete(*args, **kwargs)


class StashEntry(models.Model):
    """Signed movement into (+) or out of (-) a stash."""

    stash = models.ForeignKey(Stash, on_delete=models.CASCADE, related_name="entries")
    transaction = models.ForeignKey(
        Transaction,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="stash_entries",
    )
    stash_entry_date = models.DateField()
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    description = models.CharField(max_length=150, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-stash_entry_date", "-id"]
        verbose_name_plural = "Stash entries"

    def __str__(self):
        return f"{self.stash} {self.amount}"


# -------------------------------------------------------------------
# BILLS
# -------------------------------------------------------------------
# Recurring expected income and expenses with generated batches


class Bill(models.Model):
    """
    Recurring bill or income with a recurrence rule.

    Monthly bills occur once per month on ``day_of_month``. Bi-weekly bills
    either occur on two fixed days (``two_days``) or every fourteen days
    from an anchor date (``every_other_week``). Quarterly and annual bills
    occur in the months aligned with ``next_occurrence_month``.
    """

    INCOME = "income"
    EXPENSE = "expense"
    DEBT_REPAYMENT = "debt_repayment"
    PAYMENT_PLAN = "payment_plan"
    BILL_TYPES = [
        (INCOME, "Income"),
        (EXPENSE, "Expense"),
        (DEBT_REPAYMENT, "Debt Repayment"),
        (PAYMENT_PLAN, "Payment Plan"),
    ]

    MONTHLY = "monthly"
    BI_WEEKLY = "bi_weekly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"
    FREQUENCIES = [
        (MONTHLY, "Monthly"),
        (BI_WEEKLY, "Bi Weekly"),
        (QUARTERLY, "Quarterly"),
        (ANNUAL, "Annual"),
    ]

    TWO_DAYS = "two_days"
    EVERY_OTHER_WEEK = "every_other_week"
    BIWEEKLY_MODES = [
        (TWO_DAYS, "Two Days"),
        (EVERY_OTHER_WEEK, "Every Other Week"),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="bills"
    )
    account = models.ForeignKey(Account, on_delete=models.CASCADE, related_name="bills")
    bill_type = models.CharField(max_length=20, choices=BILL_TYPES)
    category = models.ForeignKey(
        Category,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="bills",
    )
    description = models.CharField(max_length=150)
    frequency = models.CharField(max_length=20, choices=FREQUENCIES, default=MONTHLY)
    day_of_month = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(31)]
    )
    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    notes = models.TextField(max_length=2000, blank=True)

    biweekly_mode = models.CharField(
        max_length=20, choices=BIWEEKLY_MODES, null=True, blank=True
    )
    second_day_of_month = models.PositiveSmallIntegerField(
        null=True, blank=True, validators=[MinValueValidator(1), MaxValueValidator(31)]
    )
    biweekly_anchor_weekday = models.PositiveSmallIntegerField(
        null=True, blank=True, validators=[MaxValueValidator(6)]
    )
    biweekly_anchor_date = models.DateField(null=True, blank=True)
    next_occurrence_month = models.PositiveSmallIntegerField(
        null=True, blank=True, validators=[MinValueValidator(1), MaxValueValidator(12)]
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = BillQuerySet.as_manager()

    class Meta:
        ordering = ["day_of_month", "description"]
        indexes = [
            models.Index(fields=["user", "bill_type"]),
            models.Index(fields=["user", "day_of_month"]),
        ]

    def __str__(self):
        return f"{self.description} ({self.get_frequency_display()})"

    @property
    def is_income(self):
        return self.bill_type == self.INCOME

    @property
    def is_two_days(self):
        return self.frequency == self.BI_WEEKLY and self.biweekly_mode == self.TWO_DAYS

    @property
    def is_every_other_week(self):
        return (
            self.frequency == self.BI_WEEKLY
            and self.biweekly_mode != self.TWO_DAYS
        )

    def clean(self):
        """Validate ownership and the recurrence fields of the frequency sub-mode."""
        super().clean()
        errors = {}

        if self.account_id and self.user_id:
            owner_id = Account.objects.filter(pk=self.account_id).values_list(
                "user_id", flat=True
            ).first()
            if owner_id != self.user_id:
                errors["account"] = "must belong to your profile"

        if self.category_id and self.user_id:
            category_owner = Category.objects.filter(pk=self.category_id).values_list(
                "user_id", flat=True
            )
            if category_owner and category_owner[0] not in (None, self.user_id):
                errors["category"] = "must belong to your profile"

        if self.frequency == self.BI_WEEKLY:
            if not self.biweekly_mode:
                self.biweekly_mode = self.EVERY_OTHER_WEEK
            if self.biweekly_mode == self.TWO_DAYS:
                if not self.second_day_of_month:
                    errors["second_day_of_month"] = "can't be blank"
                elif self.second_day_of_month == self.day_of_month:
                    errors["second_day_of_month"] = "must differ from the first day"
            elif self.biweekly_mode == self.EVERY_OTHER_WEEK:
                if not self.biweekly_anchor_date:
                    errors["biweekly_anchor_date"] = "can't be blank"
                else:
                    self.biweekly_anchor_weekday = self._sunday_weekday(
                        self.biweekly_anchor_date
                    )
        elif self.frequency in (self.QUARTERLY, self.ANNUAL):
            if not self.next_occurrence_month:
                errors["next_occurrence_month"] = "can't be blank"

        if errors:
            logger.warning(
                "Bill validation failed",
                extra={
                    "bill_id": self.id if self.id else "new",
                    "frequency": self.frequency,
                    "error_fields": sorted(errors),
                    "action": "bill_validation_failed",
                    "component": "Bill",
                    "severity": "medium",
                },
            )
            raise ValidationError(errors)

    def save(self, *args, **kwargs):
        if self.frequency != self.BI_WEEKLY:
            self.biweekly_mode = None
            self.second_day_of_month = None
            self.biweekly_anchor_date = None
            self.biweekly_anchor_weekday = None
        elif self.biweekly_mode == self.TWO_DAYS:
            self.biweekly_anchor_date = None
            self.biweekly_anchor_weekday = None
        else:
            self.second_day_of_month = None
            if self.biweekly_anchor_date:
                self.biweekly_anchor_weekday = self._sunday_weekday(
                    self.biweekly_anchor_date
                )
        if self.frequency not in (self.QUARTERLY, self.ANNUAL):
            self.next_occurrence_month = None
        super().save(*args, **kwargs)

    @staticmethod
    def _sunday_weekday(value):
        """Weekday number with Sunday as 0."""
        return (value.weekday() + 1) % 7

    # ---------------------------------------------------------------
    # Recurrence
    # ---------------------------------------------------------------

    def calendar_date_for(self, reference=None):
        """The bill's day in ``reference``'s month, clamped to the month end."""
        reference = reference or dates.today()
        return dates.clamp_day(reference, self.day_of_month)

    def occurrences_for_month(self, reference=None):
        """All dates on which the bill falls in ``reference``'s month, sorted."""
        reference = dates.beginning_of_month(reference or dates.today())

        if self.frequency == self.MONTHLY:
            return [self.calendar_date_for(reference)]

        if self.frequency == self.BI_WEEKLY:
            if self.biweekly_mode == self.TWO_DAYS:
                days = {self.calendar_date_for(reference)}
                if self.second_day_of_month:
                    days.add(dates.clamp_day(reference, self.second_day_of_month))
                return sorted(days)
            return self._every_other_week_dates(reference)

        if self.frequency == self.QUARTERLY:
            if self.next_occurrence_month and (
                (reference.month - self.next_occurrence_month) % 3 == 0
            ):
                return [self.calendar_date_for(reference)]
            return []

        if self.frequency == self.ANNUAL:
            if reference.month == self.next_occurrence_month:
                return [self.calendar_date_for(reference)]
            return []

        return []

    def _every_other_week_dates(self, reference):
        anchor = self.biweekly_anchor_date or self.calendar_date_for(reference)
        month_start = reference
        month_end = dates.end_of_month(reference)

        offset = (month_start - anchor).days % 14
        current = month_start if offset == 0 else month_start + timedelta(days=14 - offset)
        result = []
        while current <= month_end:
            result.append(current)
            current += timedelta(days=14)
        return result

    @property
    def occurrence_days_count(self):
        return len({d for d in (self.day_of_month, self.second_day_of_month) if d})

    @property
    def monthly_normalized_amount(self):
        amount = Decimal(self.amount or 0)
        if self.frequency == self.BI_WEEKLY:
            if self.biweekly_mode == self.TWO_DAYS:
                return round_money(amount * self.occurrence_days_count)
            return round_money(amount * 26 / 12)
        if self.frequency == self.QUARTERLY:
            return round_money(amount / 3)
        if self.frequency == self.ANNUAL:
            return round_money(amount / 12)
        return round_money(amount)

    @property
    def signed_amount(self):
        amount = Decimal(self.amount or 0)
        return amount if self.is_income else -amount


class BillTransactionBatch(models.Model):
    """
    Group of pending transactions generated from bills in one run.

    The batch is what a user undoes; it covers either one calendar month
    (``period_month``) or an explicit date range.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="bill_transaction_batches",
    )
    reference = models.CharField(max_length=64, unique=True, blank=True)
    period_month = models.DateField(null=True, blank=True)
    range_start_date = models.DateField(null=True, blank=True)
    range_end_date = models.DateField(null=True, blank=True)
    transactions_count = models.PositiveIntegerField(default=0)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        verbose_name_plural = "Bill transaction batches"

    def __str__(self):
        return f"{self.month_label} ({self.reference})"

    def clean(self):
        super().clean()
        if not self.reference:
            self.reference = str(uuid.uuid4())
        has_range = self.range_start_date is not None and self.range_end_date is not None
        if self.period_month is None and not has_range:
            raise ValidationError("Specify either period_month or a date range")
        if has_range and self.range_start_date > self.range_end_date:
            raise ValidationError(
                {"range_end_date": "must be on or after the start date"}
            )

    def save(self, *args, **kwargs):
        if not self.reference:
            self.reference = str(uuid.uuid4())
        super().save(*args, **kwargs)

    @property
    def month_label(self):
        if self.period_month:
            return self.period_month.strftime("%B %Y")
        if self.range_start_date and self.range_end_date:
            start = _short_date(self.range_start_date)
            end = _short_date(self.range_end_date)
            return f"{start} - {end}"
        return "Custom range"


def _short_date(value):
    return f"{value.strftime('%b')} {value.day}, {value.year}"


# -------------------------------------------------------------------
# DOCUMENTS
# -------------------------------------------------------------------
# Statements, tax papers and correspondence kept per user or account


class Document(models.Model):
    """
    Filed document owned either by a user or by one of the user's accounts.
    """

    TAXES = "Taxes"
    CATEGORIES = [
        "Statements",
        "Account Documentation",
        "Correspondence",
        "Legal",
        TAXES,
        "Other",
    ]
    CATEGORY_CHOICES = [(name, name) for name in CATEGORIES]

    LEVEL_USER = "User"
    LEVEL_ACCOUNT = "Account"

    attachable_type = models.ForeignKey(ContentType, on_delete=models.CASCADE)
    attachable_id = models.PositiveBigIntegerField()
    attachable = GenericForeignKey("attachable_type", "attachable_id")

    category = models.CharField(max_length=40, choices=CATEGORY_CHOICES)
    description = models.CharField(max_length=255, blank=True)
    document_date = models.DateField()
    tax_year = models.PositiveSmallIntegerField(null=True, blank=True)
    attachments = GenericRelation(Attachment)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = DocumentQuerySet.as_manager()

    class Meta:
        ordering = ["-document_date", "-id"]
        indexes = [
            models.Index(fields=["attachable_type", "attachable_id"]),
            models.Index(fields=["category", "document_date"]),
        ]

    def __str__(self):
        return f"{self.category} {self.document_date}"

    @property
    def is_tax_document(self):
        return self.category == self.TAXES

    @property
    def level(self):
        model = self.attachable_type.model if self.attachable_type_id else None
        if model == "account":
            return self.LEVEL_ACCOUNT
        if model == "customuser":
            return self.LEVEL_USER
        return "Unknown"

    @property
    def account_name(self):
        level = self.level
        if level == self.LEVEL_ACCOUNT:
            return self.attachable.name
        if level == self.LEVEL_USER:
            return "N/A"
        return "Unknown"

    @property
    def owner(self):
        """The user who owns the document, directly or through an account."""
        if self.level == self.LEVEL_ACCOUNT:
            return self.attachable.user
        return self.attachable

    def clean(self):
        super().clean()
        errors = {}
        if self.category not in self.CATEGORIES:
            errors["category"] = "is not included in the list"
        if self.document_date is None:
            errors["document_date"] = "can't be blank"
        if self.is_tax_document:
            if self.tax_year is None:
                errors["tax_year"] = "can't be blank"
            elif not 1900 < self.tax_year < 2100:
                errors["tax_year"] = "must be greater than 1900 and less than 2100"
        if errors:
            raise ValidationError(errors)
