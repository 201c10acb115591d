"""
Serializers for the budget ledger API.

Serializers validate input shape and render presentation fields; writes are
carried out by the service layer from the viewsets so that model
validation and balance bookkeeping always run.
"""

import logging
from decimal import Decimal

from rest_framework import serializers

from .models import (
    Account,
    Attachment,
    Bill,
    BillTransactionBatch,
    Category,
    CategoryLookup,
    Document,
    Stash,
    StashEntry,
    Transaction,
)
from .services.bill_presenter import BillPresenter
from .utils.formatting import currency, squish

logger = logging.getLogger(__name__)


def _request_user(serializer):
    request = serializer.context.get("request")
    return getattr(request, "user", None)


class UserScopedFieldsMixin:
    """
    Restrict related-field querysets to objects the requesting user may use.

    ``scoped_fields`` maps a field name to a callable receiving the user and
    returning the allowed queryset.
    """

    scoped_fields = {}

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        user = _request_user(self)
        for name, build in self.scoped_fields.items():
            field = self.fields.get(name)
            if field is None:
                continue
            target = getattr(field, "child_relation", field)
            target.queryset = build(user) if user is not None else target.queryset.none()


def _user_accounts(user):
    return Account.objects.filter(user=user)


def _user_active_accounts(user):
    return Account.objects.filter(user=user, active=True)


def _visible_categories(user):
    return Category.objects.visible_to(user)


# -------------------------------------------------------------------
# ATTACHMENTS
# -------------------------------------------------------------------


class AttachmentSerializer(serializers.ModelSerializer):
    url = serializers.SerializerMethodField()

    class Meta:
        model = Attachment
        fields = ["id", "filename", "mime_type", "byte_size", "url", "created_at"]
        read_only_fields = fields

    def get_url(self, obj):
        if not obj.file:
            return None
        request = self.context.get("request")
        url = obj.file.url
        return request.build_absolute_uri(url) if request else url


class FilesUploadSerializer(serializers.Serializer):
    files = serializers.ListField(child=serializers.FileField(), allow_empty=False)


# -------------------------------------------------------------------
# ACCOUNTS
# -------------------------------------------------------------------


class AccountSerializer(serializers.ModelSerializer):
    """
    Account with derived balances.

    ``starting_balance`` can only be set on creation; balances are read-only.
    """

    pending_balance = serializers.DecimalField(
        max_digits=12, decimal_places=2, read_only=True
    )
    stashed = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    available_balance = serializers.DecimalField(
        max_digits=12, decimal_places=2, read_only=True
    )
    current_balance_display = serializers.SerializerMethodField()

    class Meta:
        model = Account
        fields = [
            "id",
            "name",
            "account_type",
            "starting_balance",
            "current_balance",
            "current_balance_display",
            "credit_limit",
            "active",
            "pending_balance",
            "stashed",
            "available_balance",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "current_balance", "active", "created_at", "updated_at"]

    def get_current_balance_display(self, obj):
        return currency(obj.current_balance)

    def validate_name(self, value):
        value = squish(value)
        if len(value) < 2:
            raise serializers.ValidationError("must be at least 2 characters long")
        return value

    def validate(self, attrs):
        if self.instance is not None and "starting_balance" in attrs:
            if attrs["starting_balance"] != self.instance.starting_balance:
                raise serializers.ValidationError(
                    {"starting_balance": "cannot be changed after the account is created"}
                )
        return attrs


class AccountSummarySerializer(serializers.Serializer):
    accounts = AccountSerializer(many=True)
    checking_total = serializers.DecimalField(max_digits=14, decimal_places=2)
    savings_cash_total = serializers.DecimalField(max_digits=14, decimal_places=2)
    credit_total = serializers.DecimalField(max_digits=14, decimal_places=2)
    credit_limit_total = serializers.DecimalField(max_digits=14, decimal_places=2)
    credit_utilization_total = serializers.DecimalField(max_digits=7, decimal_places=2)


# -------------------------------------------------------------------
# TRANSACTIONS
# -------------------------------------------------------------------


class TransactionSerializer(UserScopedFieldsMixin, serializers.ModelSerializer):
    """
    Transaction read/write serializer.

    ``trx_type`` is write-only and decides the amount sign; responses carry
    ``transaction_type`` instead. ``account`` may be changed on update to
    move the transaction to another account of the same user.
    """

    scoped_fields = {
        "category": _visible_categories,
        "account": _user_active_accounts,
    }

    trx_type = serializers.ChoiceField(
        choices=Transaction.TRX_TYPES, write_only=True, required=False, allow_blank=True
    )
    account = serializers.PrimaryKeyRelatedField(
        queryset=Account.objects.all(), required=False
    )
    category = serializers.PrimaryKeyRelatedField(
        queryset=Category.objects.all(), required=False, allow_null=True
    )
    amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, required=False, allow_null=True
    )
    files = serializers.ListField(
        child=serializers.FileField(), write_only=True, required=False
    )
    transaction_type = serializers.SerializerMethodField()
    category_name = serializers.CharField(source="category.name", read_only=True, default=None)
    account_name = serializers.CharField(source="account.name", read_only=True)
    attachments = AttachmentSerializer(many=True, read_only=True)
    running_balance = serializers.SerializerMethodField()

    class Meta:
        model = Transaction
        fields = [
            "id",
            "account",
            "account_name",
            "trx_date",
            "description",
            "amount",
            "memo",
            "pending",
            "quick_receipt",
            "locked",
            "transfer",
            "category",
            "category_name",
            "trx_type",
            "transaction_type",
            "bill_transaction_batch",
            "batch_reference",
            "counterpart_transaction",
            "attachments",
            "files",
            "running_balance",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "id",
            "quick_receipt",
            "locked",
            "transfer",
            "bill_transaction_batch",
            "batch_reference",
            "counterpart_transaction",
            "created_at",
            "updated_at",
        ]
        extra_kwargs = {
            "trx_date": {"required": False},
            "description": {"required": False},
            "memo": {"required": False},
        }

    def get_transaction_type(self, obj):
        label, value = obj.transaction_type
        return {"label": label, "value": value}

    def get_running_balance(self, obj):
        balances = self.context.get("running_balances") or {}
        return balances.get(obj.id)

    def validate_memo(self, value):
        if value and len(value) > 500:
            raise serializers.ValidationError("is too long (maximum is 500 characters)")
        return value

    def validate(self, attrs):
        if self.instance is None and not attrs.get("trx_date"):
            raise serializers.ValidationError({"trx_date": "can't be blank"})
        if attrs.get("trx_type") == "":
            attrs.pop("trx_type")
        return attrs


class TransactionReviewSerializer(serializers.Serializer):
    trx_type = serializers.ChoiceField(choices=Transaction.TRX_TYPES, required=False)


class TransactionDateSerializer(serializers.Serializer):
    trx_date = serializers.DateField()


# -------------------------------------------------------------------
# QUICK RECEIPTS AND TRANSFERS
# -------------------------------------------------------------------


class QuickReceiptSerializer(serializers.Serializer):
    account = serializers.IntegerField(required=False, allow_null=True)
    files = serializers.ListField(child=serializers.FileField(), allow_empty=False)


class TransferSerializer(serializers.Serializer):
    from_account = serializers.IntegerField()
    to_account = serializers.IntegerField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0.01"))
    trx_date = serializers.DateField(required=False)
    memo = serializers.CharField(required=False, allow_blank=True, max_length=500)

    def validate(self, attrs):
        if attrs["from_account"] == attrs["to_account"]:
            raise serializers.ValidationError(
                {"to_account": "must differ from the source account"}
            )
        return attrs


# -------------------------------------------------------------------
# STASHES
# -------------------------------------------------------------------


class StashEntrySerializer(serializers.ModelSerializer):
    class Meta:
        model = StashEntry
        fields = ["id", "stash_entry_date", "amount", "description", "transaction", "created_at"]
        read_only_fields = ["id", "transaction", "created_at"]
        extra_kwargs = {"stash_entry_date": {"required": False}}

    def validate_amount(self, value):
        if value == 0:
            raise serializers.ValidationError("must not be zero")
        return value


class StashSerializer(serializers.ModelSerializer):
    entries = StashEntrySerializer(many=True, read_only=True)
    progress = serializers.SerializerMethodField()

    class Meta:
        model = Stash
        fields = [
            "id",
            "account",
            "name",
            "description",
            "goal",
            "balance",
            "progress",
            "entries",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "account", "balance", "created_at", "updated_at"]

    def get_progress(self, obj):
        if not obj.goal:
            return 0
        return round(float(obj.balance / obj.goal * 100), 1)


# -------------------------------------------------------------------
# BILLS
# -------------------------------------------------------------------


class BillSerializer(UserScopedFieldsMixin, serializers.ModelSerializer):
    """
    Bill with its recurrence rule and display labels.
    """

    scoped_fields = {
        "account": _user_active_accounts,
        "category": _visible_categories,
    }

    account = serializers.PrimaryKeyRelatedField(queryset=Account.objects.all())
    category = serializers.PrimaryKeyRelatedField(
        queryset=Category.objects.all(), required=False, allow_null=True
    )
    account_name = serializers.CharField(source="account.name", read_only=True)
    bill_type_label = serializers.SerializerMethodField()
    category_label = serializers.SerializerMethodField()
    frequency_label = serializers.SerializerMethodField()
    biweekly_mode_label = serializers.SerializerMethodField()
    day_of_month_label = serializers.SerializerMethodField()
    second_day_of_month_label = serializers.SerializerMethodField()
    amount_display = serializers.SerializerMethodField()
    notes_display = serializers.SerializerMethodField()
    monthly_normalized_amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, read_only=True
    )
    monthly_normalized_breakdown = serializers.SerializerMethodField()

    class Meta:
        model = Bill
        fields = [
            "id",
            "account",
            "account_name",
            "bill_type",
            "bill_type_label",
            "category",
            "category_label",
            "description",
            "frequency",
            "frequency_label",
            "day_of_month",
            "day_of_month_label",
            "amount",
            "amount_display",
            "notes",
            "notes_display",
            "biweekly_mode",
            "biweekly_mode_label",
            "second_day_of_month",
            "second_day_of_month_label",
            "biweekly_anchor_date",
            "biweekly_anchor_weekday",
            "next_occurrence_month",
            "monthly_normalized_amount",
            "monthly_normalized_breakdown",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "biweekly_anchor_weekday", "created_at", "updated_at"]

    def _presenter(self, obj):
        return BillPresenter(obj)

    def get_bill_type_label(self, obj):
        return self._presenter(obj).bill_type_label

    def get_category_label(self, obj):
        return self._presenter(obj).category_label

    def get_frequency_label(self, obj):
        return self._presenter(obj).frequency_label

    def get_biweekly_mode_label(self, obj):
        return self._presenter(obj).biweekly_mode_label

    def get_day_of_month_label(self, obj):
        return self._presenter(obj).day_of_month_label

    def get_second_day_of_month_label(self, obj):
        return self._presenter(obj).second_day_of_month_label

    def get_amount_display(self, obj):
        return self._presenter(obj).amount_display

    def get_notes_display(self, obj):
        return self._presenter(obj).notes_display

    def get_monthly_normalized_breakdown(self, obj):
        return self._presenter(obj).monthly_normalized_breakdown

    def validate_notes(self, value):
        if value and len(value) > 2000:
            raise serializers.ValidationError("is too long (maximum is 2000 characters)")
        return value


class BillTransactionBatchSerializer(serializers.ModelSerializer):
    month_label = serializers.CharField(read_only=True)
    pending_count = serializers.SerializerMethodField()

    class Meta:
        model = BillTransactionBatch
        fields = [
            "id",
            "reference",
            "period_month",
            "range_start_date",
            "range_end_date",
            "month_label",
            "transactions_count",
            "total_amount",
            "pending_count",
            "created_at",
        ]
        read_only_fields = fields

    def get_pending_count(self, obj):
        return obj.transactions.filter(pending=True).count()


class BillGenerationSerializer(UserScopedFieldsMixin, serializers.Serializer):
    """Preview/generate request: a month or a date range, optionally one bill."""

    scoped_fields = {"bill": lambda user: Bill.objects.filter(user=user)}

    period_month = serializers.CharField(required=False, allow_blank=True)
    start_date = serializers.DateField(required=False, allow_null=True)
    end_date = serializers.DateField(required=False, allow_null=True)
    bill = serializers.PrimaryKeyRelatedField(
        queryset=Bill.objects.all(), required=False, allow_null=True
    )


class PreviewItemSerializer(serializers.Serializer):
    bill = serializers.IntegerField(source="bill.id")
    account = serializers.IntegerField(source="account.id")
    account_name = serializers.CharField(source="account.name")
    trx_date = serializers.DateField()
    description = serializers.CharField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    trx_type = serializers.CharField()


# -------------------------------------------------------------------
# CATEGORIES
# -------------------------------------------------------------------


class CategorySerializer(serializers.ModelSerializer):
    kind = serializers.CharField(source="get_kind_display", read_only=True)
    is_global = serializers.BooleanField(read_only=True)
    transactions_count = serializers.IntegerField(read_only=True, default=0)

    class Meta:
        model = Category
        fields = ["id", "name", "kind", "is_global", "transactions_count", "created_at"]
        read_only_fields = ["id", "created_at"]

    def validate_name(self, value):
        value = squish(value)
        if not value:
            raise serializers.ValidationError("can't be blank")
        return value


class CategorySuggestSerializer(serializers.Serializer):
    description = serializers.CharField(max_length=255)


class CategoryLookupSerializer(UserScopedFieldsMixin, serializers.ModelSerializer):
    """Matching rule: remembered description and the category it maps to."""

    scoped_fields = {"category": _visible_categories}

    category = serializers.PrimaryKeyRelatedField(queryset=Category.objects.all())
    category_name = serializers.CharField(source="category.name", read_only=True)

    class Meta:
        model = CategoryLookup
        fields = [
            "id",
            "description_norm",
            "category",
            "category_name",
            "usage_count",
            "last_used_at",
            "created_at",
        ]
        read_only_fields = ["id", "usage_count", "last_used_at", "created_at"]

    def validate_description_norm(self, value):
        value = CategoryLookup.normalize(value)
        if not value:
            raise serializers.ValidationError("can't be blank")
        user = _request_user(self)
        clash = CategoryLookup.objects.filter(user=user, description_norm=value)
        if self.instance is not None:
            clash = clash.exclude(pk=self.instance.pk)
        if clash.exists():
            raise serializers.ValidationError("has already been taken")
        return value


# -------------------------------------------------------------------
# DOCUMENTS
# -------------------------------------------------------------------


class DocumentSerializer(UserScopedFieldsMixin, serializers.ModelSerializer):
    """
    Document owned by the user (no ``account``) or by one of the user's
    accounts.
    """

    scoped_fields = {"account": _user_accounts}

    account = serializers.PrimaryKeyRelatedField(
        queryset=Account.objects.all(), required=False, allow_null=True, write_only=True
    )
    level = serializers.CharField(read_only=True)
    account_name = serializers.CharField(read_only=True)
    account_id = serializers.SerializerMethodField()
    attachments = AttachmentSerializer(many=True, read_only=True)
    files = serializers.ListField(
        child=serializers.FileField(), write_only=True, required=False
    )

    class Meta:
        model = Document
        fields = [
            "id",
            "category",
            "description",
            "document_date",
            "tax_year",
            "level",
            "account",
            "account_id",
            "account_name",
            "attachments",
            "files",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]

    def get_account_id(self, obj):
        if obj.level == Document.LEVEL_ACCOUNT:
            return obj.attachable_id
        return None

    def validate(self, attrs):
        category = attrs.get("category", getattr(self.instance, "category", None))
        tax_year = attrs.get("tax_year", getattr(self.instance, "tax_year", None))
        if category == Document.TAXES and tax_year is None:
            raise serializers.ValidationError({"tax_year": "can't be blank"})
        return attrs


# -------------------------------------------------------------------
# SEARCH AND REPORTS
# -------------------------------------------------------------------


class SearchParamsSerializer(serializers.Serializer):
    query = serializers.CharField(required=False, allow_blank=True)
    account_id = serializers.IntegerField(required=False)
    category_id = serializers.IntegerField(required=False)
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False)


class SpendingReportParamsSerializer(serializers.Serializer):
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False)
    category_ids = serializers.ListField(child=serializers.IntegerField(), required=False)
    account_ids = serializers.ListField(child=serializers.IntegerField(), required=False)

    def validate(self, attrs):
        start, end = attrs.get("start_date"), attrs.get("end_date")
        if start and end and end < start:
            raise serializers.ValidationError(
                {"end_date": "must be on or after the start date"}
            )
        return attrs
