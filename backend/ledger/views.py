"""
API views for the budget ledger.

Viewsets are thin: querysets are scoped to the requesting user, serializers
validate input, and every write is delegated to a service through
``ServiceExceptionHandlerMixin.handle_service_call``.
"""

import logging

from django.utils import timezone
from rest_framework import generics, mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .mixins import AccountContextMixin, ServiceExceptionHandlerMixin, UserTimezoneMixin
from .models import (
    Account,
    Bill,
    BillTransactionBatch,
    CategoryLookup,
    Document,
    Stash,
    Transaction,
)
from .permissions import IsCustomCategoryOwnerOrGlobal, IsOwner
from .serializers import (
    AccountSerializer,
    AccountSummarySerializer,
    AttachmentSerializer,
    BillGenerationSerializer,
    BillSerializer,
    BillTransactionBatchSerializer,
    CategoryLookupSerializer,
    CategorySerializer,
    CategorySuggestSerializer,
    DocumentSerializer,
    FilesUploadSerializer,
    PreviewItemSerializer,
    QuickReceiptSerializer,
    SearchParamsSerializer,
    SpendingReportParamsSerializer,
    StashEntrySerializer,
    StashSerializer,
    TransactionDateSerializer,
    TransactionReviewSerializer,
    TransactionSerializer,
    TransferSerializer,
)
from .services import (
    AccountService,
    BillService,
    BillTransactionGenerator,
    CategoryService,
    CategorySuggester,
    DocumentService,
    QuickReceiptService,
    StashService,
    TransactionService,
    TransferService,
)
from .services.bill_presenter import bills_by_calendar_date, summary_payload
from .services.reporting import SpendingByCategory, account_summary, search_transactions
from .utils import dates

# Get structured logger for this module
logger = logging.getLogger(__name__)

UPLOAD_PARSERS = [MultiPartParser, FormParser, JSONParser]


class LedgerViewSet(UserTimezoneMixin, ServiceExceptionHandlerMixin, viewsets.ModelViewSet):
    """
    Base viewset for user-owned ledger resources.
    """

    permission_classes = [IsAuthenticated]

    def get_permissions(self):
        if self.action in ["retrieve", "update", "partial_update", "destroy"]:
            return [IsAuthenticated(), IsOwner()]
        return [IsAuthenticated()]


# -------------------------------------------------------------------
# ACCOUNTS
# -------------------------------------------------------------------


class AccountViewSet(LedgerViewSet):
    """
    Accounts of the requesting user, with activation and dashboard summary.
    """

    serializer_class = AccountSerializer

    def get_permissions(self):
        if self.action in ["activate", "deactivate"]:
            return [IsAuthenticated(), IsOwner()]
        return super().get_permissions()

    def get_queryset(self):
        qs = Account.objects.filter(user=self.request.user)
        active = self.request.query_params.get("active")
        if active in ("true", "false"):
            qs = qs.filter(active=active == "true")
        return qs.order_by("created_at", "id")

    def perform_create(self, serializer):
        serializer.instance = self.handle_service_call(
            AccountService.create_account, self.request.user, serializer.validated_data
        )

    def perform_update(self, serializer):
        serializer.instance = self.handle_service_call(
            AccountService.update_account, serializer.instance, dict(serializer.validated_data)
        )

    def perform_destroy(self, instance):
        self.handle_service_call(AccountService.delete_account, instance)

    @action(detail=True, methods=["post"])
    def activate(self, request, pk=None):
        account = self.handle_service_call(AccountService.set_active, self.get_object(), True)
        return Response(self.get_serializer(account).data)

    @action(detail=True, methods=["post"])
    def deactivate(self, request, pk=None):
        account = self.handle_service_call(AccountService.set_active, self.get_object(), False)
        return Response(self.get_serializer(account).data)

    @action(detail=False, methods=["get"])
    def summary(self, request):
        data = account_summary(request.user)
        serializer = AccountSummarySerializer(data, context=self.get_serializer_context())
        return Response(serializer.data)


# -------------------------------------------------------------------
# TRANSACTIONS
# -------------------------------------------------------------------


class TransactionViewSet(AccountContextMixin, LedgerViewSet):
    """
    Transactions of one account (``/accounts/<account_pk>/transactions/``).

    Lists are ordered pending first, then newest first, and carry the
    running balance after each row.
    """

    serializer_class = TransactionSerializer
    parser_classes = UPLOAD_PARSERS
    owner_field = "account.user"

    def get_permissions(self):
        if self.action in ["mark_reviewed", "mark_pending", "update_date", "attachments", "remove_attachment"]:
            return [IsAuthenticated(), IsOwner()]
        return super().get_permissions()

    def get_queryset(self):
        qs = (
            Transaction.objects.filter(account=self.account)
            .select_related("account", "category")
            .prefetch_related("attachments")
        )
        description = self.request.query_params.get("description")
        if description:
            qs = qs.search(description)
        pending = self.request.query_params.get("pending")
        if pending in ("true", "false"):
            qs = qs.filter(pending=pending == "true")
        return qs.ordered_for_list()

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context["running_balances"] = getattr(self, "running_balances", {})
        return context

    def list(self, request, *args, **kwargs):
        queryset = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(queryset)
        rows = page if page is not None else list(queryset)
        self.running_balances = TransactionService.running_balances(self.account, rows)
        serializer = self.get_serializer(rows, many=True)
        if page is not None:
            return self.get_paginated_response(serializer.data)
        return Response(serializer.data)

    def perform_create(self, serializer):
        data = dict(serializer.validated_data)
        files = data.pop("files", [])
        data.pop("account", None)
        serializer.instance = self.handle_service_call(
            TransactionService.create_transaction, self.account, data, files
        )

    def perform_update(self, serializer):
        data = dict(serializer.validated_data)
        data.pop("files", None)
        serializer.instance = self.handle_service_call(
            TransactionService.update_transaction, serializer.instance, data
        )

    def perform_destroy(self, instance):
        logger.info(
            "Transaction deletion delegated to service",
            extra={
                "user_id": self.request.user.id,
                "transaction_id": instance.id,
                "action": "transaction_delete_delegated",
                "component": "TransactionViewSet",
            },
        )
        self.handle_service_call(TransactionService.delete_transaction, instance)

    @action(detail=True, methods=["post"], url_path="mark-reviewed")
    def mark_reviewed(self, request, account_pk=None, pk=None):
        params = TransactionReviewSerializer(data=request.data)
        params.is_valid(raise_exception=True)
        trx = self.handle_service_call(
            TransactionService.mark_reviewed,
            self.get_object(),
            params.validated_data.get("trx_type"),
        )
        return Response(self.get_serializer(trx).data)

    @action(detail=True, methods=["post"], url_path="mark-pending")
    def mark_pending(self, request, account_pk=None, pk=None):
        trx = self.handle_service_call(TransactionService.mark_pending, self.get_object())
        return Response(self.get_serializer(trx).data)

    @action(detail=True, methods=["patch"], url_path="update-date")
    def update_date(self, request, account_pk=None, pk=None):
        params = TransactionDateSerializer(data=request.data)
        params.is_valid(raise_exception=True)
        trx = self.handle_service_call(
            TransactionService.update_date, self.get_object(), params.validated_data["trx_date"]
        )
        return Response(self.get_serializer(trx).data)

    @action(detail=False, methods=["get"])
    def descriptions(self, request, account_pk=None):
        results = TransactionService.descriptions(
            self.account, request.query_params.get("q", "")
        )
        return Response(results)

    @action(detail=True, methods=["post"])
    def attachments(self, request, account_pk=None, pk=None):
        upload = FilesUploadSerializer(data=request.data)
        upload.is_valid(raise_exception=True)
        created = self.handle_service_call(
            TransactionService.add_attachments, self.get_object(), upload.validated_data["files"]
        )
        return Response(
            AttachmentSerializer(created, many=True, context=self.get_serializer_context()).data,
            status=status.HTTP_201_CREATED,
        )

    @action(
        detail=True,
        methods=["delete"],
        url_path=r"attachments/(?P<attachment_pk>\d+)",
    )
    def remove_attachment(self, request, account_pk=None, pk=None, attachment_pk=None):
        self.handle_service_call(
            TransactionService.remove_attachment, self.get_object(), int(attachment_pk)
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


# -------------------------------------------------------------------
# STASHES
# -------------------------------------------------------------------


class StashViewSet(AccountContextMixin, LedgerViewSet):
    serializer_class = StashSerializer
    owner_field = "account.user"

    def get_permissions(self):
        if self.action == "entries":
            return [IsAuthenticated(), IsOwner()]
        return super().get_permissions()

    def get_queryset(self):
        return (
            Stash.objects.filter(account=self.account)
            .select_related("account")
            .prefetch_related("entries")
        )

    def perform_create(self, serializer):
        serializer.instance = self.handle_service_call(
            StashService.create_stash, self.account, dict(serializer.validated_data)
        )

    def perform_update(self, serializer):
        serializer.instance = self.handle_service_call(
            StashService.update_stash, serializer.instance, dict(serializer.validated_data)
        )

    def perform_destroy(self, instance):
        self.handle_service_call(StashService.delete_stash, instance)

    @action(detail=True, methods=["post"])
    def entries(self, request, account_pk=None, pk=None):
        """Add (positive amount) or remove (negative amount) money."""
        params = StashEntrySerializer(data=request.data)
        params.is_valid(raise_exception=True)
        entry = self.handle_service_call(
            StashService.add_entry,
            self.get_object(),
            params.validated_data["amount"],
            params.validated_data.get("stash_entry_date"),
            params.validated_data.get("description", ""),
        )
        return Response(StashEntrySerializer(entry).data, status=status.HTTP_201_CREATED)


# -------------------------------------------------------------------
# QUICK RECEIPTS AND TRANSFERS
# -------------------------------------------------------------------


class QuickReceiptView(UserTimezoneMixin, ServiceExceptionHandlerMixin, APIView):
    """Upload receipt files as a pending transaction to be completed later."""

    permission_classes = [IsAuthenticated]
    parser_classes = [MultiPartParser, FormParser]

    def post(self, request):
        serializer = QuickReceiptSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        trx = self.handle_service_call(
            QuickReceiptService.create,
            request.user,
            serializer.validated_data["files"],
            serializer.validated_data.get("account"),
        )
        return Response(
            TransactionSerializer(trx, context={"request": request}).data,
            status=status.HTTP_201_CREATED,
        )


class TransferView(UserTimezoneMixin, ServiceExceptionHandlerMixin, APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = TransferSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        debit, credit = self.handle_service_call(
            TransferService.perform_transfer,
            request.user,
            data["from_account"],
            data["to_account"],
            data["amount"],
            data.get("trx_date"),
            data.get("memo", ""),
        )
        context = {"request": request}
        return Response(
            {
                "from_transaction": TransactionSerializer(debit, context=context).data,
                "to_transaction": TransactionSerializer(credit, context=context).data,
            },
            status=status.HTTP_201_CREATED,
        )


# -------------------------------------------------------------------
# BILLS
# -------------------------------------------------------------------


class BillViewSet(LedgerViewSet):
    """
    Recurring bills. ``?view=calendar`` returns the current month as
    Sunday-first weeks with the bills falling on each day.
    """

    serializer_class = BillSerializer

    def get_queryset(self):
        return (
            Bill.objects.for_user(self.request.user)
            .select_related("account", "category")
            .by_day()
        )

    def perform_create(self, serializer):
        serializer.instance = self.handle_service_call(
            BillService.create_bill, self.request.user, dict(serializer.validated_data)
        )

    def perform_update(self, serializer):
        serializer.instance = self.handle_service_call(
            BillService.update_bill, serializer.instance, dict(serializer.validated_data)
        )

    def list(self, request, *args, **kwargs):
        if request.query_params.get("view") != "calendar":
            return super().list(request, *args, **kwargs)

        reference = dates.parse_date(request.query_params.get("date")) or dates.today()
        bills = list(self.get_queryset())
        by_date = bills_by_calendar_date(bills, reference)
        context = self.get_serializer_context()
        weeks = [
            [
                {
                    "date": day,
                    "in_month": day.month == reference.month,
                    "bills": BillSerializer(by_date.get(day, []), many=True, context=context).data,
                }
                for day in week
            ]
            for week in dates.calendar_weeks(reference)
        ]
        return Response(
            {
                "view": "calendar",
                "reference_date": reference,
                "month_label": reference.strftime("%B %Y"),
                "weeks": weeks,
            }
        )

    @action(detail=False, methods=["get"])
    def summary(self, request):
        return Response(summary_payload(list(self.get_queryset())))


class BillTransactionBatchViewSet(
    UserTimezoneMixin,
    ServiceExceptionHandlerMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    """
    Generated bill batches: preview, generate and undo (DELETE).
    """

    serializer_class = BillTransactionBatchSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        return BillTransactionBatch.objects.filter(user=self.request.user)

    def _generation_params(self, data):
        params = BillGenerationSerializer(data=data, context=self.get_serializer_context())
        params.is_valid(raise_exception=True)
        values = dict(params.validated_data)
        bill = values.get("bill")
        explicit = values.get("period_month") or values.get("start_date") or values.get("end_date")
        if bill is not None and not explicit:
            window = BillTransactionGenerator.default_range_for(bill)
            values["start_date"], values["end_date"] = window.start_date, window.end_date
        return values

    @action(detail=False, methods=["get", "post"])
    def preview(self, request):
        source = request.query_params if request.method == "GET" else request.data
        values = self._generation_params(source)
        generator = BillTransactionGenerator(request.user)
        window = generator.normalize_range(
            values.get("period_month"), values.get("start_date"), values.get("end_date")
        )
        items = self.handle_service_call(generator.preview, **values)
        return Response(
            {
                "start_date": window.start_date,
                "end_date": window.end_date,
                "items": PreviewItemSerializer(items, many=True).data,
            }
        )

    @action(detail=False, methods=["post"])
    def generate(self, request):
        values = self._generation_params(request.data)
        generator = BillTransactionGenerator(request.user)
        batch, created = self.handle_service_call(generator.generate, **values)
        if batch is None:
            return Response(
                {"batch": None, "created_count": 0, "detail": "No new transactions to generate."},
                status=status.HTTP_200_OK,
            )
        return Response(
            {
                "batch": self.get_serializer(batch).data,
                "created_count": len(created),
            },
            status=status.HTTP_201_CREATED,
        )

    def perform_destroy(self, instance):
        self.handle_service_call(BillTransactionGenerator.undo, instance)


# -------------------------------------------------------------------
# CATEGORIES
# -------------------------------------------------------------------


class CategoryViewSet(UserTimezoneMixin, ServiceExceptionHandlerMixin, viewsets.ModelViewSet):
    """
    Visible categories (globals plus the user's own, minus hidden ones).

    Renaming or deleting a global category only affects the requesting user.
    """

    serializer_class = CategorySerializer
    permission_classes = [IsAuthenticated]
    pagination_class = None

    def get_permissions(self):
        if self.action in ["retrieve", "update", "partial_update", "destroy"]:
            return [IsAuthenticated(), IsCustomCategoryOwnerOrGlobal()]
        return [IsAuthenticated()]

    def get_queryset(self):
        return CategoryService.list_for_user(self.request.user)

    def perform_create(self, serializer):
        serializer.instance = self.handle_service_call(
            CategoryService.create_category,
            self.request.user,
            serializer.validated_data["name"],
        )

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop("partial", False)
        category = self.get_object()
        serializer = self.get_serializer(category, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        renamed = self.handle_service_call(
            CategoryService.rename_category,
            request.user,
            category,
            serializer.validated_data.get("name", category.name),
        )
        return Response(self.get_serializer(renamed).data)

    def perform_destroy(self, instance):
        self.handle_service_call(CategoryService.delete_category, self.request.user, instance)

    @action(detail=False, methods=["post"])
    def suggest(self, request):
        params = CategorySuggestSerializer(data=request.data)
        params.is_valid(raise_exception=True)
        suggestion = CategorySuggester(request.user).suggest(params.validated_data["description"])
        if suggestion is None:
            return Response({"category_id": None, "category_name": None, "confidence": None, "source": None})
        return Response(suggestion.as_dict())


class CategoryLookupViewSet(LedgerViewSet):
    """Matching rules: the remembered description to category mappings."""

    serializer_class = CategoryLookupSerializer

    def get_queryset(self):
        qs = CategoryLookup.objects.filter(user=self.request.user).select_related("category")
        description = self.request.query_params.get("description")
        if description:
            qs = qs.filter(description_norm__icontains=description.lower())
        category_id = self.request.query_params.get("category_id")
        if category_id:
            qs = qs.filter(category_id=category_id)
        return qs.order_by("-last_used_at", "-usage_count", "-id")

    def perform_create(self, serializer):
        serializer.save(
            user=self.request.user,
            usage_count=1,
            last_used_at=timezone.now(),
        )


# -------------------------------------------------------------------
# DOCUMENTS
# -------------------------------------------------------------------


class DocumentViewSet(LedgerViewSet):
    """
    User-level and account-level documents with filters and sorting.
    """

    serializer_class = DocumentSerializer
    parser_classes = UPLOAD_PARSERS

    def get_permissions(self):
        return [IsAuthenticated()]

    def get_queryset(self):
        if self.action == "list":
            return DocumentService.list_for_user(self.request.user, self.request.query_params)
        return Document.objects.for_user(self.request.user).prefetch_related("attachments")

    def perform_create(self, serializer):
        data = dict(serializer.validated_data)
        files = data.pop("files", [])
        account = data.pop("account", None)
        serializer.instance = self.handle_service_call(
            DocumentService.create_document, self.request.user, data, files, account
        )

    def perform_update(self, serializer):
        data = dict(serializer.validated_data)
        files = data.pop("files", [])
        move = "account" in data
        account = data.pop("account", None)
        serializer.instance = self.handle_service_call(
            DocumentService.update_document,
            self.request.user,
            serializer.instance,
            data,
            files,
            account,
            move,
        )

    def perform_destroy(self, instance):
        self.handle_service_call(DocumentService.delete_document, instance)

    @action(
        detail=True,
        methods=["delete"],
        url_path=r"attachments/(?P<attachment_pk>\d+)",
    )
    def remove_attachment(self, request, pk=None, attachment_pk=None):
        self.handle_service_call(
            DocumentService.remove_attachment, self.get_object(), int(attachment_pk)
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


# -------------------------------------------------------------------
# SEARCH AND REPORTS
# -------------------------------------------------------------------


class SearchView(UserTimezoneMixin, generics.ListAPIView):
    """Paginated search across all of the user's transactions."""

    serializer_class = TransactionSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        params = SearchParamsSerializer(data=self.request.query_params)
        params.is_valid(raise_exception=True)
        return search_transactions(self.request.user, **params.validated_data).prefetch_related(
            "attachments"
        )


class SpendingReportView(UserTimezoneMixin, APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        params = SpendingReportParamsSerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        report = SpendingByCategory(request.user, **params.validated_data).call()
        return Response(report)
