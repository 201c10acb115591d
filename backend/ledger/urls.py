"""
URL configuration for the budget ledger API.

Account scoped resources (transactions, stashes) are nested under
``accounts/<account_pk>/``; everything else hangs off the router root.
"""

import logging

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from . import views

# Get structured logger for this module
logger = logging.getLogger(__name__)

# Initialize DefaultRouter for RESTful API endpoints
router = DefaultRouter()

# Accounts with activation and dashboard summary
router.register(r"accounts", views.AccountViewSet, basename="account")

# Transactions of one account
router.register(
    r"accounts/(?P<account_pk>\d+)/transactions",
    views.TransactionViewSet,
    basename="account-transaction",
)

# Savings stashes of one account
router.register(
    r"accounts/(?P<account_pk>\d+)/stashes",
    views.StashViewSet,
    basename="account-stash",
)

# Recurring bills
router.register(r"bills", views.BillViewSet, basename="bill")

# Generated bill batches (preview, generate, undo)
router.register(
    r"bill-transaction-batches",
    views.BillTransactionBatchViewSet,
    basename="bill-transaction-batch",
)

# Categories and matching rules
router.register(r"categories", views.CategoryViewSet, basename="category")
router.register(r"matching-rules", views.CategoryLookupViewSet, basename="matching-rule")

# Documents
router.register(r"documents", views.DocumentViewSet, basename="document")

urlpatterns = [
    path("", include(router.urls)),
    path("quick-receipts/", views.QuickReceiptView.as_view(), name="quick-receipt"),
    path("transfers/", views.TransferView.as_view(), name="transfer"),
    path("search/", views.SearchView.as_view(), name="search"),
    path("reports/spending/", views.SpendingReportView.as_view(), name="spending-report"),
]

custom_endpoints_count = len(urlpatterns) - 1
logger.info(
    "Ledger API URLs configured successfully",
    extra={
        "total_routes": len(router.urls) + custom_endpoints_count,
        "viewset_endpoints": len(router.registry),
        "custom_endpoints": custom_endpoints_count,
        "action": "url_configuration_loaded",
        "component": "urls",
    },
)
