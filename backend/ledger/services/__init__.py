# ledger/services/__init__.py
from .account_service import AccountService
from .bill_service import BillService
from .bill_transaction_generator import BillTransactionGenerator
from .category_service import CategoryService
from .category_suggester import AiCategoryClient, CategorySuggester
from .document_service import DocumentService
from .quick_receipt_service import QuickReceiptService
from .stash_service import StashService
from .transaction_service import TransactionService
from .transfer_service import TransferService

__all__ = [
    "AccountService",
    "AiCategoryClient",
    "BillService",
    "BillTransactionGenerator",
    "CategoryService",
    "CategorySuggester",
    "DocumentService",
    "QuickReceiptService",
    "StashService",
    "TransactionService",
    "TransferService",
]
