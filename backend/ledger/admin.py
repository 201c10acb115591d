from django.contrib import admin
from django.contrib.contenttypes.admin import GenericTabularInline

from .models import (
    Account,
    Attachment,
    Bill,
    BillTransactionBatch,
    Category,
    CategoryLookup,
    Document,
    HiddenCategory,
    Stash,
    StashEntry,
    Transaction,
)


class AttachmentInline(GenericTabularInline):
    model = Attachment
    extra = 0
    fields = ["file", "filename", "mime_type", "byte_size"]
    readonly_fields = ["filename", "mime_type", "byte_size"]


@admin.register(Account)
class AccountAdmin(admin.ModelAdmin):
    list_display = ["name", "user", "account_type", "current_balance", "active"]
    list_filter = ["account_type", "active"]
    search_fields = ["name", "user__email"]
    # Balances are maintained by transactions
    readonly_fields = ["current_balance", "created_at", "updated_at"]


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    list_display = ["trx_date", "description", "amount", "account", "category", "pending", "locked"]
    list_filter = ["pending", "locked", "transfer", "quick_receipt"]
    search_fields = ["description", "memo", "account__name"]
    date_hierarchy = "trx_date"
    raw_id_fields = ["account", "category", "bill_transaction_batch", "counterpart_transaction"]
    inlines = [AttachmentInline]


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ["name", "kind", "user"]
    list_filter = ["kind"]
    search_fields = ["name"]


admin.site.register(HiddenCategory)


@admin.register(CategoryLookup)
class CategoryLookupAdmin(admin.ModelAdmin):
    list_display = ["description_norm", "category", "user", "usage_count", "last_used_at"]
    search_fields = ["description_norm"]


class StashEntryInline(admin.TabularInline):
    model = StashEntry
    extra = 0
    raw_id_fields = ["transaction"]


@admin.register(Stash)
class StashAdmin(admin.ModelAdmin):
    list_display = ["name", "account", "balance", "goal"]
    inlines = [StashEntryInline]


@admin.register(Bill)
class BillAdmin(admin.ModelAdmin):
    list_display = ["description", "user", "bill_type", "frequency", "day_of_month", "amount"]
    list_filter = ["bill_type", "frequency"]


@admin.register(BillTransactionBatch)
class BillTransactionBatchAdmin(admin.ModelAdmin):
    list_display = ["reference", "user", "period_month", "transactions_count", "total_amount", "created_at"]


@admin.register(Document)
class DocumentAdmin(admin.ModelAdmin):
    list_display = ["category", "description", "document_date", "tax_year", "attachable_type"]
    list_filter = ["category"]
    inlines = [AttachmentInline]
