# ledger/managers.py
from datetime import timedelta

from django.db import models
from django.db.models import Count, Q

from .utils import dates


class UserScopedQuerySet(models.QuerySet):
    user_lookup = "user"

    def for_user(self, user):
        return self.filter(**{self.user_lookup: user})


class CategoryQuerySet(models.QuerySet):
    def for_user(self, user):
        """Global categories plus the user's custom ones."""
        return self.filter(Q(user__isnull=True) | Q(user=user)).order_by("name")

    def visible_to(self, user):
        """Like ``for_user`` without the globals the user has hidden."""
        return self.for_user(user).exclude(hidden_entries__user=user)

    def with_transaction_counts(self, user):
        return self.annotate(
            transactions_count=Count(
                "transactions", filter=Q(transactions__account__user=user)
            )
        )


class TransactionQuerySet(UserScopedQuerySet):
    user_lookup = "account__user"

    def pending(self):
        return self.filter(pending=True)

    def non_pending(self):
        return self.filter(pending=False)

    def recent(self):
        return self.filter(trx_date__gte=dates.today() - timedelta(days=3))

    def search(self, query):
        query = (query or "").strip()
        if not query:
            return self
        return self.filter(description__icontains=query)

    def ordered_for_list(self):
        return self.order_by("-pending", "-trx_date", "-id")


class BillQuerySet(UserScopedQuerySet):
    def by_day(self):
        return self.order_by("day_of_month", "description")


class DocumentQuerySet(models.QuerySet):
    def for_user(self, user):
        """User-level documents plus documents of every account the user owns."""
        from django.contrib.contenttypes.models import ContentType

        from .models import Account

        account_ids = Account.objects.filter(user=user).values_list("id", flat=True)
        user_type = ContentType.objects.get_for_model(user.__class__)
        account_type = ContentType.objects.get_for_model(Account)
        return self.filter(
            Q(attachable_type=user_type, attachable_id=user.pk)
            | Q(attachable_type=account_type, attachable_id__in=list(account_ids))
        ).select_related("attachable_type")
