# ledger/mixins/account_context.py
"""
Account context mixin for views nested under ``accounts/<account_pk>/``.
"""

import logging

from django.http import Http404
from rest_framework.exceptions import PermissionDenied

from ..models import Account

logger = logging.getLogger(__name__)

INACTIVE_ACCOUNT_MESSAGE = "Account is inactive"


class AccountContextMixin:
    """
    Resolve ``self.account`` from the URL before permission checks.

    Accounts of other users answer 404. Inactive accounts answer 403 for
    every request except safe reads when ``allow_inactive_reads`` is set.
    """

    allow_inactive_reads = True
    account_url_kwarg = "account_pk"

    def initial(self, request, *args, **kwargs):
        self.account = self._resolve_account(request, kwargs)
        super().initial(request, *args, **kwargs)
        self._check_account_active(request)

    def _resolve_account(self, request, view_kwargs):
        account_pk = view_kwargs.get(self.account_url_kwarg)
        user = request.user
        if not getattr(user, "is_authenticated", False):
            return None

        account = Account.objects.filter(pk=account_pk, user=user).first()
        if account is None:
            logger.warning(
                "Account context resolution failed",
                extra={
                    "user_id": user.id,
                    "account_id": account_pk,
                    "action": "account_context_not_found",
                    "component": "AccountContextMixin",
                    "severity": "medium",
                },
            )
            raise Http404("Account not found")

        logger.debug(
            "Account context initialized",
            extra={
                "user_id": user.id,
                "account_id": account.id,
                "account_active": account.active,
                "action": "account_context_initialized",
                "component": "AccountContextMixin",
            },
        )
        return account

    def _check_account_active(self, request):
        if self.account is None or self.account.active:
            return
        if self.allow_inactive_reads and request.method in ("GET", "HEAD", "OPTIONS"):
            return
        logger.warning(
            "Operation refused on inactive account",
            extra={
                "user_id": request.user.id,
                "account_id": self.account.id,
                "method": request.method,
                "action": "inactive_account_refused",
                "component": "AccountContextMixin",
                "severity": "low",
            },
        )
        raise PermissionDenied(INACTIVE_ACCOUNT_MESSAGE)
