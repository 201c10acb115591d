"""
Custom adapter for the allauth account flow.

The ledger is consumed over a JSON API, so confirmation responses redirect
instead of rendering templates and every step is logged.
"""

import logging

from allauth.account.adapter import DefaultAccountAdapter
from django.conf import settings
from django.http import HttpResponseRedirect

logger = logging.getLogger(__name__)


class CustomAccountAdapter(DefaultAccountAdapter):
    """
    Account adapter for e-mail based sign up without usernames.
    """

    def save_user(self, request, user, form, commit=True):
        """Copy the time zone collected at sign up onto the user."""
        user = super().save_user(request, user, form, commit=False)
        cleaned_data = getattr(form, "cleaned_data", {}) or {}
        if cleaned_data.get("timezone"):
            user.timezone = cleaned_data["timezone"]
        if commit:
            user.save()

        logger.info(
            "Account adapter saved user",
            extra={
                "user_id": user.id,
                "committed": commit,
                "action": "adapter_save_user",
                "component": "CustomAccountAdapter",
            },
        )
        return user

    def respond_email_confirmation_complete(self, request, confirmation):
        """
        Redirect to the configured landing URL after a successful confirmation.
        """
        redirect_url = getattr(settings, "ACCOUNT_EMAIL_CONFIRMATION_DONE_URL", "/")

        logger.info(
            "Email confirmation completed - redirecting user",
            extra={
                "user_id": confirmation.email_address.user.id,
                "redirect_url": redirect_url,
                "action": "email_confirmation_complete",
                "component": "CustomAccountAdapter",
            },
        )
        return HttpResponseRedirect(redirect_url)
