"""
Custom views for user authentication and session management.

This module provides API views for JWT logout, e-mail confirmation and
inactive-account responses. Login, registration and profile endpoints are
served by dj-rest-auth with the serializers from ``users.serializers``.
"""

import logging

from allauth.account.models import EmailConfirmation, EmailConfirmationHMAC
from allauth.account.views import ConfirmEmailView
from django.http import JsonResponse
from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken

# Get logger for this module
logger = logging.getLogger(__name__)


class LogoutView(APIView):
    """
    Logout view that blacklists refresh tokens.

    Always answers 200 so the response never reveals whether the submitted
    token was valid.
    """

    permission_classes = [permissions.AllowAny]

    def post(self, request):
        refresh_token = request.data.get("refresh", "")

        if refresh_token and isinstance(refresh_token, str) and "." in refresh_token:
            try:
                RefreshToken(refresh_token).blacklist()
                logger.info(
                    "Refresh token blacklisted",
                    extra={
                        "user_id": getattr(request.user, "id", None),
                        "action": "token_blacklisted",
                        "component": "LogoutView",
                    },
                )
            except TokenError as e:
                logger.warning(
                    "Token blacklisting failed",
                    extra={
                        "error_message": str(e),
                        "action": "token_blacklist_failed",
                        "component": "LogoutView",
                        "severity": "low",
                    },
                )

        return Response(
            {"detail": "Successfully logged out."}, status=status.HTTP_200_OK
        )


class InactiveAccountView(APIView):
    """
    Informs users that their account is inactive and e-mail verification is required.
    """

    permission_classes = [permissions.AllowAny]

    def get(self, request):
        return Response(
            {"detail": "Account is inactive, check your email."},
            status=status.HTTP_403_FORBIDDEN,
        )


class CustomConfirmEmailView(ConfirmEmailView):
    """
    E-mail confirmation view that answers with JSON instead of rendering templates.
    """

    def get_object(self, queryset=None):
        key = self.kwargs["key"]
        confirmation = EmailConfirmationHMAC.from_key(key)
        if confirmation is None:
            confirmation = EmailConfirmation.objects.filter(key=key.lower()).first()
        if confirmation is None:
            logger.warning(
                "Email confirmation key not found",
                extra={
                    "action": "email_confirmation_missing",
                    "component": "CustomConfirmEmailView",
                    "severity": "low",
                },
            )
        return confirmation

    def get(self, *args, **kwargs):
        self.object = self.get_object()
        if not self.object:
            return JsonResponse(
                {"detail": "Invalid confirmation link."},
                status=status.HTTP_400_BAD_REQUEST,
            )

        self.object.confirm(self.request)
        user = self.object.email_address.user
        if not user.is_active:
            user.is_active = True
            user.save(update_fields=["is_active"])

        logger.info(
            "Email confirmation completed",
            extra={
                "user_id": user.id,
                "action": "email_confirmation_complete",
                "component": "CustomConfirmEmailView",
            },
        )
        return JsonResponse(
            {
                "detail": "Email was successfully confirmed and account activated.",
                "user": {"email": user.email, "is_active": user.is_active},
            },
            status=status.HTTP_200_OK,
        )

    post = get
