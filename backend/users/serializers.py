"""
Serializers plugged into dj-rest-auth: e-mail login guarded by django-axes,
registration with the ledger profile fields and the profile endpoint.
"""

import logging
import zoneinfo

from axes.models import AccessAttempt
from dj_rest_auth.registration.serializers import RegisterSerializer
from dj_rest_auth.serializers import LoginSerializer
from django.conf import settings
from django.contrib.auth import authenticate, get_user_model
from rest_framework import serializers
from rest_framework.exceptions import AuthenticationFailed, PermissionDenied

logger = logging.getLogger(__name__)
User = get_user_model()


LOCKOUT_WINDOW = "15 minutes"


class CustomLoginSerializer(LoginSerializer):
    """
    E-mail/password login that refuses addresses django-axes has locked out.
    """

    username = None
    email = serializers.EmailField(required=True)
    password = serializers.CharField(write_only=True)

    def _refuse_if_locked(self, email):
        limit = getattr(settings, "AXES_FAILURE_LIMIT", 5)
        failures = (
            AccessAttempt.objects.filter(username__iexact=email)
            .order_by("-attempt_time")
            .values_list("failures_since_start", flat=True)
            .first()
        )
        if failures is None or failures < limit:
            return

        logger.warning(
            "Login refused for locked e-mail",
            extra={
                "email": email,
                "failures": failures,
                "limit": limit,
                "action": "login_locked_out",
                "component": "CustomLoginSerializer",
                "severity": "high",
            },
        )
        raise PermissionDenied(
            {
                "detail": f"Too many failed sign-in attempts. Try again in {LOCKOUT_WINDOW}.",
                "locked": True,
                "retry_after": LOCKOUT_WINDOW,
            }
        )

    def validate(self, attrs):
        email = (attrs.get("email") or "").strip().lower()
        password = attrs.get("password")

        self._refuse_if_locked(email)
        if not password:
            raise serializers.ValidationError({"password": "can't be blank"})

        user = authenticate(request=self.context.get("request"), email=email, password=password)
        if user is None or not user.is_active:
            logger.warning(
                "Login rejected",
                extra={
                    "email": email,
                    "reason": "inactive" if user is not None else "bad_credentials",
                    "action": "login_rejected",
                    "component": "CustomLoginSerializer",
                    "severity": "medium",
                },
            )
            raise AuthenticationFailed("Invalid email or password.")

        logger.info(
            "Login accepted",
            extra={
                "user_id": user.pk,
                "action": "login_accepted",
                "component": "CustomLoginSerializer",
                "severity": "low",
            },
        )
        attrs["user"] = user
        return attrs


def _validate_timezone(value):
    if value not in zoneinfo.available_timezones():
        raise serializers.ValidationError("is not a valid time zone")
    return value


class CustomRegisterSerializer(RegisterSerializer):
    """
    Registration serializer collecting the profile fields required by the ledger.
    """

    username = None
    first_name = serializers.CharField(max_length=150)
    last_name = serializers.CharField(max_length=150)
    timezone = serializers.CharField(max_length=64, default="UTC")

    def validate_email(self, email):
        email = super().validate_email(email).lower()
        if User.objects.filter(email__iexact=email).exists():
            raise serializers.ValidationError("has already been taken")
        return email

    def validate_timezone(self, value):
        return _validate_timezone(value)

    def get_cleaned_data(self):
        data = super().get_cleaned_data()
        data.update(
            {
                "first_name": self.validated_data.get("first_name", ""),
                "last_name": self.validated_data.get("last_name", ""),
                "timezone": self.validated_data.get("timezone", "UTC"),
            }
        )
        return data

    def custom_signup(self, request, user):
        user.first_name = self.cleaned_data["first_name"]
        user.last_name = self.cleaned_data["last_name"]
        user.timezone = self.cleaned_data["timezone"]
        user.save(update_fields=["first_name", "last_name", "timezone"])

        logger.info(
            "User registered",
            extra={
                "user_id": user.id,
                "timezone": user.timezone,
                "action": "user_registered",
                "component": "CustomRegisterSerializer",
            },
        )


class UserDetailsSerializer(serializers.ModelSerializer):
    """
    Profile serializer for ``/auth/user/``.

    The default account must be one of the user's own accounts.
    """

    class Meta:
        model = User
        fields = [
            "id",
            "email",
            "first_name",
            "last_name",
            "timezone",
            "default_account",
        ]
        read_only_fields = ["id", "email"]

    def validate_timezone(self, value):
        return _validate_timezone(value)

    def validate_default_account(self, value):
        if value is None:
            return value
        if value.user_id != self.instance.pk:
            logger.warning(
                "Default account rejected - foreign account",
                extra={
                    "user_id": self.instance.pk,
                    "account_id": value.pk,
                    "action": "default_account_rejected",
                    "component": "UserDetailsSerializer",
                    "severity": "medium",
                },
            )
            raise serializers.ValidationError("must belong to your profile")
        return value
