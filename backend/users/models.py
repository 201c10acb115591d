"""
User models for the budget ledger application.

This module defines the CustomUser model which extends Django's AbstractUser
to use the e-mail address as the login identifier and to carry the profile
fields the ledger needs (time zone and default account).
"""

import logging
import zoneinfo

from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.core.exceptions import ValidationError
from django.db import models

logger = logging.getLogger(__name__)


class CustomUserManager(BaseUserManager):
    """
    Manager for e-mail based users.

    Normalizes e-mail addresses to lower case so that uniqueness holds
    regardless of how the address was typed.
    """

    use_in_migrations = True

    def _create_user(self, email, password, **extra_fields):
        if not email:
            raise ValueError("The e-mail address must be set")
        email = self.normalize_email(email).lower()
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)

        logger.info(
            "User created",
            extra={
                "user_id": user.id,
                "is_superuser": user.is_superuser,
                "action": "user_created",
                "component": "CustomUserManager",
            },
        )
        return user

    def create_user(self, email, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)

        if extra_fields.get("is_staff") is not True:
            raise ValueError("Superuser must have is_staff=True.")
        if extra_fields.get("is_superuser") is not True:
            raise ValueError("Superuser must have is_superuser=True.")

        return self._create_user(email, password, **extra_fields)

    def get_by_natural_key(self, email):
        return self.get(email__iexact=email)


class CustomUser(AbstractUser):
    """
    Custom user model keyed by e-mail address.

    Every ledger record (accounts, bills, categories, documents) hangs off
    a user; ``timezone`` decides what "today" means for that user and
    ``default_account`` pre-selects the account for quick receipts.
    """

    username = None

    # Email field - unique and required for all users
    email = models.EmailField(
        unique=True,
        blank=False,
        help_text="User's unique email address, used to sign in",
    )
    first_name = models.CharField(max_length=150, blank=False)
    last_name = models.CharField(max_length=150, blank=False)

    timezone = models.CharField(
        max_length=64,
        default="UTC",
        help_text="IANA time zone name used for dates shown to and entered by the user",
    )

    default_account = models.ForeignKey(
        "ledger.Account",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="Account pre-selected for quick receipts and new bills",
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = ["first_name", "last_name"]

    objects = CustomUserManager()

    class Meta:
        ordering = ["email"]

    def __str__(self):
        return self.email

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def clean(self):
        """Validate time zone and default account ownership."""
        super().clean()
        if self.email:
            self.email = self.email.strip().lower()
            clash = CustomUser.objects.filter(email__iexact=self.email)
            if self.pk:
                clash = clash.exclude(pk=self.pk)
            if clash.exists():
                raise ValidationError({"email": "has already been taken"})

        if not self.timezone or self.timezone not in zoneinfo.available_timezones():
            logger.warning(
                "User validation failed - unknown time zone",
                extra={
                    "user_id": self.id if self.id else "new",
                    "timezone": self.timezone,
                    "action": "user_validation_failed",
                    "component": "CustomUser",
                    "severity": "low",
                },
            )
            raise ValidationError({"timezone": "is not a valid time zone"})

        if self.default_account_id and self.pk:
            if self.default_account.user_id != self.pk:
                raise ValidationError(
                    {"default_account": "must belong to your profile"}
                )
