"""
Category management service.

Handles the split between shared global categories and per-user custom
categories: renaming or deleting a global category never touches other
users, it creates a private copy or hides the global for the acting user.
"""

import logging

from django.core.exceptions import ValidationError
from django.db import transaction

from ..models import Bill, Category, CategoryLookup, HiddenCategory, Transaction
from ..utils.formatting import squish

logger = logging.getLogger(__name__)


class CategoryService:
    """
    Category create, rename and delete operations scoped to one user.
    """

    @staticmethod
    def list_for_user(user):
        """Visible categories ordered by name, annotated with the user's usage."""
        return Category.objects.visible_to(user).with_transaction_counts(user)

    @staticmethod
    @transaction.atomic
    def create_category(user, name):
        category = Category(user=user, name=squish(name), kind=Category.CUSTOM)
        category.full_clean()
        category.save()

        logger.info(
            "Custom category created",
            extra={
                "user_id": user.id,
                "category_id": category.id,
                "action": "category_created",
                "component": "CategoryService",
            },
        )
        return category

    @staticmethod
    @transaction.atomic
    def rename_category(user, category, name):
        """
        Rename ``category`` for ``user``.

        Custom categories are renamed in place. A global category is
        replaced by a custom copy carrying the new name: the user's
        transactions, bills and lookups move to the copy and the global is
        hidden for the user.

        Returns:
            Category: the renamed (or newly created) category

        Raises:
            ValidationError: if the name is blank or already taken
            PermissionError: if the category belongs to another user
        """
        name = squish(name)

        if not category.is_global:
            if category.user_id != user.id:
                raise PermissionError("You do not have permission to modify this category")
            category.name = name
            category.full_clean()
            category.save()
            return category

        if not name:
            raise ValidationError({"name": "can't be blank"})
        if Category.objects.filter(user=user, name__iexact=name).exists():
            logger.warning(
                "Global category rename refused - name exists",
                extra={
                    "user_id": user.id,
                    "category_id": category.id,
                    "action": "global_category_rename_refused",
                    "component": "CategoryService",
                    "severity": "low",
                },
            )
            raise ValidationError({"name": "already exists"})

        copy = Category(user=user, name=name, kind=Category.CUSTOM)
        copy.full_clean()
        copy.save()

        moved = Transaction.objects.filter(
            account__user=user, category=category
        ).update(category=copy)
        Bill.objects.filter(user=user, category=category).update(category=copy)
        CategoryLookup.objects.filter(user=user, category=category).update(category=copy)
        HiddenCategory.objects.get_or_create(user=user, category=category)

        logger.info(
            "Global category renamed into custom copy",
            extra={
                "user_id": user.id,
                "global_category_id": category.id,
                "custom_category_id": copy.id,
                "transactions_moved": moved,
                "action": "global_category_renamed",
                "component": "CategoryService",
            },
        )
        return copy

    @staticmethod
    @transaction.atomic
    def delete_category(user, category):
        """
        Remove ``category`` from the user's point of view.

        Custom categories are deleted together with their lookups and
        detached from transactions. Global categories are detached from the
        user's transactions and bills, lose the user's lookups and get hidden.
        """
        if category.is_global:
            if category.name.lower() == Category.TRANSFER_NAME.lower():
                raise ValidationError({"name": "The Transfer category cannot be removed"})
            Transaction.objects.filter(account__user=user, category=category).update(
                category=None
            )
            Bill.objects.filter(user=user, category=category).update(category=None)
            CategoryLookup.objects.filter(user=user, category=category).delete()
            HiddenCategory.objects.get_or_create(user=user, category=category)
            action = "global_category_hidden"
        else:
            if category.user_id != user.id:
                raise PermissionError("You do not have permission to modify this category")
            Transaction.objects.filter(category=category).update(category=None)
            category.lookups.all().delete()
            category.delete()
            action = "custom_category_deleted"

        logger.info(
            "Category removed for user",
            extra={
                "user_id": user.id,
                "category_id": category.id,
                "action": action,
                "component": "CategoryService",
            },
        )
