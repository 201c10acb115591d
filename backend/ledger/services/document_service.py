"""
Document filing service: create, update, list with filters and sorting.
"""

import logging

from django.contrib.contenttypes.models import ContentType
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Case, CharField, OuterRef, Subquery, Value, When

from ..models import Account, Attachment, Document
from ..utils import dates

logger = logging.getLogger(__name__)

SORT_FIELDS = ("document_date", "category", "level", "account_name", "description", "filename")


class DocumentService:
    """
    Documents belong either to the user or to one of the user's accounts.
    """

    @staticmethod
    def resolve_owner(user, account=None):
        if account is None:
            return user
        if account.user_id != user.id:
            raise PermissionError("Account does not belong to you")
        return account

    @staticmethod
    @transaction.atomic
    def create_document(user, data, files=None, account=None):
        files = list(files or [])
        document = Document(attachable=DocumentService.resolve_owner(user, account), **data)
        document.full_clean()
        document.save()
        for uploaded in files:
            Attachment.build_for(document, uploaded).save()

        logger.info(
            "Document filed",
            extra={
                "user_id": user.id,
                "document_id": document.id,
                "level": document.level,
                "attachments_count": len(files),
                "action": "document_created",
                "component": "DocumentService",
            },
        )
        return document

    @staticmethod
    @transaction.atomic
    def update_document(user, document, data, files=None, account=None, move=False):
        """
        Update a document; saved documents must keep at least one attachment.

        ``move`` re-homes the document to ``account`` (or to the user when
        ``account`` is ``None``).
        """
        files = list(files or [])
        if move:
            document.attachable = DocumentService.resolve_owner(user, account)
        for field, value in data.items():
            setattr(document, field, value)
        document.full_clean()

        if not files and not document.attachments.exists():
            raise ValidationError({"attachments": "can't be blank"})

        document.save()
        for uploaded in files:
            Attachment.build_for(document, uploaded).save()
        return document

    @staticmethod
    @transaction.atomic
    def remove_attachment(document, attachment_id):
        """Delete one attachment; the last one cannot be removed."""
        attachment = document.attachments.filter(pk=attachment_id).first()
        if attachment is None:
            raise ValidationError({"attachment": "not found"})
        if document.attachments.count() == 1:
            raise ValidationError({"attachments": "can't be blank"})
        attachment.delete()
        logger.info(
            "Document attachment removed",
            extra={
                "document_id": document.id,
                "attachment_id": attachment_id,
                "action": "document_attachment_removed",
                "component": "DocumentService",
            },
        )

    @staticmethod
    @transaction.atomic
    def delete_document(document):
        for attachment in document.attachments.all():
            attachment.delete()
        document.delete()

    @staticmethod
    def list_for_user(user, params):
        """
        The user's documents filtered by ``category``, ``level``,
        ``account_id``, ``tax_year`` and a ``start_date``/``end_date`` range,
        sorted by ``sort`` (default ``document_date``) in ``direction``
        (``asc`` or the default ``desc``).
        """
        account_type = ContentType.objects.get_for_model(Account)
        qs = Document.objects.for_user(user).annotate(
            level_label=Case(
                When(attachable_type=account_type, then=Value(Document.LEVEL_ACCOUNT)),
                default=Value(Document.LEVEL_USER),
                output_field=CharField(),
            ),
            account_label=Case(
                When(
                    attachable_type=account_type,
                    then=Subquery(
                        Account.objects.filter(pk=OuterRef("attachable_id")).values("name")[:1]
                    ),
                ),
                default=Value("N/A"),
                output_field=CharField(),
            ),
            first_filename=Subquery(
                Attachment.objects.filter(
                    content_type=ContentType.objects.get_for_model(Document),
                    object_id=OuterRef("pk"),
                )
                .order_by("id")
                .values("filename")[:1]
            ),
        )

        category = params.get("category")
        if category:
            qs = qs.filter(category=category)

        level = params.get("level")
        if level == Document.LEVEL_ACCOUNT:
            qs = qs.filter(attachable_type=account_type)
        elif level == Document.LEVEL_USER:
            qs = qs.exclude(attachable_type=account_type)

        account_id = params.get("account_id")
        if account_id:
            qs = qs.filter(attachable_type=account_type, attachable_id=account_id)

        tax_year = params.get("tax_year")
        if tax_year:
            qs = qs.filter(tax_year=tax_year)

        start = dates.parse_date(params.get("start_date"))
        end = dates.parse_date(params.get("end_date"))
        if start and end:
            qs = qs.filter(document_date__range=(start, end))

        sort = params.get("sort") or "document_date"
        descending = params.get("direction") != "asc"
        prefix = "-" if descending else ""

        column = {
            "category": "category",
            "level": "level_label",
            "account_name": "account_label",
            "description": "description",
            "filename": "first_filename",
        }.get(sort)

        if column is None:
            return qs.order_by(f"{prefix}document_date", f"{prefix}id")
        return qs.order_by(f"{prefix}{column}", "-document_date", "-id")
