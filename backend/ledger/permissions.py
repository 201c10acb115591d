# permissions.py
import logging

from rest_framework import permissions

logger = logging.getLogger(__name__)


class IsOwner(permissions.BasePermission):
    """
    Object-level ownership check.

    The owner is resolved through ``view.owner_field`` (dotted attribute
    path, default ``user``). Querysets are already scoped to the user, so a
    failure here means a foreign object slipped through and is logged as
    such.
    """

    def has_object_permission(self, request, view, obj):
        path = getattr(view, "owner_field", "user")
        owner = obj
        for part in path.split("."):
            owner = getattr(owner, part, None)
            if owner is None:
                break

        owner_id = getattr(owner, "id", owner)
        allowed = owner_id == request.user.id

        if not allowed:
            logger.warning(
                "Object ownership check failed",
                extra={
                    "user_id": request.user.id,
                    "object_type": type(obj).__name__,
                    "object_id": getattr(obj, "pk", None),
                    "action": "ownership_denied",
                    "component": "IsOwner",
                    "severity": "high",
                },
            )
        return allowed


class IsCustomCategoryOwnerOrGlobal(permissions.BasePermission):
    """
    Categories: globals are visible to everyone; custom categories only to
    their owner.
    """

    def has_object_permission(self, request, view, obj):
        if obj.user_id is None:
            return True
        if obj.user_id == request.user.id:
            return True
        logger.warning(
            "Foreign custom category access denied",
            extra={
                "user_id": request.user.id,
                "category_id": obj.id,
                "action": "category_access_denied",
                "component": "IsCustomCategoryOwnerOrGlobal",
                "severity": "high",
            },
        )
        return False
