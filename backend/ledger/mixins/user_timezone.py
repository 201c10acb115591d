# ledger/mixins/user_timezone.py
import logging
import zoneinfo

from django.utils import timezone

logger = logging.getLogger(__name__)


class UserTimezoneMixin:
    """
    Activate the authenticated user's time zone for the request so that
    "today" and date defaults follow the user's calendar.
    """

    def initial(self, request, *args, **kwargs):
        super().initial(request, *args, **kwargs)
        tz_name = getattr(request.user, "timezone", None)
        if not tz_name:
            return
        try:
            timezone.activate(zoneinfo.ZoneInfo(tz_name))
        except (zoneinfo.ZoneInfoNotFoundError, ValueError):
            logger.warning(
                "Unknown user time zone ignored",
                extra={
                    "user_id": request.user.id,
                    "timezone": tz_name,
                    "action": "user_timezone_invalid",
                    "component": "UserTimezoneMixin",
                    "severity": "low",
                },
            )

    def finalize_response(self, request, response, *args, **kwargs):
        timezone.deactivate()
        return super().finalize_response(request, response, *args, **kwargs)
