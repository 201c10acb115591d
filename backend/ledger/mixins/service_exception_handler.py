"""
Service exception handler mixin.

Translates service layer exceptions into DRF exceptions with structured
logging, so views can call services without their own try/except blocks.
"""

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework.exceptions import APIException
from rest_framework.exceptions import PermissionDenied as DRFPermissionDenied
from rest_framework.exceptions import ValidationError as DRFValidationError

logger = logging.getLogger(__name__)


def django_error_detail(error):
    """Field errors as a dict when available, otherwise a list of messages."""
    if hasattr(error, "error_dict"):
        return error.message_dict
    return error.messages


class ServiceExceptionHandlerMixin:
    """
    Mixin for handling service layer exceptions in views.

    - Django ``ValidationError`` becomes a DRF 400 keeping field errors
    - ``PermissionError`` becomes a DRF 403
    - DRF exceptions pass through unchanged
    - anything else is logged with a stack trace and answered with a
      generic 500 so internals never leak

    Usage:
        trx = self.handle_service_call(
            TransactionService.create_transaction, account, data, files
        )
    """

    def handle_service_call(self, service_call, *args, **kwargs):
        """
        Execute service call with exception handling and logging.

        Args:
            service_call: Service method to execute
            *args: Positional arguments for service call
            **kwargs: Keyword arguments for service call

        Returns:
            Any: Result from service call

        Raises:
            DRFValidationError: For business rule violations
            DRFPermissionDenied: For authorization failures
            APIException: For unexpected service errors
        """
        service_name = getattr(service_call, "__qualname__", str(service_call)).split(".")[0]
        method_name = getattr(service_call, "__name__", str(service_call))
        request = getattr(self, "request", None)
        user_id = getattr(getattr(request, "user", None), "id", None) if request else None

        logger.debug(
            "Service call execution initiated",
            extra={
                "service_name": service_name,
                "method_name": method_name,
                "user_id": user_id,
                "args_count": len(args),
                "kwargs_keys": list(kwargs.keys()),
                "action": "service_call_start",
                "component": "ServiceExceptionHandlerMixin",
            },
        )

        try:
            result = service_call(*args, **kwargs)

        except DRFValidationError as e:
            logger.warning(
                "Service validation error (DRF)",
                extra={
                    "service_name": service_name,
                    "method_name": method_name,
                    "user_id": user_id,
                    "error_detail": e.detail,
                    "action": "service_validation_error_drf",
                    "component": "ServiceExceptionHandlerMixin",
                    "severity": "medium",
                },
            )
            raise

        except DjangoValidationError as e:
            detail = django_error_detail(e)
            logger.warning(
                "Service validation error (Django)",
                extra={
                    "service_name": service_name,
                    "method_name": method_name,
                    "user_id": user_id,
                    "error_messages": detail,
                    "action": "service_validation_error_django",
                    "component": "ServiceExceptionHandlerMixin",
                    "severity": "medium",
                },
            )
            raise DRFValidationError(detail)

        except PermissionError as e:
            logger.warning(
                "Service permission denied",
                extra={
                    "service_name": service_name,
                    "method_name": method_name,
                    "user_id": user_id,
                    "error_message": str(e),
                    "action": "service_permission_denied",
                    "component": "ServiceExceptionHandlerMixin",
                    "severity": "high",
                },
            )
            raise DRFPermissionDenied(str(e))

        except APIException as e:
            logger.error(
                "Service API exception",
                extra={
                    "service_name": service_name,
                    "method_name": method_name,
                    "user_id": user_id,
                    "error_detail": e.detail,
                    "status_code": e.status_code,
                    "action": "service_api_exception",
                    "component": "ServiceExceptionHandlerMixin",
                    "severity": "high",
                },
            )
            raise

        except Exception as e:
            logger.error(
                "Service operation failed unexpectedly",
                extra={
                    "service_name": service_name,
                    "method_name": method_name,
                    "user_id": user_id,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                    "action": "service_unexpected_error",
                    "component": "ServiceExceptionHandlerMixin",
                    "severity": "critical",
                },
                exc_info=True,
            )
            raise APIException(detail="Service operation failed", code="service_error")

        logger.debug(
            "Service call completed successfully",
            extra={
                "service_name": service_name,
                "method_name": method_name,
                "user_id": user_id,
                "result_type": type(result).__name__,
                "action": "service_call_success",
                "component": "ServiceExceptionHandlerMixin",
            },
        )
        return result
