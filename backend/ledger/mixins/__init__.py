# ledger/mixins/__init__.py
from .account_context import AccountContextMixin
from .service_exception_handler import ServiceExceptionHandlerMixin
from .user_timezone import UserTimezoneMixin

__all__ = [
    "AccountContextMixin",
    "ServiceExceptionHandlerMixin",
    "UserTimezoneMixin",
]
