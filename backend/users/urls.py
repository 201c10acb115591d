"""
URL configuration for user authentication and management.

This module defines all API endpoints related to authentication,
registration and profile management.
"""

from django.urls import include, path, re_path
from rest_framework_simplejwt.views import TokenRefreshView

from .views import CustomConfirmEmailView, InactiveAccountView, LogoutView

urlpatterns = [
    # JSON e-mail confirmation overriding allauth's template view
    re_path(
        r"^auth/registration/account-confirm-email/(?P<key>[-:\w]+)/$",
        CustomConfirmEmailView.as_view(),
        name="account_confirm_email",
    ),
    path("auth/custom-logout/", LogoutView.as_view(), name="custom-logout"),
    path("auth/registration/", include("dj_rest_auth.registration.urls")),
    path("auth/", include("dj_rest_auth.urls")),
    path("token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("inactive/", InactiveAccountView.as_view(), name="account_inactive"),
]
