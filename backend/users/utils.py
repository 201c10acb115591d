"""
Utility functions for user authentication and security.

This module provides the callables django-axes uses to identify login
attempts by e-mail and to answer locked-out requests with JSON.
"""

from django.http import JsonResponse
from rest_framework import status


def get_axes_username(request, credentials):
    """
    Custom username callable for AXES_USERNAME_CALLABLE.

    Users sign in with their e-mail address, so attempts are tracked by the
    lower-cased e-mail found in the credentials (or the POST body).

    Returns:
        str or None: The e-mail address, or None when no credentials were sent
    """
    email = None
    if credentials:
        email = credentials.get("email") or credentials.get("username")
    if not email and request is not None:
        email = request.POST.get("email")
    return email.strip().lower() if email else None


def custom_lockout_response(request, credentials, *args, **kwargs):
    """
    JSON response for an account locked due to too many failed login attempts.
    """
    return JsonResponse(
        {"detail": "Account temporarily locked due to too many failed login attempts."},
        status=status.HTTP_403_FORBIDDEN,
    )
