# users/tests/test_models.py

import pytest
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.test import RequestFactory

from ledger.tests.factories import AccountFactory, UserFactory
from users.utils import custom_lockout_response, get_axes_username

User = get_user_model()


@pytest.mark.django_db
class TestCustomUserManager:
    def test_create_user_normalizes_email(self):
        user = User.objects.create_user(
            email="Mixed.Case@Example.COM", password="pass", first_name="A", last_name="B"
        )

        assert user.email == "mixed.case@example.com"
        assert user.check_password("pass")
        assert not user.is_staff

    def test_email_is_required(self):
        with pytest.raises(ValueError):
            User.objects.create_user(email="", password="pass")

    def test_create_superuser(self):
        admin = User.objects.create_superuser(
            email="admin@example.com", password="pass", first_name="A", last_name="B"
        )

        assert admin.is_staff
        assert admin.is_superuser

    def test_superuser_flags_are_enforced(self):
        with pytest.raises(ValueError):
            User.objects.create_superuser(
                email="admin@example.com", password="pass", is_staff=False
            )

    def test_natural_key_lookup_ignores_case(self):
        user = UserFactory(email="someone@example.com")

        assert User.objects.get_by_natural_key("SOMEONE@example.com") == user


@pytest.mark.django_db
class TestCustomUserValidation:
    def test_unknown_timezone(self):
        user = UserFactory(timezone="UTC")
        user.timezone = "Atlantis/Capital"

        with pytest.raises(ValidationError) as exc_info:
            user.full_clean()

        assert "timezone" in exc_info.value.message_dict

    def test_default_account_must_be_own(self):
        user = UserFactory()
        user.default_account = AccountFactory()

        with pytest.raises(ValidationError) as exc_info:
            user.full_clean()

        assert "default_account" in exc_info.value.message_dict

    def test_full_name(self):
        assert UserFactory.build(first_name="Ada", last_name="Lovelace").full_name == "Ada Lovelace"


class TestAxesHelpers:
    def test_username_from_credentials(self):
        assert get_axes_username(None, {"email": " User@Example.com "}) == "user@example.com"
        assert get_axes_username(None, {"username": "Other@Example.com"}) == "other@example.com"

    def test_username_from_post_body(self):
        request = RequestFactory().post("/", {"email": "Posted@Example.com"})

        assert get_axes_username(request, None) == "posted@example.com"

    def test_no_username(self):
        request = RequestFactory().post("/", {})

        assert get_axes_username(request, {}) is None

    def test_lockout_response(self):
        response = custom_lockout_response(RequestFactory().post("/"), {})

        assert response.status_code == 403
        assert b"temporarily locked" in response.content
