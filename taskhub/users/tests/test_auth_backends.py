import pytest
from django.contrib.auth import get_user_model

from taskhub.users.auth_backends import UsernameOrEmailBackend

pytestmark = pytest.mark.django_db
User = get_user_model()


class TestUsernameOrEmailBackend:
    def setup_method(self):
        self.backend = UsernameOrEmailBackend()
        self.password = "Sahm1232"  # noqa: S105
        self.user = User.objects.create_user(
            username="test",
            email="test@example.com",
            password=self.password,
        )

    def test_authenticate_with_username(self):
        user = self.backend.authenticate(None, username="test", password=self.password)
        assert user == self.user

    def test_authenticate_with_email_case_insensitive(self):
        user = self.backend.authenticate(
            None,
            username="TEST@example.com",
            password=self.password,
        )
        assert user == self.user

    def test_wrong_password(self):
        assert self.backend.authenticate(None, username="test", password="nope") is None

    def test_inactive_user_is_rejected(self):
        self.user.is_active = False
        self.user.save()
        user = self.backend.authenticate(None, username="test", password=self.password)
        assert user is None
