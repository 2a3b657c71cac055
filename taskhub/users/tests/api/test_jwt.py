import pytest
from django.contrib.auth import get_user_model
from rest_framework import status
from rest_framework.test import APIClient

pytestmark = pytest.mark.django_db


def obtain_tokens(client, username: str, password: str) -> tuple[str, str]:
    r = client.post(
        "/api/v1/auth/jwt/create/",
        {"username": username, "password": password},
        format="json",
    )
    assert r.status_code == status.HTTP_200_OK, r.content
    return r.data["access"], r.data["refresh"]


def make_user():
    return get_user_model().objects.create_user(
        username="verifyuser",
        email="verify@example.com",
        password="VerifyPass!123",  # noqa: S106
    )


def test_jwt_verify_endpoint():
    make_user()
    client = APIClient()
    access, _ = obtain_tokens(client, "verifyuser", "VerifyPass!123")

    r = client.post("/api/v1/auth/jwt/verify/", {"token": access}, format="json")
    assert r.status_code == status.HTTP_200_OK

    bad = access[:-2] + "ab"
    r = client.post("/api/v1/auth/jwt/verify/", {"token": bad}, format="json")
    assert r.status_code == status.HTTP_401_UNAUTHORIZED
    assert r.data["error"] == "authentication_error"


def test_bearer_token_authenticates_api_calls():
    make_user()
    client = APIClient()
    access, _ = obtain_tokens(client, "verify@example.com", "VerifyPass!123")

    client.credentials(HTTP_AUTHORIZATION=f"Bearer {access}")
    r = client.get("/api/v1/users/me/")
    assert r.status_code == status.HTTP_200_OK
    assert r.data["username"] == "verifyuser"


def test_refresh_returns_rotated_pair_in_body():
    make_user()
    client = APIClient()
    _, refresh = obtain_tokens(client, "verifyuser", "VerifyPass!123")

    r = client.post("/api/v1/auth/jwt/refresh/", {"refresh": refresh}, format="json")
    assert r.status_code == status.HTTP_200_OK, r.content
    assert r.data["access"]
    assert r.data["refresh"]
    assert r.data["refresh"] != refresh

    client.credentials(HTTP_AUTHORIZATION=f"Bearer {r.data['access']}")
    me = client.get("/api/v1/users/me/")
    assert me.status_code == status.HTTP_200_OK
    assert me.data["username"] == "verifyuser"


def test_rotated_refresh_token_cannot_be_reused():
    make_user()
    client = APIClient()
    _, refresh = obtain_tokens(client, "verifyuser", "VerifyPass!123")

    first = client.post(
        "/api/v1/auth/jwt/refresh/", {"refresh": refresh}, format="json"
    )
    assert first.status_code == status.HTTP_200_OK

    again = client.post(
        "/api/v1/auth/jwt/refresh/", {"refresh": refresh}, format="json"
    )
    assert again.status_code == status.HTTP_401_UNAUTHORIZED


def test_login_returns_tokens_usable_as_bearer():
    make_user()
    client = APIClient()

    r = client.post(
        "/api/v1/auth/login/",
        {"username": "verifyuser", "password": "VerifyPass!123"},
        format="json",
    )
    assert r.status_code == status.HTTP_200_OK, r.content
    assert r.data["user"]["username"] == "verifyuser"
    assert r.data["refresh"]

    client.credentials(HTTP_AUTHORIZATION=f"Bearer {r.data['access']}")
    assert client.get("/api/v1/users/me/").status_code == status.HTTP_200_OK


def test_register_returns_token_pair():
    client = APIClient()
    r = client.post(
        "/api/v1/auth/register/",
        {
            "username": "newbie",
            "email": "Newbie@Example.com",
            "password": "Str0ng-Passphrase!",
        },
        format="json",
    )
    assert r.status_code == status.HTTP_201_CREATED, r.content
    assert r.data["user"]["email"] == "newbie@example.com"
    assert r.data["user"]["role"] == "member"
    assert r.data["access"]
    assert r.data["refresh"]
