"""
Authentication tests: registration, login, token refresh rotation, logout
revocation and bearer-token enforcement.
"""
from datetime import timedelta

import jwt
import pytest
from django.conf import settings
from django.utils import timezone
from rest_framework.test import APIClient

from billing.models import RevokedToken
from billing.services import AuthService
from billing.services.auth_service import PasswordPolicy
from tests.factories import DEFAULT_PASSWORD, UserFactory


def _bearer(client, token):
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
    return client


@pytest.mark.django_db
class TestRegistration:
    def test_register_returns_tokens(self, anon_client):
        response = anon_client.post(
            "/api/auth/register",
            {"email": "Owner@Example.com", "password": "Str0ng!pass", "name": "Dana"},
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["user"]["email"] == "owner@example.com"
        assert data["user"]["name"] == "Dana"
        assert data["token_type"] == "Bearer"
        assert data["token"] and data["refresh_token"]
        assert data["expires_in"] == settings.JWT_ACCESS_TOKEN_LIFETIME_HOURS * 3600

    def test_duplicate_email(self, anon_client):
        UserFactory(email="owner@example.com", username="owner@example.com")
        response = anon_client.post(
            "/api/auth/register",
            {"email": "owner@example.com", "password": "Str0ng!pass", "name": "Dana"},
        )

        assert response.status_code == 409
        assert response.json()["error"] == "USER_EXISTS"

    def test_weak_password(self, anon_client):
        response = anon_client.post(
            "/api/auth/register", {"email": "a@example.com", "password": "password", "name": "A"}
        )

        assert response.status_code == 400
        assert len(response.json()["details"]["password"]) == 3

    def test_password_policy(self):
        assert PasswordPolicy.errors("Str0ng!pass") == []
        assert "Password must be at least 8 characters long." in PasswordPolicy.errors("S0!a")


@pytest.mark.django_db
class TestLogin:
    def test_login(self, anon_client, user):
        response = anon_client.post("/api/auth/login", {"email": user.email, "password": DEFAULT_PASSWORD})

        assert response.status_code == 200
        assert response.json()["data"]["user"]["id"] == user.pk

    def test_wrong_password(self, anon_client, user):
        response = anon_client.post("/api/auth/login", {"email": user.email, "password": "nope"})

        assert response.status_code == 401
        assert response.json()["error"] == "INVALID_CREDENTIALS"

    def test_inactive_user(self, anon_client):
        user = UserFactory(is_active=False)
        response = anon_client.post("/api/auth/login", {"email": user.email, "password": DEFAULT_PASSWORD})
        assert response.status_code == 401


@pytest.mark.django_db
class TestTokens:
    def test_me(self, api_client, user):
        response = api_client.get("/api/auth/me")

        assert response.status_code == 200
        assert response.json()["data"]["email"] == user.email

    def test_missing_token(self, anon_client):
        response = anon_client.get("/api/auth/me")

        assert response.status_code == 401
        assert response["WWW-Authenticate"] == "Bearer"

    def test_garbage_token(self, anon_client):
        response = _bearer(anon_client, "not.a.jwt").get("/api/auth/me")

        assert response.status_code == 401
        assert response.json()["error"] == "TOKEN_INVALID"

    def test_expired_token(self, anon_client, user):
        now = timezone.now()
        token = jwt.encode(
            {
                "sub": str(user.pk),
                "type": "access",
                "jti": "expired-jti",
                "iat": now - timedelta(hours=2),
                "exp": now - timedelta(hours=1),
            },
            settings.JWT_SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM,
        )
        response = _bearer(anon_client, token).get("/api/auth/me")

        assert response.status_code == 401
        assert response.json()["error"] == "TOKEN_EXPIRED"

    def test_refresh_token_is_not_an_access_token(self, anon_client, user):
        tokens = AuthService.issue_tokens(user)
        response = _bearer(anon_client, tokens["refresh_token"]).get("/api/auth/me")
        assert response.status_code == 401

    def test_refresh_rotates(self, anon_client, user):
        tokens = AuthService.issue_tokens(user)

        response = anon_client.post("/api/auth/refresh", {"refresh_token": tokens["refresh_token"]})
        assert response.status_code == 200
        assert response.json()["data"]["refresh_token"] != tokens["refresh_token"]

        reused = anon_client.post("/api/auth/refresh", {"refresh_token": tokens["refresh_token"]})
        assert reused.status_code == 401

    def test_logout_revokes_tokens(self, anon_client, user):
        tokens = AuthService.issue_tokens(user)
        client = _bearer(anon_client, tokens["token"])

        response = client.post("/api/auth/logout", {"refresh_token": tokens["refresh_token"]})

        assert response.status_code == 200
        assert RevokedToken.objects.filter(user=user).count() == 2
        assert client.get("/api/auth/me").status_code == 401
        fresh = APIClient().post("/api/auth/refresh", {"refresh_token": tokens["refresh_token"]})
        assert fresh.status_code == 401


@pytest.mark.django_db
class TestProfile:
    def test_update_name(self, api_client, user):
        response = api_client.put("/api/auth/profile", {"name": "  Ada Lovelace  "})

        assert response.status_code == 200
        assert response.json()["data"]["name"] == "Ada Lovelace"
        user.refresh_from_db()
        assert user.first_name == "Ada Lovelace"

    def test_name_too_short(self, api_client, user):
        original = user.first_name
        response = api_client.patch("/api/auth/profile", {"name": " A "})

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "VALIDATION_ERROR"
        assert body["details"][0]["field"] == "name"
        user.refresh_from_db()
        assert user.first_name == original

    def test_email_is_not_changed_through_profile(self, api_client, user):
        response = api_client.put("/api/auth/profile", {"email": "other@example.com"})

        assert response.status_code == 200
        user.refresh_from_db()
        assert user.email != "other@example.com"

    def test_requires_authentication(self, anon_client):
        assert anon_client.put("/api/auth/profile", {"name": "Ada"}).status_code == 401


@pytest.mark.django_db
class TestRevocationPurge:
    def test_purges_only_expired_rows(self, user):
        now = timezone.now()
        RevokedToken.objects.create(jti="old", user=user, expires_at=now - timedelta(minutes=1))
        RevokedToken.objects.create(jti="live", user=user, expires_at=now + timedelta(hours=1))

        assert AuthService.purge_expired_revocations(now) == 1
        assert list(RevokedToken.objects.values_list("jti", flat=True)) == ["live"]

    def test_refresh_token_stays_rejected_after_purge(self, anon_client, user):
        tokens = AuthService.issue_tokens(user)
        AuthService.refresh(tokens["refresh_token"])

        assert AuthService.purge_expired_revocations() == 0
        response = anon_client.post("/api/auth/refresh", {"refresh_token": tokens["refresh_token"]})
        assert response.status_code == 401
