"""
Auth Service - registration, login and bearer-token lifecycle.

Tokens are HS256 JWTs carrying ``sub``, ``email``, ``type``, ``jti``,
``iat`` and ``exp``. Logout and refresh rotation revoke tokens by ``jti``.
"""

from __future__ import annotations

import logging
import re
import uuid
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Any, Dict, Optional, Tuple

import jwt
from django.conf import settings
from django.contrib.auth import authenticate, get_user_model
from django.db import IntegrityError, transaction

from ..models import RevokedToken
from ..validation import AuthenticationError, ConflictError, ErrorCode, ValidationError

logger = logging.getLogger(__name__)

User = get_user_model()

ACCESS = "access"
REFRESH = "refresh"


class PasswordPolicy:
    MIN_LENGTH = 8
    RULES = (
        (r"[A-Z]", "one uppercase letter"),
        (r"[a-z]", "one lowercase letter"),
        (r"\d", "one number"),
        (r"[^A-Za-z0-9]", "one special character"),
    )

    @classmethod
    def errors(cls, password: str) -> list:
        problems = []
        if len(password) < cls.MIN_LENGTH:
            problems.append(f"Password must be at least {cls.MIN_LENGTH} characters long.")
        for pattern, label in cls.RULES:
            if not re.search(pattern, password):
                problems.append(f"Password must contain at least {label}.")
        return problems


class AuthService:

    @staticmethod
    def _encode(user, token_type: str, lifetime: timedelta) -> Tuple[str, Dict[str, Any]]:
        now = datetime.now(dt_timezone.utc)
        payload = {
            "sub": str(user.pk),
            "email": user.email,
            "type": token_type,
            "jti": uuid.uuid4().hex,
            "iat": now,
            "exp": now + lifetime,
        }
        token = jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
        return token, payload

    @classmethod
    def issue_tokens(cls, user) -> Dict[str, Any]:
        access_lifetime = timedelta(hours=settings.JWT_ACCESS_TOKEN_LIFETIME_HOURS)
        access_token, _ = cls._encode(user, ACCESS, access_lifetime)
        refresh_token, _ = cls._encode(user, REFRESH, timedelta(days=settings.JWT_REFRESH_TOKEN_LIFETIME_DAYS))
        return {
            "token": access_token,
            "refresh_token": refresh_token,
            "token_type": "Bearer",
            "expires_in": int(access_lifetime.total_seconds()),
        }

    @staticmethod
    def decode(token: str, expected_type: str = ACCESS) -> Dict[str, Any]:
        try:
            payload = jwt.decode(
                token,
                settings.JWT_SECRET_KEY,
                algorithms=[settings.JWT_ALGORITHM],
                options={"require": ["sub", "jti", "exp", "type"]},
            )
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Token has expired", code=ErrorCode.TOKEN_EXPIRED)
        except jwt.InvalidTokenError as e:
            logger.info(f"Rejected invalid token: {e}")
            raise AuthenticationError("Invalid token", code=ErrorCode.TOKEN_INVALID)

        if payload.get("type") != expected_type:
            raise AuthenticationError(f"Expected a {expected_type} token", code=ErrorCode.TOKEN_INVALID)
        if RevokedToken.objects.filter(jti=payload["jti"]).exists():
            raise AuthenticationError("Token has been revoked", code=ErrorCode.TOKEN_INVALID)
        return payload

    @staticmethod
    def user_for_payload(payload: Dict[str, Any]):
        try:
            user = User.objects.get(pk=payload["sub"], is_active=True)
        except (User.DoesNotExist, ValueError):
            raise AuthenticationError("User not found or inactive", code=ErrorCode.TOKEN_INVALID)
        return user

    @staticmethod
    def _revoke(payload: Dict[str, Any], user) -> None:
        expires_at = datetime.fromtimestamp(payload["exp"], tz=dt_timezone.utc)
        RevokedToken.objects.get_or_create(jti=payload["jti"], defaults={"user": user, "expires_at": expires_at})

    @staticmethod
    def expired_revocations(now: Optional[datetime] = None):
        """Revocation rows whose token has expired anyway; decoding rejects those tokens on ``exp``."""
        now = now or datetime.now(dt_timezone.utc)
        return RevokedToken.objects.filter(expires_at__lte=now)

    @classmethod
    def purge_expired_revocations(cls, now: Optional[datetime] = None) -> int:
        deleted, _ = cls.expired_revocations(now).delete()
        if deleted:
            logger.info(f"Purged {deleted} expired token revocation(s)")
        return deleted

    @classmethod
    def register(cls, email: str, password: str, name: str) -> Tuple[Any, Dict[str, Any]]:
        email = email.strip().lower()
        problems = PasswordPolicy.errors(password)
        if problems:
            raise ValidationError("Password does not meet requirements", details={"password": problems})
        if User.objects.filter(email__iexact=email).exists():
            raise ConflictError("A user with this email already exists", code=ErrorCode.USER_EXISTS)

        try:
            with transaction.atomic():
                user = User.objects.create_user(username=email, email=email, password=password, first_name=name)
        except IntegrityError:
            raise ConflictError("A user with this email already exists", code=ErrorCode.USER_EXISTS)

        logger.info(f"User {user.pk} registered")
        return user, cls.issue_tokens(user)

    @classmethod
    def login(cls, email: str, password: str) -> Tuple[Any, Dict[str, Any]]:
        email = email.strip().lower()
        user = authenticate(username=email, password=password)
        if user is None or not user.is_active:
            logger.info("Failed login attempt")
            raise AuthenticationError("Invalid email or password", code=ErrorCode.INVALID_CREDENTIALS)

        logger.info(f"User {user.pk} logged in")
        return user, cls.issue_tokens(user)

    @classmethod
    @transaction.atomic
    def refresh(cls, refresh_token: str) -> Tuple[Any, Dict[str, Any]]:
        payload = cls.decode(refresh_token, expected_type=REFRESH)
        user = cls.user_for_payload(payload)
        cls._revoke(payload, user)
        logger.info(f"Tokens refreshed for user {user.pk}")
        return user, cls.issue_tokens(user)

    @classmethod
    @transaction.atomic
    def logout(cls, user, access_payload: Dict[str, Any], refresh_token: Optional[str] = None) -> None:
        cls._revoke(access_payload, user)
        if refresh_token:
            try:
                refresh_payload = cls.decode(refresh_token, expected_type=REFRESH)
            except AuthenticationError:
                refresh_payload = None
            if refresh_payload and refresh_payload["sub"] == str(user.pk):
                cls._revoke(refresh_payload, user)
        logger.info(f"User {user.pk} logged out")

