"""
User Service - profile and account administration.

Responsibilities:
- Profile updates for the signed-in user
- Account listing, editing and removal
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import Q

from ..validation import ConflictError, ErrorCode

logger = logging.getLogger(__name__)

User = get_user_model()


class UserService:

    @staticmethod
    def _ensure_email_available(email: str, exclude_pk=None) -> None:
        existing = User.objects.filter(Q(email__iexact=email) | Q(username__iexact=email))
        if exclude_pk is not None:
            existing = existing.exclude(pk=exclude_pk)
        if existing.exists():
            raise ConflictError("A user with this email already exists", code=ErrorCode.USER_EXISTS)

    @staticmethod
    def update_profile(user, name: Optional[str] = None):
        """Only the display name is editable through the profile."""
        if name:
            user.first_name = name
            user.save(update_fields=["first_name"])
            logger.info(f"User {user.pk} updated their profile")
        return user

    @classmethod
    def update_user(cls, user, data: Dict[str, Any]):
        update_fields = []
        email = data.get("email")
        if email:
            email = email.strip().lower()
            if email != user.email.lower():
                cls._ensure_email_available(email, exclude_pk=user.pk)
            user.email = email
            user.username = email
            update_fields += ["email", "username"]
        if data.get("name"):
            user.first_name = data["name"]
            update_fields.append("first_name")

        if update_fields:
            try:
                with transaction.atomic():
                    user.save(update_fields=update_fields)
            except IntegrityError:
                raise ConflictError("A user with this email already exists", code=ErrorCode.USER_EXISTS)
            logger.info(f"User {user.pk} updated ({', '.join(update_fields)})")
        return user

    @staticmethod
    @transaction.atomic
    def delete_user(user) -> None:
        # Companies cascade; invoices protect them, so a user with billing history stays
        user_id = user.pk
        user.delete()
        logger.info(f"User {user_id} deleted")

    @staticmethod
    def search(queryset, term: str):
        if not term:
            return queryset
        return queryset.filter(Q(email__icontains=term) | Q(first_name__icontains=term))
