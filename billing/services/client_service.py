import logging
from typing import Any, Dict

from django.db import IntegrityError, transaction
from django.db.models import Q

from ..models import Client
from ..validation import ConflictError, ErrorCode

logger = logging.getLogger(__name__)

CLIENT_FIELDS = (
    "name", "email", "company", "phone", "address", "primary_contact_name", "primary_contact_email",
    "cc_emails", "country", "registration_number", "tax_id", "preferred_currency", "notes",
)


class ClientService:

    @staticmethod
    def _ensure_email_available(email: str, exclude_pk=None) -> None:
        existing = Client.objects.filter(email__iexact=email)
        if exclude_pk is not None:
            existing = existing.exclude(pk=exclude_pk)
        if existing.exists():
            raise ConflictError(
                f"A client with email {email} already exists",
                code=ErrorCode.CLIENT_EXISTS,
                details={"email": email},
            )

    @classmethod
    def create_client(cls, data: Dict[str, Any]) -> Client:
        cls._ensure_email_available(data["email"])
        try:
            with transaction.atomic():
                client = Client.objects.create(**{k: v for k, v in data.items() if k in CLIENT_FIELDS})
        except IntegrityError:
            raise ConflictError(f"A client with email {data['email']} already exists", code=ErrorCode.CLIENT_EXISTS)
        logger.info(f"Client {client.pk} created")
        return client

    @classmethod
    @transaction.atomic
    def update_client(cls, client: Client, data: Dict[str, Any]) -> Client:
        if "email" in data and data["email"].lower() != client.email.lower():
            cls._ensure_email_available(data["email"], exclude_pk=client.pk)
        for name in CLIENT_FIELDS:
            if name in data:
                setattr(client, name, data[name])
        client.save()
        logger.info(f"Client {client.pk} updated")
        return client

    @staticmethod
    def delete_client(client: Client) -> None:
        client_id = client.pk
        client.delete()
        logger.info(f"Client {client_id} deleted")

    @staticmethod
    def search(queryset, term: str):
        if not term:
            return queryset
        return queryset.filter(
            Q(name__icontains=term) | Q(email__icontains=term) | Q(company__icontains=term)
        )
