from typing import Any

from django.db.models import QuerySet

from ..validation import NotFoundError


def get_or_not_found(queryset: QuerySet, pk: Any, label: str):
    """Fetch one row by primary key or raise a 404 naming the resource."""
    try:
        return queryset.get(pk=pk)
    except (queryset.model.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"{label} not found", details={"id": pk})
