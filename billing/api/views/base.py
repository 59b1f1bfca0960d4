from typing import Any, Dict, Iterable, Optional

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter
from rest_framework import viewsets

from billing.services.lookups import get_or_not_found
from billing.validation import ValidationError

from ..response import APIResponse

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

ID_PARAM = OpenApiParameter(
    name="pk",
    description="Record ID",
    required=True,
    type=OpenApiTypes.INT,
    location=OpenApiParameter.PATH,
)

PAGINATION_PARAMS = [
    OpenApiParameter(name="page", description="Page number (1-based)", required=False, type=int),
    OpenApiParameter(name="limit", description=f"Page size, at most {MAX_PAGE_SIZE}", required=False, type=int),
]


def int_param(
    params,
    name: str,
    default: Optional[int] = None,
    minimum: Optional[int] = None,
    maximum: Optional[int] = None,
) -> Optional[int]:
    """Read an integer query parameter, rejecting garbage with a 400."""
    raw = params.get(name)
    if raw in (None, ""):
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValidationError(
            f"Query parameter '{name}' must be an integer",
            details={name: ["A valid integer is required."]},
        )
    if minimum is not None and value < minimum:
        raise ValidationError(
            f"Query parameter '{name}' is out of range",
            details={name: [f"Must be at least {minimum}."]},
        )
    if maximum is not None and value > maximum:
        raise ValidationError(
            f"Query parameter '{name}' is out of range",
            details={name: [f"Must be at most {maximum}."]},
        )
    return value


def clean_params(params, int_names: Iterable[str] = ()) -> Dict[str, Any]:
    """Plain dict of query parameters with the id filters parsed as integers."""
    cleaned = {key: params.get(key) for key in params.keys()}
    for name in int_names:
        cleaned[name] = int_param(params, name, minimum=1)
    return cleaned


class BillingViewSet(viewsets.GenericViewSet):
    """
    Shared plumbing for the resource viewsets.

    Writes go through the service layer, so viewsets implement their actions
    explicitly instead of using the model mixins.
    """

    lookup_value_regex = r"\d+"
    not_found_label = "Record"

    def get_object(self):
        return get_or_not_found(self.get_queryset(), self.kwargs[self.lookup_field], self.not_found_label)

    def validated(self, serializer_class, data=None, partial: bool = False) -> Dict[str, Any]:
        serializer = serializer_class(data=self.request.data if data is None else data, partial=partial)
        serializer.is_valid(raise_exception=True)
        return dict(serializer.validated_data)

    def paginate(self, queryset, serializer_class=None, message: str = "Success"):
        params = self.request.query_params
        page = int_param(params, "page", default=1, minimum=1)
        limit = int_param(params, "limit", default=DEFAULT_PAGE_SIZE, minimum=1, maximum=MAX_PAGE_SIZE)

        total = queryset.count()
        offset = (page - 1) * limit
        items = queryset[offset:offset + limit]
        serializer_class = serializer_class or self.get_serializer_class()
        return APIResponse.paginated(
            data=serializer_class(items, many=True).data,
            page=page,
            limit=limit,
            total=total,
            message=message,
        )
