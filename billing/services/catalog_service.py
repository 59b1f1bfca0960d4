import logging
from typing import Any, Dict

from ..models import ServiceLibrary
from ..validation import ValidationError

logger = logging.getLogger(__name__)

SERVICE_FIELDS = (
    "name", "description", "category", "default_price", "currency",
    "is_recurring", "billing_cycle", "billing_day", "is_active",
)


class CatalogService:
    """The service library: catalogue entries used as templates for orders and subscriptions."""

    @staticmethod
    def _check_recurrence(service: ServiceLibrary) -> None:
        if service.is_recurring and not service.billing_cycle:
            raise ValidationError(
                "Recurring services need a billing cycle",
                details={"billing_cycle": ["Required when is_recurring is true."]},
            )
        if not service.is_recurring:
            service.billing_cycle = None

    @classmethod
    def create_service(cls, data: Dict[str, Any]) -> ServiceLibrary:
        service = ServiceLibrary(**{k: v for k, v in data.items() if k in SERVICE_FIELDS})
        cls._check_recurrence(service)
        service.save()
        logger.info(f"Service {service.pk} ({service.category}) created")
        return service

    @classmethod
    def update_service(cls, service: ServiceLibrary, data: Dict[str, Any]) -> ServiceLibrary:
        for name in SERVICE_FIELDS:
            if name in data:
                setattr(service, name, data[name])
        cls._check_recurrence(service)
        service.save()
        logger.info(f"Service {service.pk} updated")
        return service

    @staticmethod
    def deactivate_service(service: ServiceLibrary) -> ServiceLibrary:
        service.is_active = False
        service.save(update_fields=["is_active", "updated_at"])
        logger.info(f"Service {service.pk} deactivated")
        return service

    @staticmethod
    def filter_services(queryset, params: Dict[str, Any]):
        if str(params.get("include_inactive", "")).lower() not in ("1", "true", "yes"):
            queryset = queryset.filter(is_active=True)
        category = params.get("category")
        if category:
            queryset = queryset.filter(category=category.upper())
        recurring = params.get("is_recurring")
        if recurring is not None and recurring != "":
            queryset = queryset.filter(is_recurring=str(recurring).lower() in ("1", "true", "yes"))
        return queryset
