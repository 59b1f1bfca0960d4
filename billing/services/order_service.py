import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from django.db import transaction
from django.utils import timezone

from ..billing_cycle import occurrence_after, occurrence_on_or_after, occurrence_schedule
from ..models import Client, Company, Invoice, Order, ServiceLibrary
from ..validation import APIError, ConflictError, ErrorCode, ValidationError
from .invoice_service import InvoiceService
from .lookups import get_or_not_found

logger = logging.getLogger(__name__)

DEFAULT_LEAD_TIME_DAYS = 30
DEFAULT_SCHEDULE_COUNT = 5


class OrderService:
    VALID_TRANSITIONS = {
        Order.Status.ACTIVE: [Order.Status.PAUSED, Order.Status.CANCELLED],
        Order.Status.PAUSED: [Order.Status.ACTIVE, Order.Status.CANCELLED],
        Order.Status.CANCELLED: [],
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        return to_status in cls.VALID_TRANSITIONS.get(from_status, [])

    @staticmethod
    def _check_schedule(frequency: str, custom_days: Optional[int]) -> None:
        if frequency == Order.Frequency.CUSTOM and not custom_days:
            raise ValidationError(
                "custom_days is required for a custom frequency",
                details={"custom_days": ["Required when frequency is CUSTOM."]},
            )
        if frequency != Order.Frequency.CUSTOM and custom_days:
            raise ValidationError(
                "custom_days is only allowed for a custom frequency",
                details={"custom_days": ["Only allowed when frequency is CUSTOM."]},
            )

    @staticmethod
    def _resolve_references(user, data: Dict[str, Any]) -> Dict[str, Any]:
        resolved = {}
        if "client_id" in data:
            resolved["client"] = get_or_not_found(Client.objects.all(), data["client_id"], "Client")
        if data.get("service_id"):
            resolved["service"] = get_or_not_found(ServiceLibrary.objects.all(), data["service_id"], "Service")
        elif "service_id" in data:
            resolved["service"] = None
        if data.get("company_id"):
            resolved["company"] = get_or_not_found(
                Company.objects.filter(user=user, is_active=True), data["company_id"], "Company"
            )
        elif "company_id" in data:
            resolved["company"] = None
        return resolved

    @classmethod
    @transaction.atomic
    def create_order(cls, user, data: Dict[str, Any], today: Optional[date] = None) -> Order:
        today = today or timezone.localdate()
        start_date = data.get("start_date") or today
        if start_date < today:
            raise ValidationError(
                "Start date cannot be in the past",
                details={"start_date": ["Start date cannot be in the past."]},
            )

        frequency = data.get("frequency") or Order.Frequency.MONTHLY
        custom_days = data.get("custom_days")
        cls._check_schedule(frequency, custom_days)

        resolved = cls._resolve_references(user, data)
        service = resolved.get("service")
        amount = data.get("amount")
        if amount is None:
            if service is None:
                raise ValidationError("amount is required", details={"amount": ["This field is required."]})
            amount = service.default_price

        order = Order.objects.create(
            description=data.get("description") or (service.name if service else ""),
            amount=amount,
            currency=data.get("currency") or (service.currency if service else resolved["client"].preferred_currency),
            frequency=frequency,
            custom_days=custom_days,
            start_date=start_date,
            end_date=data.get("end_date"),
            next_invoice_date=start_date,
            lead_time_days=data.get("lead_time_days"),
            notes=data.get("notes", ""),
            **resolved,
        )
        logger.info(f"Order {order.pk} created for client {order.client_id}: {order.frequency_display} {order.amount}")
        return order

    @staticmethod
    def first_occurrence_from(order: Order, today: date) -> date:
        """First date of the order's schedule, counted from its start date, that is not in the past."""
        return occurrence_on_or_after(order.frequency, order.start_date, today, order.custom_days)

    @classmethod
    @transaction.atomic
    def update_order(cls, user, order: Order, data: Dict[str, Any]) -> Order:
        order = Order.objects.select_for_update().get(pk=order.pk)
        if order.status == Order.Status.CANCELLED:
            raise ConflictError("Cancelled orders cannot be modified", code=ErrorCode.INVALID_STATE_TRANSITION)

        for name, value in cls._resolve_references(user, data).items():
            setattr(order, name, value)
        for name in ("description", "amount", "currency", "end_date", "lead_time_days", "notes"):
            if name in data:
                setattr(order, name, data[name])

        schedule_before = (order.frequency, order.custom_days, order.start_date)
        for name in ("frequency", "custom_days"):
            if name in data:
                setattr(order, name, data[name])
        if order.frequency != Order.Frequency.CUSTOM and "custom_days" not in data:
            order.custom_days = None
        cls._check_schedule(order.frequency, order.custom_days)

        today = timezone.localdate()
        new_start = data.get("start_date")
        if new_start and new_start != order.start_date:
            if new_start < today:
                raise ValidationError(
                    "Start date cannot be in the past",
                    details={"start_date": ["Start date cannot be in the past."]},
                )
            order.start_date = new_start

        if (order.frequency, order.custom_days, order.start_date) != schedule_before:
            order.next_invoice_date = cls.first_occurrence_from(order, today)

        order.save()
        logger.info(f"Order {order.pk} updated")
        return order

    @classmethod
    @transaction.atomic
    def change_status(cls, order: Order, new_status: str) -> Order:
        order = Order.objects.select_for_update().get(pk=order.pk)
        old_status = order.status
        if not cls.can_transition(old_status, new_status):
            raise ConflictError(
                f"Cannot change order status from {old_status} to {new_status}",
                code=ErrorCode.INVALID_STATE_TRANSITION,
                details={"from": old_status, "to": new_status},
            )
        order.status = new_status
        order.save(update_fields=["status", "updated_at"])
        logger.info(f"Order {order.pk} transitioned from {old_status} to {new_status}")
        return order

    @staticmethod
    def _pick_company(user, order: Order, company_id: Optional[int]) -> Company:
        if company_id:
            return get_or_not_found(Company.objects.filter(user=user, is_active=True), company_id, "Company")
        if order.company_id and order.company.is_active:
            return order.company
        company = (
            Company.objects.filter(user=user, is_active=True)
            .order_by("-is_default", "created_at")
            .first()
        )
        if company is None:
            raise ValidationError(
                "No active company found. Create a company before generating invoices.",
                code=ErrorCode.NO_ACTIVE_COMPANY,
            )
        return company

    @classmethod
    @transaction.atomic
    def generate_invoice(
        cls,
        user,
        order: Order,
        today: Optional[date] = None,
        company_id: Optional[int] = None,
    ) -> Invoice:
        today = today or timezone.localdate()
        order = Order.objects.select_for_update().get(pk=order.pk)

        if order.status != Order.Status.ACTIVE:
            raise ConflictError(
                f"Invoices can only be generated for active orders; this order is {order.status}",
                code=ErrorCode.ORDER_NOT_ACTIVE,
            )
        if order.next_invoice_date > today:
            raise ConflictError(
                f"Order is not due for invoicing until {order.next_invoice_date}",
                code=ErrorCode.ORDER_NOT_DUE,
                details={"next_invoice_date": order.next_invoice_date.isoformat()},
            )

        company = cls._pick_company(user, order, company_id)
        lead_time = order.lead_time_days or DEFAULT_LEAD_TIME_DAYS
        invoice = InvoiceService.create_invoice(
            company.user,
            {
                "client_id": order.client_id,
                "company_id": company.pk,
                "order_id": order.pk,
                "amount": order.amount,
                "currency": order.currency,
                "issue_date": today,
                "due_date": today + timedelta(days=lead_time),
                "description": order.description,
            },
        )

        order.next_invoice_date = occurrence_after(
            order.frequency, order.start_date, order.next_invoice_date, order.custom_days
        )
        order.save(update_fields=["next_invoice_date", "updated_at"])
        logger.info(
            f"Order {order.pk} generated invoice {invoice.invoice_number}, "
            f"next invoice {order.next_invoice_date}"
        )
        return invoice

    @staticmethod
    @transaction.atomic
    def delete_order(order: Order) -> bool:
        """Hard-delete an order with no invoices; otherwise cancel it. Returns True if deleted."""
        if order.invoices.exists():
            if order.status != Order.Status.CANCELLED:
                order.status = Order.Status.CANCELLED
                order.save(update_fields=["status", "updated_at"])
            logger.info(f"Order {order.pk} has invoices, cancelled instead of deleted")
            return False
        order_id = order.pk
        order.delete()
        logger.info(f"Order {order_id} deleted")
        return True

    @staticmethod
    def schedule(order: Order, count: int = DEFAULT_SCHEDULE_COUNT) -> List[date]:
        return occurrence_schedule(
            order.frequency, order.next_invoice_date, count, order.custom_days, anchor=order.start_date
        )

    @staticmethod
    def due_orders(today: date):
        return Order.objects.filter(
            status=Order.Status.ACTIVE,
            next_invoice_date__lte=today,
        ).select_related("client", "company")

    @classmethod
    def process_due_orders(cls, today: date) -> Dict[str, Any]:
        """Generate invoices for every due active order, isolating failures per order."""
        results = {"success": 0, "failed": 0, "invoices": [], "errors": []}
        for order in cls.due_orders(today):
            if order.company_id is None:
                results["failed"] += 1
                results["errors"].append({"order_id": order.pk, "error": "Order has no company to invoice from"})
                logger.warning(f"Order {order.pk} skipped: no company assigned")
                continue
            try:
                invoice = cls.generate_invoice(order.company.user, order, today=today)
            except APIError as e:
                results["failed"] += 1
                results["errors"].append({"order_id": order.pk, "error": e.message})
                logger.error(f"Order {order.pk} invoice generation failed: {e.message}")
                continue
            results["success"] += 1
            results["invoices"].append(invoice.invoice_number)
        return results

    @staticmethod
    def filter_orders(queryset, params: Dict[str, Any]):
        status = params.get("status")
        if status:
            queryset = queryset.filter(status=status.upper())
        client_id = params.get("client_id")
        if client_id:
            queryset = queryset.filter(client_id=client_id)
        frequency = params.get("frequency")
        if frequency:
            queryset = queryset.filter(frequency=frequency.upper())
        return queryset
