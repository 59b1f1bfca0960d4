import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from ..billing_cycle import advance_billing_date, due_window, next_billing_date
from ..models import Client, Company, Invoice, RecurringSubscription, ServiceLibrary
from ..validation import APIError, ConflictError, ErrorCode, ValidationError
from .invoice_service import InvoiceService
from .lookups import get_or_not_found

logger = logging.getLogger(__name__)

Status = RecurringSubscription.Status


class SubscriptionService:
    VALID_TRANSITIONS = {
        Status.ACTIVE: [Status.PAUSED, Status.PAID_IN_ADVANCE, Status.CANCELLED],
        Status.PAUSED: [Status.ACTIVE, Status.PAID_IN_ADVANCE, Status.CANCELLED],
        Status.PAID_IN_ADVANCE: [Status.ACTIVE, Status.PAUSED, Status.CANCELLED],
        Status.CANCELLED: [],
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        return to_status in cls.VALID_TRANSITIONS.get(from_status, [])

    @classmethod
    def _apply_status(cls, subscription: RecurringSubscription, new_status: str, today: date) -> None:
        old_status = subscription.status
        if new_status == old_status:
            return
        if not cls.can_transition(old_status, new_status):
            raise ConflictError(
                f"Cannot change subscription status from {old_status} to {new_status}",
                code=ErrorCode.INVALID_STATE_TRANSITION,
                details={"from": old_status, "to": new_status},
            )
        subscription.status = new_status
        if new_status == Status.CANCELLED:
            subscription.end_date = today
        logger.info(f"Subscription {subscription.pk} transitioned from {old_status} to {new_status}")

    @staticmethod
    def _check_advance_payment(subscription: RecurringSubscription) -> None:
        if subscription.status == Status.PAID_IN_ADVANCE and not subscription.advance_paid_until:
            raise ValidationError(
                "advance_paid_until is required for subscriptions paid in advance",
                details={"advance_paid_until": ["This field is required when status is PAID_IN_ADVANCE."]},
            )

    @staticmethod
    def _resolve_service(service_id: Any) -> ServiceLibrary:
        service = get_or_not_found(ServiceLibrary.objects.all(), service_id, "Service")
        if not service.is_active:
            raise ValidationError(
                "Service is no longer offered",
                details={"service_id": ["Service is inactive."]},
            )
        return service

    @classmethod
    @transaction.atomic
    def create_subscription(cls, user, data: Dict[str, Any], today: Optional[date] = None) -> RecurringSubscription:
        today = today or timezone.localdate()
        client = get_or_not_found(Client.objects.all(), data["client_id"], "Client")
        company = get_or_not_found(Company.objects.filter(user=user, is_active=True), data["company_id"], "Company")
        service = cls._resolve_service(data["service_id"])

        start_date = data.get("start_date") or today
        billing_day = data["billing_day"]

        subscription = RecurringSubscription(
            client=client,
            company=company,
            service=service,
            price=data["price"] if data.get("price") is not None else service.default_price,
            currency=data.get("currency") or service.currency,
            billing_day=billing_day,
            start_date=start_date,
            next_billing_date=next_billing_date(billing_day, start_date),
            status=data.get("status") or Status.ACTIVE,
            advance_paid_until=data.get("advance_paid_until"),
            notes=data.get("notes", ""),
        )
        if subscription.status == Status.CANCELLED:
            raise ValidationError(
                "A subscription cannot be created in the cancelled state",
                details={"status": ["Choose ACTIVE, PAUSED or PAID_IN_ADVANCE."]},
            )
        cls._check_advance_payment(subscription)
        subscription.save()

        logger.info(
            f"Subscription {subscription.pk} created for client {client.pk}: "
            f"{subscription.price} {subscription.currency} on day {billing_day}, "
            f"next billing {subscription.next_billing_date}"
        )
        return subscription

    @classmethod
    @transaction.atomic
    def update_subscription(
        cls,
        user,
        subscription: RecurringSubscription,
        data: Dict[str, Any],
        today: Optional[date] = None,
    ) -> RecurringSubscription:
        today = today or timezone.localdate()
        subscription = RecurringSubscription.objects.select_for_update().get(pk=subscription.pk)

        if subscription.status == Status.CANCELLED:
            raise ConflictError(
                "Cancelled subscriptions cannot be modified",
                code=ErrorCode.INVALID_STATE_TRANSITION,
            )

        if "client_id" in data:
            subscription.client = get_or_not_found(Client.objects.all(), data["client_id"], "Client")
        if "company_id" in data:
            subscription.company = get_or_not_found(
                Company.objects.filter(user=user, is_active=True), data["company_id"], "Company"
            )
        if "service_id" in data:
            subscription.service = cls._resolve_service(data["service_id"])

        for name in ("price", "currency", "advance_paid_until", "notes"):
            if name in data:
                setattr(subscription, name, data[name])

        new_day = data.get("billing_day")
        if new_day is not None and new_day != subscription.billing_day:
            subscription.billing_day = new_day
            subscription.next_billing_date = next_billing_date(new_day, today)

        if data.get("status"):
            cls._apply_status(subscription, data["status"], today)
        cls._check_advance_payment(subscription)

        subscription.save()
        logger.info(f"Subscription {subscription.pk} updated")
        return subscription

    @classmethod
    @transaction.atomic
    def cancel_subscription(cls, subscription: RecurringSubscription, today: Optional[date] = None) -> RecurringSubscription:
        today = today or timezone.localdate()
        subscription = RecurringSubscription.objects.select_for_update().get(pk=subscription.pk)
        cls._apply_status(subscription, Status.CANCELLED, today)
        subscription.save(update_fields=["status", "end_date", "updated_at"])
        return subscription

    @staticmethod
    def due_subscriptions(today: Optional[date] = None, days: Optional[int] = None) -> Dict[str, Any]:
        today = today or timezone.localdate()
        days = settings.BILLING_DUE_WINDOW_DAYS if days is None else days
        start, end = due_window(today, days)
        subscriptions = (
            RecurringSubscription.objects.filter(
                status=Status.ACTIVE,
                next_billing_date__gte=start,
                next_billing_date__lte=end,
            )
            .select_related("client", "service", "company")
            .order_by("next_billing_date", "id")
        )
        return {"subscriptions": subscriptions, "from": start, "to": end}

    @staticmethod
    def billable_subscriptions(today: date):
        return RecurringSubscription.objects.filter(
            status=Status.ACTIVE,
            next_billing_date__lte=today,
        ).select_related("client", "service", "company")

    @classmethod
    @transaction.atomic
    def bill_subscription(cls, subscription: RecurringSubscription, today: Optional[date] = None) -> Invoice:
        """Issue a draft invoice for the current cycle and move to the next one."""
        today = today or timezone.localdate()
        subscription = RecurringSubscription.objects.select_for_update().get(pk=subscription.pk)
        if subscription.status != Status.ACTIVE:
            raise ConflictError(
                f"Only active subscriptions can be billed; this one is {subscription.status}",
                code=ErrorCode.INVALID_STATE_TRANSITION,
            )

        billed_date = subscription.next_billing_date
        invoice = InvoiceService.create_invoice(
            subscription.company.user,
            {
                "client_id": subscription.client_id,
                "company_id": subscription.company_id,
                "amount": subscription.price,
                "currency": subscription.currency,
                "issue_date": today,
                "due_date": today + timedelta(days=settings.BILLING_DEFAULT_PAYMENT_TERMS_DAYS),
                "description": f"{subscription.service.name} ({billed_date:%B %Y})",
                "subscription": subscription,
            },
        )

        next_date = advance_billing_date(subscription.billing_day, billed_date)
        while next_date <= today:
            next_date = advance_billing_date(subscription.billing_day, next_date)
        subscription.next_billing_date = next_date
        subscription.save(update_fields=["next_billing_date", "updated_at"])

        logger.info(
            f"Subscription {subscription.pk} billed on invoice {invoice.invoice_number}, "
            f"next billing {subscription.next_billing_date}"
        )
        return invoice

    @classmethod
    def process_due_subscriptions(cls, today: date) -> Dict[str, Any]:
        """Bill every active subscription due on or before ``today``, isolating failures."""
        results = {"success": 0, "failed": 0, "invoices": [], "errors": []}
        for subscription in cls.billable_subscriptions(today):
            try:
                invoice = cls.bill_subscription(subscription, today=today)
            except APIError as e:
                results["failed"] += 1
                results["errors"].append({"subscription_id": subscription.pk, "error": e.message})
                logger.error(f"Subscription {subscription.pk} billing failed: {e.message}")
                continue
            results["success"] += 1
            results["invoices"].append(invoice.invoice_number)
        return results

    @classmethod
    def expire_advance_payments(cls, today: Optional[date] = None) -> List[RecurringSubscription]:
        today = today or timezone.localdate()
        expired = []
        candidates = RecurringSubscription.objects.filter(
            status=Status.PAID_IN_ADVANCE,
            advance_paid_until__lt=today,
        )
        for subscription in candidates:
            with transaction.atomic():
                cls._apply_status(subscription, Status.ACTIVE, today)
                subscription.next_billing_date = next_billing_date(
                    subscription.billing_day, subscription.advance_paid_until
                )
                subscription.save(update_fields=["status", "next_billing_date", "updated_at"])
            expired.append(subscription)
        return expired

    @staticmethod
    def filter_subscriptions(queryset, params: Dict[str, Any]):
        status = params.get("status")
        if status:
            queryset = queryset.filter(status=status.upper())
        else:
            queryset = queryset.exclude(status=Status.CANCELLED)
        client_id = params.get("client_id")
        if client_id:
            queryset = queryset.filter(client_id=client_id)
        return queryset
