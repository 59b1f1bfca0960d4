"""
Reports Service - Business overview, revenue and client analytics.

Provides:
- Overview counts with 30-day activity
- Monthly revenue for a trailing window, zero-filled
- Per-client invoicing and payment statistics
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from dateutil.relativedelta import relativedelta
from django.db.models import Count, DecimalField, Sum, Value
from django.db.models.functions import Coalesce, TruncMonth
from django.utils import timezone

from ..models import (
    Client,
    Company,
    Invoice,
    Order,
    Payment,
    RecurringSubscription,
    ServiceLibrary,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")
RECENT_ACTIVITY_DAYS = 30
TOP_CLIENTS_LIMIT = 10


def _money_sum(field: str):
    return Coalesce(Sum(field), Value(ZERO), output_field=DecimalField(max_digits=14, decimal_places=2))


class ReportsService:

    @staticmethod
    def outstanding_amount() -> Decimal:
        """Amount still owed on sent and overdue invoices."""
        open_invoices = Invoice.objects.filter(status__in=[Invoice.Status.SENT, Invoice.Status.OVERDUE])
        invoiced = open_invoices.aggregate(total=_money_sum("amount"))["total"]
        paid = Payment.objects.filter(invoice__in=open_invoices).aggregate(total=_money_sum("amount"))["total"]
        return invoiced - paid

    @classmethod
    def overview(cls, today: Optional[date] = None) -> Dict[str, Any]:
        today = today or timezone.localdate()
        since = timezone.now() - timedelta(days=RECENT_ACTIVITY_DAYS)

        by_status = {status: 0 for status in Invoice.Status.values}
        for row in Invoice.objects.values("status").annotate(count=Count("id")):
            by_status[row["status"]] = row["count"]

        return {
            "totals": {
                "clients": Client.objects.count(),
                "orders": Order.objects.count(),
                "active_orders": Order.objects.filter(status=Order.Status.ACTIVE).count(),
                "invoices": sum(by_status.values()),
                "payments": Payment.objects.count(),
                "services": ServiceLibrary.objects.filter(is_active=True).count(),
                "companies": Company.objects.count(),
                "active_subscriptions": RecurringSubscription.objects.filter(
                    status=RecurringSubscription.Status.ACTIVE
                ).count(),
                "revenue": Payment.objects.aggregate(total=_money_sum("amount"))["total"],
                "outstanding": cls.outstanding_amount(),
            },
            "invoices_by_status": by_status,
            "recent_30_days": {
                "orders": Order.objects.filter(created_at__gte=since).count(),
                "invoices": Invoice.objects.filter(created_at__gte=since).count(),
                "payments": Payment.objects.filter(created_at__gte=since).count(),
            },
            "generated_at": timezone.now(),
        }

    @staticmethod
    def _month_keys(today: date, months: int) -> List[str]:
        first = today.replace(day=1) - relativedelta(months=months - 1)
        return [(first + relativedelta(months=i)).strftime("%Y-%m") for i in range(months)]

    @classmethod
    def revenue(cls, today: Optional[date] = None, months: int = 12) -> Dict[str, Any]:
        """Payments per month over the trailing ``months`` (current month included)."""
        today = today or timezone.localdate()
        keys = cls._month_keys(today, months)
        start = date.fromisoformat(f"{keys[0]}-01")

        monthly = {key: ZERO for key in keys}
        rows = (
            Payment.objects.filter(paid_date__gte=start, paid_date__lte=today)
            .annotate(month=TruncMonth("paid_date"))
            .values("month")
            .annotate(total=Sum("amount"))
            .order_by("month")
        )
        for row in rows:
            key = row["month"].strftime("%Y-%m")
            if key in monthly:
                monthly[key] = row["total"]

        top_clients = (
            Client.objects.annotate(revenue=_money_sum("invoices__payments__amount"))
            .filter(revenue__gt=0)
            .order_by("-revenue", "name")[:TOP_CLIENTS_LIMIT]
        )

        return {
            "total": Payment.objects.aggregate(total=_money_sum("amount"))["total"],
            "period_total": sum(monthly.values(), ZERO),
            "monthly_breakdown": [{"month": key, "amount": amount} for key, amount in monthly.items()],
            "top_clients": [
                {"id": c.pk, "name": c.name, "email": c.email, "revenue": c.revenue} for c in top_clients
            ],
            "period": {"start": start, "end": today},
            "generated_at": timezone.now(),
        }

    @staticmethod
    def _per_client(queryset, key: str = "client_id", **aggregates) -> Dict[int, Dict[str, Any]]:
        return {row[key]: row for row in queryset.values(key).annotate(**aggregates).order_by()}

    @classmethod
    def clients(cls, today: Optional[date] = None) -> Dict[str, Any]:
        today = today or timezone.localdate()

        invoice_stats = cls._per_client(
            Invoice.objects.exclude(status=Invoice.Status.CANCELLED),
            invoice_count=Count("id"),
            total_invoiced=_money_sum("amount"),
        )
        payment_stats = cls._per_client(
            Payment.objects.all(),
            key="invoice__client_id",
            payment_count=Count("id"),
            total_paid=_money_sum("amount"),
        )
        open_stats = cls._per_client(
            Invoice.objects.filter(status__in=[Invoice.Status.SENT, Invoice.Status.OVERDUE]),
            open_invoiced=_money_sum("amount"),
        )
        open_paid = cls._per_client(
            Payment.objects.filter(invoice__status__in=[Invoice.Status.SENT, Invoice.Status.OVERDUE]),
            key="invoice__client_id",
            paid=_money_sum("amount"),
        )
        order_stats = cls._per_client(Order.objects.all(), order_count=Count("id"))
        subscription_stats = cls._per_client(
            RecurringSubscription.objects.filter(status=RecurringSubscription.Status.ACTIVE),
            active_subscriptions=Count("id"),
        )

        detailed = []
        for client in Client.objects.order_by("name"):
            invoices = invoice_stats.get(client.pk, {})
            payments = payment_stats.get(client.pk, {})
            open_amount = open_stats.get(client.pk, {}).get("open_invoiced", ZERO)
            open_amount -= open_paid.get(client.pk, {}).get("paid", ZERO)
            detailed.append({
                "id": client.pk,
                "name": client.name,
                "email": client.email,
                "company": client.company,
                "created_at": client.created_at,
                "stats": {
                    "order_count": order_stats.get(client.pk, {}).get("order_count", 0),
                    "invoice_count": invoices.get("invoice_count", 0),
                    "payment_count": payments.get("payment_count", 0),
                    "total_invoiced": invoices.get("total_invoiced", ZERO),
                    "total_paid": payments.get("total_paid", ZERO),
                    "outstanding": open_amount,
                    "active_subscriptions": subscription_stats.get(client.pk, {}).get("active_subscriptions", 0),
                },
            })
        detailed.sort(key=lambda row: row["stats"]["total_paid"], reverse=True)

        totals = Invoice.objects.exclude(status=Invoice.Status.CANCELLED).aggregate(
            count=Count("id"), amount=_money_sum("amount")
        )
        average_invoice = (
            (totals["amount"] / totals["count"]).quantize(Decimal("0.01")) if totals["count"] else ZERO
        )
        month_start = today.replace(day=1)

        return {
            "total": len(detailed),
            "new_this_month": Client.objects.filter(created_at__date__gte=month_start).count(),
            "average_invoice_value": average_invoice,
            "average_revenue_per_client": (
                (sum((row["stats"]["total_paid"] for row in detailed), ZERO) / len(detailed)).quantize(
                    Decimal("0.01")
                )
                if detailed
                else ZERO
            ),
            "with_outstanding_balance": sum(1 for row in detailed if row["stats"]["outstanding"] > 0),
            "detailed": detailed,
            "generated_at": timezone.now(),
        }
