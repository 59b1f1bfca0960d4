from datetime import date, timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from billing.billing_cycle import next_billing_date
from billing.models import Invoice, RecurringSubscription
from billing.services import SubscriptionService
from billing.validation import ConflictError
from tests.factories import ClientFactory, ServiceFactory, SubscriptionFactory

Status = RecurringSubscription.Status


@pytest.mark.django_db
class TestSubscriptionAPI:
    def test_create_computes_next_billing_date(self, api_client, billing_client, company):
        service = ServiceFactory(default_price=Decimal("300.00"))
        response = api_client.post(
            "/api/subscriptions",
            {
                "client_id": billing_client.pk,
                "company_id": company.pk,
                "service_id": service.pk,
                "billing_day": 10,
                "start_date": "2025-07-10",
            },
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["next_billing_date"] == "2025-08-10"
        assert data["price"] == "300.00"
        assert data["status"] == "ACTIVE"
        assert data["service_name"] == service.name

    def test_billing_day_out_of_range(self, api_client, billing_client, company):
        service = ServiceFactory()
        response = api_client.post(
            "/api/subscriptions",
            {
                "client_id": billing_client.pk,
                "company_id": company.pk,
                "service_id": service.pk,
                "billing_day": 32,
            },
        )
        assert response.status_code == 400

    def test_inactive_service_rejected(self, api_client, billing_client, company):
        service = ServiceFactory(is_active=False)
        response = api_client.post(
            "/api/subscriptions",
            {"client_id": billing_client.pk, "company_id": company.pk, "service_id": service.pk, "billing_day": 1},
        )
        assert response.status_code == 400

    def test_paid_in_advance_needs_date(self, api_client, billing_client, company):
        service = ServiceFactory()
        response = api_client.post(
            "/api/subscriptions",
            {
                "client_id": billing_client.pk,
                "company_id": company.pk,
                "service_id": service.pk,
                "billing_day": 1,
                "status": "PAID_IN_ADVANCE",
            },
        )
        assert response.status_code == 400
        assert response.json()["details"]["advance_paid_until"]

    def test_due_window(self, api_client, company):
        today = timezone.localdate()
        soon = SubscriptionFactory(company=company, next_billing_date=today + timedelta(days=3))
        SubscriptionFactory(company=company, next_billing_date=today + timedelta(days=9))
        SubscriptionFactory(company=company, next_billing_date=today + timedelta(days=2), status=Status.PAUSED)

        response = api_client.get("/api/subscriptions/due", {"days": 5})
        data = response.json()["data"]
        assert response.status_code == 200
        assert data["total_due"] == 1
        assert data["subscriptions"][0]["id"] == soon.pk
        assert data["total_amount"] == "250.00"
        assert data["from"] == today.isoformat()
        assert data["to"] == (today + timedelta(days=5)).isoformat()

        response = api_client.get("/api/subscriptions/due", {"days": 10})
        assert response.json()["data"]["total_due"] == 2

    def test_due_rejects_negative_days(self, api_client):
        response = api_client.get("/api/subscriptions/due", {"days": -1})
        assert response.status_code == 400

    def test_delete_cancels(self, api_client, company):
        subscription = SubscriptionFactory(company=company)

        response = api_client.delete(f"/api/subscriptions/{subscription.pk}")

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "CANCELLED"
        assert response.json()["data"]["end_date"] == timezone.localdate().isoformat()

        listed = api_client.get("/api/subscriptions").json()["data"]
        assert subscription.pk not in [s["id"] for s in listed]

        cancelled = api_client.get("/api/subscriptions", {"status": "CANCELLED"}).json()["data"]
        assert [s["id"] for s in cancelled] == [subscription.pk]

        detail = api_client.get(f"/api/subscriptions/{subscription.pk}")
        assert detail.status_code == 200

    def test_cancelled_is_read_only(self, api_client, company):
        subscription = SubscriptionFactory(company=company, status=Status.CANCELLED)
        response = api_client.patch(f"/api/subscriptions/{subscription.pk}", {"price": "1.00"})
        assert response.status_code == 409

    def test_change_billing_day(self, api_client, company):
        subscription = SubscriptionFactory(company=company, billing_day=10)
        response = api_client.patch(f"/api/subscriptions/{subscription.pk}", {"billing_day": 20})

        assert response.status_code == 200
        expected = next_billing_date(20, timezone.localdate())
        assert response.json()["data"]["next_billing_date"] == expected.isoformat()


@pytest.mark.django_db
class TestSubscriptionBilling:
    def test_due_subscriptions_window(self):
        today = date(2025, 8, 5)
        inside = SubscriptionFactory(next_billing_date=date(2025, 8, 10))
        SubscriptionFactory(next_billing_date=date(2025, 8, 14))

        result = SubscriptionService.due_subscriptions(today=today, days=5)
        assert list(result["subscriptions"]) == [inside]
        assert result["to"] == date(2025, 8, 10)

        result = SubscriptionService.due_subscriptions(today=today, days=10)
        assert result["subscriptions"].count() == 2

    def test_bill_subscription(self, settings):
        settings.BILLING_DEFAULT_PAYMENT_TERMS_DAYS = 14
        subscription = SubscriptionFactory(
            billing_day=10, start_date=date(2025, 7, 10), next_billing_date=date(2025, 8, 10)
        )

        invoice = SubscriptionService.bill_subscription(subscription, today=date(2025, 8, 10))

        assert invoice.subscription == subscription
        assert invoice.amount == subscription.price
        assert invoice.status == Invoice.Status.DRAFT
        assert invoice.due_date == date(2025, 8, 24)
        assert subscription.service.name in invoice.description
        subscription.refresh_from_db()
        assert subscription.next_billing_date == date(2025, 9, 10)

    def test_late_billing_skips_past_cycles(self):
        subscription = SubscriptionFactory(
            billing_day=31, start_date=date(2025, 1, 1), next_billing_date=date(2025, 1, 31)
        )
        SubscriptionService.bill_subscription(subscription, today=date(2025, 3, 5))

        subscription.refresh_from_db()
        assert subscription.next_billing_date == date(2025, 3, 31)

    def test_paused_subscription_not_billed(self):
        subscription = SubscriptionFactory(status=Status.PAUSED, next_billing_date=date(2025, 8, 1))
        with pytest.raises(ConflictError):
            SubscriptionService.bill_subscription(subscription, today=date(2025, 8, 1))

    def test_process_due_subscriptions(self):
        client = ClientFactory()
        SubscriptionFactory.create_batch(2, client=client, next_billing_date=date(2025, 8, 1))
        SubscriptionFactory(client=client, next_billing_date=date(2025, 8, 20))

        results = SubscriptionService.process_due_subscriptions(date(2025, 8, 1))

        assert results["success"] == 2
        assert results["failed"] == 0
        assert len(results["invoices"]) == 2
        assert Invoice.objects.filter(client=client).count() == 2

    def test_expire_advance_payments(self):
        subscription = SubscriptionFactory(
            billing_day=10,
            status=Status.PAID_IN_ADVANCE,
            advance_paid_until=date(2025, 7, 31),
            next_billing_date=date(2025, 6, 10),
        )
        still_prepaid = SubscriptionFactory(status=Status.PAID_IN_ADVANCE, advance_paid_until=date(2025, 12, 31))

        expired = SubscriptionService.expire_advance_payments(today=date(2025, 8, 1))

        assert expired == [subscription]
        subscription.refresh_from_db()
        still_prepaid.refresh_from_db()
        assert subscription.status == Status.ACTIVE
        assert subscription.next_billing_date == date(2025, 8, 10)
        assert still_prepaid.status == Status.PAID_IN_ADVANCE
