from datetime import date
from decimal import Decimal

import pytest

from billing.models import Invoice
from billing.services import ReportsService
from tests.factories import ClientFactory, InvoiceFactory, OrderFactory, PaymentFactory, SubscriptionFactory


@pytest.fixture
def ledger(db):
    acme = ClientFactory(name="Acme")
    globex = ClientFactory(name="Globex")
    ClientFactory(name="Idle")

    paid = InvoiceFactory(client=acme, amount=Decimal("300.00"), status=Invoice.Status.PAID)
    PaymentFactory(invoice=paid, amount=Decimal("300.00"), paid_date=date(2025, 6, 15))

    open_invoice = InvoiceFactory(client=globex, amount=Decimal("200.00"), status=Invoice.Status.SENT)
    PaymentFactory(invoice=open_invoice, amount=Decimal("50.00"), paid_date=date(2025, 8, 2))

    InvoiceFactory(client=globex, amount=Decimal("999.00"), status=Invoice.Status.CANCELLED)
    OrderFactory(client=acme)
    SubscriptionFactory(client=globex)
    return {"acme": acme, "globex": globex}


@pytest.mark.django_db
class TestReports:
    def test_overview(self, ledger):
        report = ReportsService.overview()

        totals = report["totals"]
        assert totals["clients"] == 3
        assert totals["invoices"] == 3
        assert totals["payments"] == 2
        assert totals["revenue"] == Decimal("350.00")
        assert totals["outstanding"] == Decimal("150.00")
        assert totals["active_orders"] == 1
        assert totals["active_subscriptions"] == 1
        assert report["invoices_by_status"]["PAID"] == 1
        assert report["invoices_by_status"]["DRAFT"] == 0

    def test_revenue_breakdown(self, ledger):
        report = ReportsService.revenue(today=date(2025, 8, 20), months=3)

        assert report["monthly_breakdown"] == [
            {"month": "2025-06", "amount": Decimal("300.00")},
            {"month": "2025-07", "amount": Decimal("0.00")},
            {"month": "2025-08", "amount": Decimal("50.00")},
        ]
        assert report["period_total"] == Decimal("350.00")
        assert report["period"] == {"start": date(2025, 6, 1), "end": date(2025, 8, 20)}
        assert [c["name"] for c in report["top_clients"]] == ["Acme", "Globex"]

    def test_revenue_window_excludes_older_payments(self, ledger):
        report = ReportsService.revenue(today=date(2025, 8, 20), months=1)

        assert report["period_total"] == Decimal("50.00")
        assert report["total"] == Decimal("350.00")

    def test_client_statistics(self, ledger):
        report = ReportsService.clients(today=date(2025, 8, 20))

        assert report["total"] == 3
        assert report["with_outstanding_balance"] == 1
        assert report["average_invoice_value"] == Decimal("250.00")

        by_name = {row["name"]: row["stats"] for row in report["detailed"]}
        assert report["detailed"][0]["name"] == "Acme"
        assert by_name["Acme"]["total_paid"] == Decimal("300.00")
        assert by_name["Acme"]["order_count"] == 1
        assert by_name["Globex"]["invoice_count"] == 1
        assert by_name["Globex"]["outstanding"] == Decimal("150.00")
        assert by_name["Globex"]["active_subscriptions"] == 1
        assert by_name["Idle"]["invoice_count"] == 0

    def test_report_endpoints(self, api_client, ledger):
        for name in ("overview", "revenue", "clients"):
            response = api_client.get(f"/api/reports/{name}")
            assert response.status_code == 200
            assert response.json()["success"] is True

    def test_revenue_months_validated(self, api_client):
        assert api_client.get("/api/reports/revenue", {"months": 0}).status_code == 400
        response = api_client.get("/api/reports/revenue", {"months": 6})
        assert len(response.json()["data"]["monthly_breakdown"]) == 6
