from datetime import date, timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError
from django.utils import timezone

from billing.models import Invoice, RecurringSubscription, RevokedToken
from tests.factories import CompanyFactory, InvoiceFactory, OrderFactory, SubscriptionFactory, UserFactory


def run(*args):
    out = StringIO()
    call_command(*args, stdout=out)
    return out.getvalue()


@pytest.mark.django_db
class TestMarkOverdueInvoices:
    def test_marks_past_due(self):
        invoice = InvoiceFactory(status=Invoice.Status.SENT, issue_date=date(2025, 6, 1), due_date=date(2025, 7, 1))

        output = run("mark_overdue_invoices", "--date", "2025-07-15")

        assert "Marked 1 invoice(s) overdue as of 2025-07-15" in output
        invoice.refresh_from_db()
        assert invoice.status == Invoice.Status.OVERDUE

    def test_dry_run_changes_nothing(self):
        invoice = InvoiceFactory(status=Invoice.Status.SENT, issue_date=date(2025, 6, 1), due_date=date(2025, 7, 1))

        output = run("mark_overdue_invoices", "--date", "2025-07-15", "--dry-run")

        assert invoice.invoice_number in output
        invoice.refresh_from_db()
        assert invoice.status == Invoice.Status.SENT

    def test_bad_date(self):
        with pytest.raises(CommandError):
            run("mark_overdue_invoices", "--date", "15/07/2025")


@pytest.mark.django_db
class TestProcessRecurringBilling:
    def test_bills_subscriptions_and_orders(self):
        company = CompanyFactory(is_default=True)
        SubscriptionFactory(company=company, next_billing_date=date(2025, 8, 1))
        OrderFactory(company=company, start_date=date(2025, 8, 1), next_invoice_date=date(2025, 8, 1))
        OrderFactory(start_date=date(2025, 8, 1), next_invoice_date=date(2025, 8, 1))

        output = run("process_recurring_billing", "--date", "2025-08-01")

        assert "Subscriptions: 1 invoiced, 0 failed" in output
        assert "Orders: 1 invoiced, 1 failed" in output
        assert Invoice.objects.count() == 2

    def test_expires_advance_payments_first(self):
        subscription = SubscriptionFactory(
            billing_day=5,
            status=RecurringSubscription.Status.PAID_IN_ADVANCE,
            advance_paid_until=date(2025, 7, 31),
            next_billing_date=date(2025, 5, 5),
        )

        output = run("process_recurring_billing", "--date", "2025-08-05")

        assert "Advance payments expired: 1" in output
        subscription.refresh_from_db()
        assert subscription.status == RecurringSubscription.Status.ACTIVE
        assert subscription.next_billing_date == date(2025, 9, 5)
        assert Invoice.objects.filter(subscription=subscription).count() == 1

    def test_dry_run(self):
        SubscriptionFactory(next_billing_date=date(2025, 8, 1))

        output = run("process_recurring_billing", "--date", "2025-08-01", "--dry-run")

        assert "[DRY RUN] 1 subscription(s) due:" in output
        assert Invoice.objects.count() == 0


@pytest.mark.django_db
class TestPurgeRevokedTokens:
    @pytest.fixture
    def revocations(self):
        user = UserFactory()
        now = timezone.now()
        RevokedToken.objects.create(jti="expired-1", user=user, expires_at=now - timedelta(days=2))
        RevokedToken.objects.create(jti="expired-2", user=user, expires_at=now - timedelta(seconds=5))
        RevokedToken.objects.create(jti="live", user=user, expires_at=now + timedelta(days=7))

    def test_purges_expired(self, revocations):
        output = run("purge_revoked_tokens")

        assert "Purged 2 expired revocation(s)" in output
        assert list(RevokedToken.objects.values_list("jti", flat=True)) == ["live"]

    def test_dry_run(self, revocations):
        output = run("purge_revoked_tokens", "--dry-run")

        assert "[DRY RUN] 2 expired revocation(s) would be purged" in output
        assert RevokedToken.objects.count() == 3
