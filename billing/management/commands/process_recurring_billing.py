import logging
from datetime import date

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from billing.models import RecurringSubscription
from billing.services import OrderService, SubscriptionService

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Expire advance payments, bill due subscriptions and generate invoices for due orders"

    def add_arguments(self, parser):
        parser.add_argument(
            '--date',
            type=str,
            help='Target date for processing (YYYY-MM-DD). Defaults to today.',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be processed without creating invoices.',
        )

    def handle(self, *args, **options):
        target_date = timezone.localdate()
        if options['date']:
            try:
                target_date = date.fromisoformat(options['date'])
            except ValueError:
                raise CommandError(f"Invalid date format: {options['date']}")

        self.stdout.write(f"Processing recurring billing for {target_date}")

        if options['dry_run']:
            self._dry_run(target_date)
            return

        expired = SubscriptionService.expire_advance_payments(target_date)
        self.stdout.write(f"Advance payments expired: {len(expired)}")

        subscription_results = SubscriptionService.process_due_subscriptions(target_date)
        order_results = OrderService.process_due_orders(target_date)

        for label, results in (("Subscriptions", subscription_results), ("Orders", order_results)):
            self.stdout.write(self.style.SUCCESS(
                f"{label}: {results['success']} invoiced, {results['failed']} failed"
            ))
            for error in results['errors']:
                self.stdout.write(self.style.WARNING(f"  - {error}"))

        failed = subscription_results['failed'] + order_results['failed']
        if failed:
            logger.warning(f"Recurring billing for {target_date} finished with {failed} failure(s)")

    def _dry_run(self, target_date):
        expiring = RecurringSubscription.objects.filter(
            status=RecurringSubscription.Status.PAID_IN_ADVANCE,
            advance_paid_until__lt=target_date,
        )
        self.stdout.write(f"[DRY RUN] {expiring.count()} advance payment(s) would expire")

        subscriptions = SubscriptionService.billable_subscriptions(target_date)
        self.stdout.write(f"[DRY RUN] {subscriptions.count()} subscription(s) due:")
        for subscription in subscriptions:
            self.stdout.write(
                f"  - Subscription #{subscription.pk}: {subscription.client.name} "
                f"{subscription.price} {subscription.currency} (due {subscription.next_billing_date})"
            )

        orders = OrderService.due_orders(target_date)
        self.stdout.write(f"[DRY RUN] {orders.count()} order(s) due:")
        for order in orders:
            self.stdout.write(
                f"  - Order #{order.pk}: {order.client.name} "
                f"{order.amount} {order.currency} (due {order.next_invoice_date})"
            )
