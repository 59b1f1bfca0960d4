import logging
from datetime import date

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from billing.services import InvoiceService

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Mark sent invoices past their due date as overdue"

    def add_arguments(self, parser):
        parser.add_argument(
            '--date',
            type=str,
            help='Reference date (YYYY-MM-DD). Defaults to today.',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='List the invoices that would be marked without changing them.',
        )

    def handle(self, *args, **options):
        target_date = timezone.localdate()
        if options['date']:
            try:
                target_date = date.fromisoformat(options['date'])
            except ValueError:
                raise CommandError(f"Invalid date format: {options['date']}")

        if options['dry_run']:
            candidates = InvoiceService.overdue_candidates(target_date)
            self.stdout.write(f"[DRY RUN] {candidates.count()} invoice(s) would be marked overdue:")
            for invoice in candidates:
                self.stdout.write(
                    f"  - {invoice.invoice_number}: {invoice.client.name}, "
                    f"due {invoice.due_date} ({invoice.amount} {invoice.currency})"
                )
            return

        count = InvoiceService.mark_overdue_invoices(target_date)
        self.stdout.write(self.style.SUCCESS(f"Marked {count} invoice(s) overdue as of {target_date}"))
