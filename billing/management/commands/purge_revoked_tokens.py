import logging

from django.core.management.base import BaseCommand

from billing.services import AuthService

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Delete revocation records for tokens that have already expired"

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Count the records that would be deleted without deleting them.',
        )

    def handle(self, *args, **options):
        if options['dry_run']:
            count = AuthService.expired_revocations().count()
            self.stdout.write(f"[DRY RUN] {count} expired revocation(s) would be purged")
            return

        count = AuthService.purge_expired_revocations()
        self.stdout.write(self.style.SUCCESS(f"Purged {count} expired revocation(s)"))
