"""
Django management command to delete idempotency records past their
retention window. The same work runs hourly as a Celery beat task.
"""

from django.core.management.base import BaseCommand

from core_backend.models import IdempotencyRecord


class Command(BaseCommand):
    help = 'Delete expired idempotency records'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Only report how many records would be deleted',
        )

    def handle(self, *args, **options):
        if options['dry_run']:
            from django.utils import timezone

            count = IdempotencyRecord.objects.filter(expires_at__lte=timezone.now()).count()
            self.stdout.write(f'{count} expired idempotency record(s) would be deleted')
            return

        deleted = IdempotencyRecord.objects.purge_expired()
        self.stdout.write(self.style.SUCCESS(f'Deleted {deleted} expired idempotency record(s)'))
