"""
Drain the mail queue.

Run from cron, e.g. every minute:
    python manage.py process_mail_jobs --limit 25
"""

from django.conf import settings
from django.core.management.base import BaseCommand

from apps.notifications.dispatcher import process_queue


class Command(BaseCommand):
    help = "Send queued notification emails."

    def add_arguments(self, parser):
        parser.add_argument(
            "--limit",
            type=int,
            default=settings.MAIL_QUEUE_BATCH_SIZE,
            help="Maximum number of jobs to process in this run.",
        )

    def handle(self, *args, **options):
        result = process_queue(limit=options["limit"])
        self.stdout.write(
            f"Processed {result['processed']} jobs "
            f"({result['success']} sent, {result['failed']} failed)"
        )
