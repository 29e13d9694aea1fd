"""
Management command to flag unpaid invoices past their due date.
Meant to run daily from cron; re-running on the same day changes nothing.
"""
from datetime import date

from django.core.management.base import BaseCommand, CommandError

from backoffice.billing.services import mark_overdue_invoices
from backoffice.core.clock import FixedClock


class Command(BaseCommand):
    help = 'Flag sent and partially paid invoices that are past their due date as OVERDUE'

    def add_arguments(self, parser):
        parser.add_argument(
            '--date',
            help='Evaluate as of this day (YYYY-MM-DD) instead of today',
        )

    def handle(self, *args, **options):
        clock = None
        if options.get('date'):
            try:
                clock = FixedClock(date.fromisoformat(options['date']))
            except ValueError:
                raise CommandError(f"Invalid --date '{options['date']}', expected YYYY-MM-DD")

        updated = mark_overdue_invoices(clock=clock)
        for invoice in updated:
            self.stdout.write(f'  {invoice.invoice_number} due {invoice.due_date} ({invoice.amount_due} outstanding)')
        self.stdout.write(self.style.SUCCESS(f'Marked {len(updated)} invoice(s) overdue'))
