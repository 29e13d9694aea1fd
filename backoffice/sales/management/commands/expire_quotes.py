from datetime import date

from django.core.management.base import BaseCommand, CommandError

from backoffice.core.clock import FixedClock
from backoffice.sales.services import expire_quotes


class Command(BaseCommand):
    help = 'Mark open quotes past their validity date as EXPIRED'

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

        expired = expire_quotes(clock=clock)
        for quote in expired:
            self.stdout.write(f'  {quote.quote_number} (valid until {quote.valid_until})')
        self.stdout.write(self.style.SUCCESS(f'Expired {len(expired)} quote(s)'))
