"""Cancel online-payment orders that were never paid.

Meant to run periodically (cron / systemd timer). Orders paid by ONLINE_PAYMENT,
ESEWA or NPS that are still PENDING and UNPAID after the cutoff are moved to
CANCELLED through the same transition path the admin API uses.

Usage:
  python manage.py cancel_stale_orders
  python manage.py cancel_stale_orders --minutes 30
"""

from datetime import timedelta

from django.conf import settings
from django.core.management.base import BaseCommand

from orders.services import OrderService


class Command(BaseCommand):
    help = 'Cancel pending, unpaid gateway orders older than the cutoff.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--minutes',
            type=int,
            default=settings.STALE_ORDER_MINUTES,
            help='Age in minutes after which a pending unpaid order is cancelled.',
        )

    def handle(self, *args, **options):
        minutes = options['minutes']
        cancelled = OrderService(gateways={}).cancel_stale_orders(older_than=timedelta(minutes=minutes))
        self.stdout.write(self.style.SUCCESS(f'Cancelled {cancelled} stale order(s) older than {minutes} minutes.'))
