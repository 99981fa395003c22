from django.core.management.base import BaseCommand, CommandError

from listings.processor import THRESHOLD_CONFIG_KEY
from listings.services import build_store
from listings.sync import SCAN_INTERVAL_CONFIG_KEY

INTEGER_KEYS = (THRESHOLD_CONFIG_KEY, SCAN_INTERVAL_CONFIG_KEY)


class Command(BaseCommand):
    help = "Show or change a stored monitor setting (stock_threshold, auto_scan_interval)."

    def add_arguments(self, parser):
        parser.add_argument('key', choices=INTEGER_KEYS)
        parser.add_argument('value', nargs='?', help="New value; omit to print the current one")

    def handle(self, *args, key, value=None, **options):
        store = build_store()
        if value is None:
            current = store.get_config(key)
            self.stdout.write(f"{key}={current if current is not None else '(unset)'}")
            return

        try:
            number = int(value)
        except ValueError:
            raise CommandError(f"{key} must be an integer, got {value!r}")
        if number < 0:
            raise CommandError(f"{key} must not be negative")

        store.set_config(key, number)
        self.stdout.write(self.style.SUCCESS(f"{key}={number}"))
