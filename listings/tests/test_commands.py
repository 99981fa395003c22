from io import StringIO

from django.core.management import CommandError, call_command
from django.test import TestCase

from listings.models import MonitorSetting


class TestMonitorConfigCommand(TestCase):
    def run_command(self, *args):
        out = StringIO()
        call_command('monitor_config', *args, stdout=out)
        return out.getvalue().strip()

    def test_unset_value(self):
        self.assertEqual(self.run_command('stock_threshold'), "stock_threshold=(unset)")

    def test_set_then_show(self):
        self.run_command('stock_threshold', '8')

        self.assertEqual(self.run_command('stock_threshold'), "stock_threshold=8")
        self.assertEqual(MonitorSetting.objects.get(key='stock_threshold').value, "8")

    def test_scan_interval(self):
        self.run_command('auto_scan_interval', '12')
        self.assertEqual(MonitorSetting.objects.get(key='auto_scan_interval').value, "12")

    def test_rejects_non_integer(self):
        with self.assertRaises(CommandError):
            self.run_command('stock_threshold', 'lots')
        self.assertFalse(MonitorSetting.objects.exists())

    def test_rejects_unknown_key(self):
        with self.assertRaises(CommandError):
            self.run_command('colour', '1')
