import logging
from abc import ABC, abstractmethod

import requests
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.core.mail import send_mail

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = 'https://api.telegram.org'
REQUEST_TIMEOUT = 10


def low_stock_message(alert, product):
    subject = f"Low stock alert: {alert['item_id']}"
    lines = [
        f"LOW STOCK: \"{product.get('title') or alert['item_id']}\" ({alert['item_id']}) "
        f"has {alert['new_stock']} units left (was {alert['previous_stock']}, threshold {alert['threshold']}).",
    ]
    if product.get('seller_sku'):
        lines.append(f"SKU: {product['seller_sku']}")
    if product.get('price') is not None:
        lines.append(f"Price: {product['price']}")
    if product.get('permalink'):
        lines.append(product['permalink'])
    return subject, '\n'.join(lines)


class BaseNotifier(ABC):
    name = None

    @abstractmethod
    def send(self, subject, message):
        ...


class ConsoleNotifier(BaseNotifier):
    name = 'console'

    def send(self, subject, message):
        logger.warning("NOTIFICATION: %s", message)


class EmailNotifier(BaseNotifier):
    name = 'email'

    def __init__(self, recipients=None, from_email=None):
        self.recipients = list(recipients or getattr(settings, 'ALERT_EMAIL_RECIPIENTS', []))
        self.from_email = from_email or settings.DEFAULT_FROM_EMAIL
        if not self.recipients:
            raise ImproperlyConfigured("ALERT_EMAIL_RECIPIENTS must be set to send email alerts")

    def send(self, subject, message):
        send_mail(subject, message, self.from_email, self.recipients, fail_silently=False)
        logger.info("Alert email sent to %d recipients", len(self.recipients))


class TelegramNotifier(BaseNotifier):
    name = 'telegram'

    def __init__(self, bot_token=None, chat_id=None, session=None):
        self.bot_token = bot_token or getattr(settings, 'TELEGRAM_BOT_TOKEN', '')
        self.chat_id = chat_id or getattr(settings, 'TELEGRAM_CHAT_ID', '')
        if not (self.bot_token and self.chat_id):
            raise ImproperlyConfigured("TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID must be set to send Telegram alerts")
        self.session = session or requests.Session()

    def send(self, subject, message):
        response = self.session.post(
            f"{TELEGRAM_API_URL}/bot{self.bot_token}/sendMessage",
            json={'chat_id': self.chat_id, 'text': message},
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()
        logger.info("Alert sent to Telegram chat %s", self.chat_id)


CHANNELS = {
    ConsoleNotifier.name: ConsoleNotifier,
    EmailNotifier.name: EmailNotifier,
    TelegramNotifier.name: TelegramNotifier,
}


class AlertNotifier:
    """Fans low-stock alerts out to every configured channel.

    A channel that fails is logged and skipped; the alert row is already
    stored by the time notifications go out.
    """

    def __init__(self, channels):
        self.channels = list(channels)

    @classmethod
    def from_settings(cls, names=None):
        names = names if names is not None else getattr(settings, 'ALERT_CHANNELS', ['console'])
        channels = []
        for name in names:
            if name not in CHANNELS:
                raise ImproperlyConfigured(f"Unknown alert channel {name!r}, expected one of {sorted(CHANNELS)}")
            channels.append(CHANNELS[name]())
        return cls(channels)

    def notify_low_stock(self, alert, product):
        subject, message = low_stock_message(alert, product)
        delivered = []
        for channel in self.channels:
            try:
                channel.send(subject, message)
            except (requests.RequestException, OSError) as exc:
                logger.error("Alert channel %s failed for %s: %s", channel.name, alert['item_id'], exc)
                continue
            delivered.append(channel.name)
        return delivered
