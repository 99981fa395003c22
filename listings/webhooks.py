import logging
import re
import time

from django.conf import settings
from django.db import DatabaseError
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from listings.exceptions import WebhookValidationError

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ('_id', 'topic', 'resource', 'user_id', 'application_id')

SUPPORTED_TOPICS = ('stock-location', 'stock-locations', 'items', 'items_prices')

# Known topics we receive but do not act on. Accepting them with 200 stops
# the platform from retrying them forever.
IGNORED_TOPICS = (
    'orders_v2',
    'shipments',
    'messages',
    'price_suggestion',
    'fbm_stock_operations',
    'questions',
)

DEFAULT_ALLOWED_IPS = ('54.88.218.97', '18.215.140.160', '18.213.114.129', '18.206.34.84')

HEADER_SNAPSHOT = ('content-type', 'user-agent', 'x-forwarded-for')

RESOURCE_RE = re.compile(r'/(user-products|items)/([^/]+)')


def extract_product_id(resource):
    match = RESOURCE_RE.search(resource or '')
    return match.group(2) if match else None


def _parse_timestamp(value):
    if not value or not isinstance(value, str):
        return None
    try:
        return parse_datetime(value)
    except ValueError:
        return None


class WebhookIngestor:
    """Request-path half of webhook handling: validate, record, hand off.

    ``dispatch`` is called with the webhook id once the event is stored; it
    must not block (the view passes a Celery enqueue).
    """

    def __init__(self, store, dispatch, allowed_ips=None, mock_mode=None):
        self.store = store
        self.dispatch = dispatch
        self.allowed_ips = tuple(allowed_ips or getattr(settings, 'WEBHOOK_ALLOWED_IPS', DEFAULT_ALLOWED_IPS))
        if mock_mode is None:
            mock_mode = getattr(settings, 'MARKETPLACE_MOCK_MODE', False) or settings.DEBUG
        self.mock_mode = mock_mode

    def validate_origin(self, client_ip, headers):
        if self.mock_mode:
            logger.debug("Mock mode: accepting webhook from %s", client_ip)
            return 'development_mode'

        content_type = headers.get('content-type') or ''
        if 'application/json' not in content_type:
            raise WebhookValidationError(
                'invalid_content_type', http_code=403,
                details=f"Expected application/json, got {content_type or 'nothing'}",
            )

        if client_ip in self.allowed_ips:
            return 'authorized_ip'

        logger.warning("Unrecognized webhook IP %s, accepting anyway", client_ip)
        return 'unknown_ip_allowed'

    def validate_payload(self, payload):
        """Returns True for supported topics, False for ignored ones."""
        if not isinstance(payload, dict):
            raise WebhookValidationError('invalid_payload')

        missing = [field for field in REQUIRED_FIELDS if not payload.get(field)]
        if missing:
            logger.error("Webhook missing required fields: %s", ', '.join(missing))
            raise WebhookValidationError('missing_required_fields', missing=missing)

        topic = payload['topic']
        if topic in SUPPORTED_TOPICS:
            return True
        if topic in IGNORED_TOPICS:
            return False

        logger.error("Unsupported webhook topic: %s", topic)
        raise WebhookValidationError('unsupported_topic', topic=topic, supported=list(SUPPORTED_TOPICS))

    def build_event(self, payload, client_ip, headers):
        attempts = payload.get('attempts')
        return {
            'webhook_id': str(payload['_id']),
            'topic': payload['topic'],
            'resource': payload['resource'],
            'user_id': str(payload['user_id']),
            'application_id': str(payload['application_id']),
            'product_id': extract_product_id(payload['resource']),
            'processed': False,
            'received_at': timezone.now(),
            'sent_at': _parse_timestamp(payload.get('sent')),
            'webhook_received_at': _parse_timestamp(payload.get('received')),
            'attempts': attempts if isinstance(attempts, int) and attempts > 0 else 1,
            'client_ip': client_ip or '',
            'request_headers': {name: headers.get(name) for name in HEADER_SNAPSHOT},
        }

    def ingest(self, payload, client_ip, headers):
        started = time.monotonic()
        headers = {k.lower(): v for k, v in (headers or {}).items()}

        try:
            self.validate_origin(client_ip, headers)
        except WebhookValidationError as exc:
            logger.warning("Rejected webhook origin %s: %s", client_ip, exc.reason)
            return 403, {'success': False, 'error': 'Unauthorized origin', 'details': exc.as_dict()}

        try:
            supported = self.validate_payload(payload)
        except WebhookValidationError as exc:
            return exc.http_code, {'success': False, 'error': 'Invalid webhook data', 'details': exc.as_dict()}

        webhook_id = str(payload['_id'])
        if not supported:
            logger.info("Ignoring webhook %s (topic %s)", webhook_id, payload['topic'])
            return 200, {
                'success': True,
                'message': 'Webhook received but ignored (topic not relevant for stock monitoring)',
                'webhook_id': webhook_id,
                'ignored': True,
            }

        try:
            _, created = self.store.save_webhook_event(self.build_event(payload, client_ip, headers))
        except DatabaseError as exc:
            logger.error("Failed to save webhook %s: %s", webhook_id, exc)
            return 500, {'success': False, 'error': 'Failed to save webhook', 'message': str(exc)}

        if not created:
            return 200, {
                'success': True,
                'message': 'Webhook already received',
                'webhook_id': webhook_id,
                'duplicate': True,
            }

        self.dispatch(webhook_id)

        elapsed_ms = int((time.monotonic() - started) * 1000)
        logger.info("Webhook %s stored and queued in %dms", webhook_id, elapsed_ms)
        return 200, {
            'success': True,
            'message': 'Webhook received and queued for processing',
            'webhook_id': webhook_id,
            'processing_time_ms': elapsed_ms,
        }

    def status(self):
        return {
            'supported_topics': list(SUPPORTED_TOPICS),
            'ignored_topics': list(IGNORED_TOPICS),
            'allowed_ips': list(self.allowed_ips),
            'total_webhooks': self.store.count_webhooks(),
            'pending_webhooks': self.store.count_pending_webhooks(),
            'timestamp': timezone.now().isoformat(),
        }
