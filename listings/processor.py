import logging
from datetime import timedelta

from django.conf import settings
from django.utils import timezone

from listings.models import StockAlert
from listings.transforms import changed_fields, map_product

logger = logging.getLogger(__name__)

ALERT_FIELDS = ('available_quantity', 'price', 'status')
THRESHOLD_CONFIG_KEY = 'stock_threshold'
CLAIM_TIMEOUT_SECONDS = getattr(settings, 'WEBHOOK_CLAIM_TIMEOUT_SECONDS', 600)


def classify_alert(previous, new, threshold):
    """Alert type for a quantity change, or None when quantity is unchanged."""
    if previous == new:
        return None
    if new <= threshold:
        return StockAlert.AlertType.LOW_STOCK
    if new < previous:
        return StockAlert.AlertType.STOCK_DECREASE
    return StockAlert.AlertType.STOCK_INCREASE


def resolve_threshold(store):
    """Low-stock threshold: stored config wins over the STOCK_THRESHOLD setting."""
    configured = store.get_config(THRESHOLD_CONFIG_KEY)
    if configured is not None:
        try:
            return int(configured)
        except ValueError:
            logger.warning("Ignoring non-numeric %s config: %r", THRESHOLD_CONFIG_KEY, configured)
    return getattr(settings, 'STOCK_THRESHOLD', 5)


def field_changes(pre_image, record):
    if pre_image is None:
        return {}
    return {
        field: {'previous': pre_image.get(field), 'new': record.get(field)}
        for field in ALERT_FIELDS
        if pre_image.get(field) != record.get(field)
    }


class WebhookProcessor:
    """Applies a stored webhook event: re-fetch, diff, alert, write, mark."""

    def __init__(self, client, store, clock=timezone.now, threshold=None, notifier=None):
        self.client = client
        self.store = store
        self.clock = clock
        self.threshold = threshold
        self.notifier = notifier

    def get_threshold(self):
        if self.threshold is not None:
            return self.threshold
        return resolve_threshold(self.store)

    def process(self, webhook_id):
        logger.info("Processing webhook %s", webhook_id)

        stale_before = self.clock() - timedelta(seconds=CLAIM_TIMEOUT_SECONDS)
        if not self.store.claim_webhook(webhook_id, stale_before):
            logger.warning("Webhook %s not found, already processed or claimed by another worker", webhook_id)
            return None
        event = self.store.get_pending_webhook(webhook_id)

        logger.info(
            "Webhook %s: topic=%s product=%s user=%s",
            webhook_id, event['topic'], event['product_id'], event['user_id'],
        )

        try:
            result = self.apply(event)
        except Exception as exc:
            logger.exception("Webhook %s failed: %s", webhook_id, exc)
            error = {
                'error': str(exc),
                'error_type': type(exc).__name__,
                'timestamp': self.clock().isoformat(),
            }
            self.store.mark_webhook_processed(webhook_id, False, error)
            return error

        if not self.store.mark_webhook_processed(webhook_id, True, result):
            logger.warning("Webhook %s was marked by another worker first", webhook_id)
        logger.info("Webhook %s processed: %s", webhook_id, result['action'])
        return result

    def apply(self, event):
        item_id = event['product_id']
        user_id = event['user_id']
        if not item_id:
            raise ValueError(f"Could not extract product id from resource {event['resource']!r}")

        logger.info("Step 1/5: reading stored state of %s", item_id)
        pre_image = self.store.get_product(item_id, user_id)

        logger.info("Step 2/5: fetching %s from catalog", item_id)
        raw = self.client.get_product(item_id, user_id)
        record = map_product(raw, user_id, self.clock(), source='webhook')

        logger.info("Step 3/5: computing changes for %s", item_id)
        changes = field_changes(pre_image, record)
        updated_fields = changed_fields(record, pre_image) if pre_image else list(record)

        logger.info("Step 4/5: evaluating stock alert for %s", item_id)
        alert_type = self.record_alert(pre_image, record)

        logger.info("Step 5/5: saving %s (%d fields changed)", item_id, len(updated_fields))
        self.store.upsert_product(record)

        return {
            'action': 'product_updated' if pre_image else 'product_created',
            'product_id': item_id,
            'user_id': user_id,
            'resource': event['resource'],
            'final_stock': record['available_quantity'],
            'changes': changes,
            'updated_fields': updated_fields,
            'alert': alert_type,
        }

    def record_alert(self, pre_image, record):
        if pre_image is None:
            return None

        previous = pre_image['available_quantity']
        new = record['available_quantity']
        threshold = self.get_threshold()
        alert_type = classify_alert(previous, new, threshold)
        if alert_type is None:
            return None

        alert = self.store.save_stock_alert({
            'user_id': record['user_id'],
            'item_id': record['item_id'],
            'alert_type': alert_type,
            'previous_stock': previous,
            'new_stock': new,
            'threshold': threshold,
            'title': record['title'],
            'seller_sku': record['seller_sku'],
        })
        logger.info("Stock alert %s for %s: %s -> %s", alert_type, record['item_id'], previous, new)
        if alert_type == StockAlert.AlertType.LOW_STOCK and self.notifier is not None:
            self.notifier.notify_low_stock(alert, record)
        return str(alert_type)
