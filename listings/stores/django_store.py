import logging
from datetime import timedelta

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from listings.models import MonitorSetting, Product, ScanControl, StockAlert, WebhookEvent
from listings.transforms import TRACKED_FIELDS

from .base import BaseProductStore

logger = logging.getLogger(__name__)

PRODUCT_KEY_FIELDS = ('item_id', 'user_id')
COMPARISON_FIELDS = ('item_id',) + TRACKED_FIELDS


def _as_dict(instance):
    return {f.attname: getattr(instance, f.attname) for f in instance._meta.concrete_fields}


class DjangoProductStore(BaseProductStore):
    def get_products(self, user_id, filters=None):
        filters = filters or {}
        qs = Product.objects.filter(user_id=str(user_id)).order_by('item_id')
        if filters.get('status'):
            qs = qs.filter(status=filters['status'])
        if filters.get('max_quantity') is not None:
            qs = qs.filter(available_quantity__lte=filters['max_quantity'])
        if filters.get('limit'):
            qs = qs[:filters['limit']]
        return list(qs.values())

    def count_products(self, user_id):
        return Product.objects.filter(user_id=str(user_id)).count()

    def get_product(self, item_id, user_id):
        return Product.objects.filter(item_id=item_id, user_id=str(user_id)).values().first()

    def get_products_for_comparison(self, item_ids, user_id):
        return list(
            Product.objects
            .filter(user_id=str(user_id), item_id__in=list(item_ids))
            .values(*COMPARISON_FIELDS)
        )

    def get_stored_ids(self, user_id):
        return set(Product.objects.filter(user_id=str(user_id)).values_list('item_id', flat=True))

    def upsert_product(self, record):
        defaults = {k: v for k, v in record.items() if k not in PRODUCT_KEY_FIELDS}
        product, created = Product.objects.update_or_create(
            item_id=record['item_id'],
            user_id=str(record['user_id']),
            defaults=defaults,
        )
        logger.debug("Upserted product %s (%s)", product.item_id, "created" if created else "updated")
        return _as_dict(product)

    def upsert_multiple_products(self, records):
        if not records:
            return 0

        # bulk_create needs one update_fields list per call
        groups = {}
        for record in records:
            groups.setdefault(tuple(sorted(record)), []).append(record)

        with transaction.atomic():
            for keys, group in groups.items():
                update_fields = [k for k in keys if k not in PRODUCT_KEY_FIELDS]
                Product.objects.bulk_create(
                    [Product(**record) for record in group],
                    update_conflicts=True,
                    unique_fields=list(PRODUCT_KEY_FIELDS),
                    update_fields=update_fields,
                )
        return len(records)

    def update_products_changed_fields(self, partials):
        updated = 0
        with transaction.atomic():
            for partial in partials:
                fields = {k: v for k, v in partial.items() if k not in PRODUCT_KEY_FIELDS}
                updated += Product.objects.filter(
                    item_id=partial['item_id'], user_id=str(partial['user_id']),
                ).update(**fields)
        return updated

    def delete_products(self, item_ids, user_id):
        deleted, _ = Product.objects.filter(user_id=str(user_id), item_id__in=list(item_ids)).delete()
        return deleted

    def save_webhook_event(self, event):
        defaults = {k: v for k, v in event.items() if k != 'webhook_id'}
        instance, created = WebhookEvent.objects.get_or_create(
            webhook_id=event['webhook_id'], defaults=defaults,
        )
        if not created:
            logger.warning("Duplicate webhook ignored: %s", event['webhook_id'])
        return _as_dict(instance), created

    def _claimable(self, stale_before=None):
        claimable = Q(processing_status=WebhookEvent.ProcessingStatus.PENDING)
        if stale_before is not None:
            claimable |= Q(
                processing_status=WebhookEvent.ProcessingStatus.PROCESSING,
                claimed_at__lt=stale_before,
            )
        return WebhookEvent.objects.filter(claimable, processed=False)

    def claim_webhook(self, webhook_id, stale_before=None):
        claimed = self._claimable(stale_before).filter(webhook_id=webhook_id).update(
            processing_status=WebhookEvent.ProcessingStatus.PROCESSING,
            claimed_at=timezone.now(),
        )
        return claimed == 1

    def get_pending_webhook(self, webhook_id):
        return WebhookEvent.objects.filter(webhook_id=webhook_id, processed=False).values().first()

    def get_pending_webhooks(self, limit=50, received_before=None, stale_before=None):
        qs = self._claimable(stale_before)
        if received_before is not None:
            qs = qs.filter(received_at__lt=received_before)
        return list(qs.order_by('received_at').values()[:limit])

    def count_webhooks(self):
        return WebhookEvent.objects.count()

    def count_pending_webhooks(self):
        return WebhookEvent.objects.filter(processed=False).count()

    def mark_webhook_processed(self, webhook_id, success, result=None):
        status = WebhookEvent.ProcessingStatus.COMPLETED if success else WebhookEvent.ProcessingStatus.FAILED
        updated = WebhookEvent.objects.filter(webhook_id=webhook_id, processed=False).update(
            processed=True,
            processing_status=status,
            processing_result=result,
            processed_at=timezone.now(),
        )
        return updated == 1

    def cleanup_processed_webhooks(self, days_old=7):
        cutoff = timezone.now() - timedelta(days=days_old)
        deleted, _ = WebhookEvent.objects.filter(processed=True, processed_at__lt=cutoff).delete()
        return deleted

    def save_stock_alert(self, alert):
        return _as_dict(StockAlert.objects.create(**alert))

    def get_stock_alerts(self, user_id, alert_type=None, limit=None):
        qs = StockAlert.objects.filter(user_id=str(user_id))
        if alert_type:
            qs = qs.filter(alert_type=alert_type)
        if limit:
            qs = qs[:limit]
        return list(qs.values())

    def get_config(self, key):
        return MonitorSetting.objects.filter(key=key).values_list('value', flat=True).first()

    def set_config(self, key, value):
        MonitorSetting.objects.update_or_create(key=key, defaults={'value': str(value)})

    def get_scan_state(self, user_id):
        return ScanControl.objects.filter(user_id=str(user_id)).values().first()

    def save_scan_state(self, user_id, **fields):
        state, _ = ScanControl.objects.update_or_create(user_id=str(user_id), defaults=fields)
        return _as_dict(state)
