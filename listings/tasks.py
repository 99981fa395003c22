import logging
from datetime import timedelta

import requests
from celery import shared_task
from django.conf import settings
from django.utils import timezone

from listings.exceptions import CatalogAuthError
from listings.services import build_orchestrator, build_processor, build_store

logger = logging.getLogger(__name__)


@shared_task
def process_webhook(webhook_id):
    return build_processor().process(webhook_id)


@shared_task
def process_pending_webhooks(limit=None):
    """Re-dispatch events left unprocessed, e.g. by a worker restart.

    Only events older than the grace window are picked, so a webhook whose
    own dispatch is still queued is not sent twice. Claims older than the
    claim timeout are treated as abandoned and picked up again.
    """
    limit = limit or getattr(settings, 'WEBHOOK_PENDING_BATCH', 50)
    now = timezone.now()
    pending = build_store().get_pending_webhooks(
        limit,
        received_before=now - timedelta(seconds=getattr(settings, 'WEBHOOK_SWEEP_GRACE_SECONDS', 120)),
        stale_before=now - timedelta(seconds=getattr(settings, 'WEBHOOK_CLAIM_TIMEOUT_SECONDS', 600)),
    )
    for event in pending:
        process_webhook.delay(event['webhook_id'])
    if pending:
        logger.info("Re-dispatched %d pending webhooks", len(pending))
    return len(pending)


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def sync_products(self, user_id=None, force=False):
    user_ids = [user_id] if user_id else getattr(settings, 'MARKETPLACE_USER_IDS', [])
    if not user_ids:
        logger.warning("No marketplace users configured, nothing to sync")
        return {}

    orchestrator = build_orchestrator()
    results = {}
    try:
        for uid in user_ids:
            results[str(uid)] = orchestrator.sync_if_needed(uid, force=force, resume=True)
    except CatalogAuthError:
        logger.error("Catalog credentials rejected, not retrying sync")
        raise
    except requests.RequestException as exc:
        logger.warning("Sync failed before any progress, retrying: %s", exc)
        raise self.retry(exc=exc)
    return results


@shared_task
def cleanup_processed_webhooks(days_old=None):
    days_old = days_old or getattr(settings, 'WEBHOOK_RETENTION_DAYS', 7)
    deleted = build_store().cleanup_processed_webhooks(days_old)
    logger.info("Deleted %d processed webhooks older than %d days", deleted, days_old)
    return deleted
