import logging
import time
from datetime import timedelta

import requests
from django.conf import settings
from django.utils import timezone

from listings.transforms import chunked, compare_products, deduplicate_ids

logger = logging.getLogger(__name__)

DETAIL_BATCH_SIZE = getattr(settings, 'SYNC_DETAIL_BATCH_SIZE', 30)
PAGE_DELAY = getattr(settings, 'SYNC_PAGE_DELAY', 2.0)
BATCH_DELAY = getattr(settings, 'SYNC_BATCH_DELAY', 1.5)
ERROR_BACKOFF = getattr(settings, 'SYNC_ERROR_BACKOFF', 5.0)
CLEANUP_DELETED = getattr(settings, 'SYNC_CLEANUP_DELETED', True)
MAX_PAGES = getattr(settings, 'SYNC_MAX_PAGES', None)
FULL_SYNC_MAX_AGE_HOURS = getattr(settings, 'FULL_SYNC_MAX_AGE_HOURS', None)
SCAN_INTERVAL_CONFIG_KEY = 'auto_scan_interval'


class SyncOrchestrator:
    """Full-catalog scan: discover every id, fetch details in batches, diff, write."""

    def __init__(self, client, store, clock=timezone.now, sleep=time.sleep,
                 batch_size=None, page_delay=None, batch_delay=None, error_backoff=None,
                 cleanup_deleted=None):
        self.client = client
        self.store = store
        self.clock = clock
        self.sleep = sleep
        self.batch_size = batch_size or DETAIL_BATCH_SIZE
        self.page_delay = PAGE_DELAY if page_delay is None else page_delay
        self.batch_delay = BATCH_DELAY if batch_delay is None else batch_delay
        self.error_backoff = ERROR_BACKOFF if error_backoff is None else error_backoff
        self.cleanup_deleted = CLEANUP_DELETED if cleanup_deleted is None else cleanup_deleted

    def needs_full_sync(self, user_id):
        if self.store.count_products(user_id) == 0:
            return True, 'empty_store'

        state = self.store.get_scan_state(user_id)
        if not state or not state['scan_completed'] or state['last_completed_at'] is None:
            return True, 'no_completed_scan'

        max_age = self.max_scan_age_hours()
        if max_age:
            age = self.clock() - state['last_completed_at']
            if age > timedelta(hours=max_age):
                return True, 'stale_scan'

        return False, 'complete'

    def max_scan_age_hours(self):
        configured = self.store.get_config(SCAN_INTERVAL_CONFIG_KEY)
        if configured:
            try:
                return int(configured)
            except ValueError:
                logger.warning("Ignoring non-numeric %s config: %r", SCAN_INTERVAL_CONFIG_KEY, configured)
        return FULL_SYNC_MAX_AGE_HOURS

    def sync_if_needed(self, user_id, force=False, **kwargs):
        needed, reason = self.needs_full_sync(user_id)
        if not (needed or force):
            logger.info("Store for user %s is complete, relying on webhooks", user_id)
            return {'skipped': True, 'reason': reason}

        logger.info("Full sync for user %s (reason: %s)", user_id, 'forced' if force else reason)
        return self.sync_all(user_id, **kwargs)

    def sync_all(self, user_id, resume=False, max_pages=None):
        logger.info("Starting full product sync for user %s", user_id)

        discovery = self.discover_ids(user_id, resume=resume, max_pages=max_pages)
        item_ids = discovery['ids']

        stats = {
            'synced': 0,
            'total_ids_found': len(item_ids),
            'scan_completed': discovery['scan_completed'],
            'new': 0,
            'updated': 0,
            'unchanged': 0,
            'failed_batches': 0,
            'deleted': 0,
            'pages': discovery['pages'],
        }

        if not item_ids:
            logger.warning("No product ids discovered for user %s", user_id)
        else:
            self.fetch_details(user_id, item_ids, stats)

        full_scan = discovery['scan_completed'] and not (discovery['aborted'] or discovery['resumed'])
        if item_ids and full_scan and self.cleanup_deleted:
            stats['deleted'] = self.remove_deleted(user_id, set(item_ids))

        logger.info("Sync complete for user %s: %s", user_id, stats)
        return stats

    def discover_ids(self, user_id, resume=False, max_pages=None):
        max_pages = max_pages or MAX_PAGES
        continuation = None
        if resume:
            state = self.store.get_scan_state(user_id)
            if state and not state['scan_completed'] and state['continuation']:
                continuation = state['continuation']
                logger.info("Resuming scan for user %s from stored continuation", user_id)
        resumed = continuation is not None

        collected = []
        seen = set()
        pages = 0
        scan_completed = False
        aborted = False

        while True:
            pages += 1
            try:
                page = self.client.list_product_ids(user_id, continuation)
            except requests.RequestException as exc:
                if not collected:
                    logger.error("Id discovery failed on page %d for user %s: %s", pages, user_id, exc)
                    raise
                logger.error(
                    "Id discovery failed on page %d for user %s, continuing with %d ids: %s",
                    pages, user_id, len(collected), exc,
                )
                aborted = True
                break

            fresh = deduplicate_ids(page['ids'], seen)
            collected.extend(fresh)
            continuation = page.get('continuation')
            scan_completed = bool(page.get('scan_completed'))
            logger.info(
                "Page %d: +%d ids (%d new), %d collected",
                pages, len(page['ids']), len(fresh), len(collected),
            )

            self.save_checkpoint(user_id, page, continuation, scan_completed, len(collected))

            if scan_completed:
                break
            if not page.get('has_more_products'):
                logger.warning("Scan not completed but upstream reports no more products, stopping")
                break
            if max_pages and pages >= max_pages:
                logger.info("Page limit %d reached, checkpoint kept for resume", max_pages)
                break

            self.sleep(self.page_delay)

        return {
            'ids': collected,
            'scan_completed': scan_completed,
            'aborted': aborted,
            'resumed': resumed,
            'pages': pages,
        }

    def save_checkpoint(self, user_id, page, continuation, scan_completed, collected_count):
        fields = {
            'continuation': None if scan_completed else continuation,
            'scan_completed': scan_completed,
            'processed_products': collected_count,
            'total_products': page.get('total') or collected_count,
        }
        if scan_completed:
            fields['last_completed_at'] = self.clock()
        self.store.save_scan_state(user_id, **fields)

    def fetch_details(self, user_id, item_ids, stats):
        batches = list(chunked(item_ids, self.batch_size))
        total = len(batches)
        logger.info("Fetching details: %d products in %d batches of %d", len(item_ids), total, self.batch_size)

        for number, batch in enumerate(batches, start=1):
            is_last = number == total
            try:
                remote = self.client.get_multiple_products(batch, user_id)
            except requests.RequestException as exc:
                logger.error("Detail batch %d/%d failed: %s", number, total, exc)
                stats['failed_batches'] += 1
                if not is_last:
                    self.sleep(self.error_backoff)
                continue

            self.apply_batch(user_id, remote, stats)
            logger.info("Detail batch %d/%d: %d products fetched", number, total, len(remote))

            if not is_last:
                self.sleep(self.batch_delay)

    def apply_batch(self, user_id, remote, stats):
        if not remote:
            return

        stored = self.store.get_products_for_comparison([p['id'] for p in remote], user_id)
        result = compare_products(remote, stored, user_id, self.clock())

        if result['new']:
            self.store.upsert_multiple_products(result['new'])
        if result['changed']:
            self.store.update_products_changed_fields(result['changed'])

        stats['new'] += len(result['new'])
        stats['updated'] += len(result['changed'])
        stats['unchanged'] += result['unchanged']
        stats['synced'] += len(result['new']) + len(result['changed'])

    def remove_deleted(self, user_id, remote_ids):
        stale = self.store.get_stored_ids(user_id) - remote_ids
        if not stale:
            return 0
        deleted = self.store.delete_products(sorted(stale), user_id)
        logger.info("Removed %d products no longer listed upstream for user %s", deleted, user_id)
        return deleted
