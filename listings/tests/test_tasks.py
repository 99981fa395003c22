from datetime import timedelta
from unittest.mock import MagicMock, patch

import requests
from django.test import TestCase, override_settings
from django.utils import timezone

from listings.clients.memory_client import InMemoryCatalogClient
from listings.exceptions import CatalogAuthError
from listings.models import Product, WebhookEvent
from listings.stores.django_store import DjangoProductStore
from listings.tasks import (
    cleanup_processed_webhooks,
    process_pending_webhooks,
    process_webhook,
    sync_products,
)


def _product(item_id, quantity=5):
    return {"id": item_id, "title": f"Item {item_id}", "available_quantity": quantity,
            "price": 10.0, "status": "active"}


def _event(webhook_id, product_id="MLA1"):
    return {
        "webhook_id": webhook_id, "topic": "items", "resource": f"/items/{product_id}",
        "user_id": "1", "application_id": "999", "product_id": product_id, "processed": False,
    }


class TestProcessWebhookTask(TestCase):
    def test_processes_stored_event(self):
        DjangoProductStore().save_webhook_event(_event("wh-1"))
        client = InMemoryCatalogClient([_product("MLA1", quantity=2)])

        with patch('listings.services.build_client', return_value=client):
            result = process_webhook.delay("wh-1").get()

        self.assertEqual(result["action"], "product_created")
        self.assertEqual(Product.objects.get(item_id="MLA1").available_quantity, 2)
        self.assertTrue(WebhookEvent.objects.get(webhook_id="wh-1").processed)

    def test_pending_sweep_redispatches(self):
        store = DjangoProductStore()
        store.save_webhook_event(_event("wh-1"))
        store.save_webhook_event(_event("wh-2"))
        store.save_webhook_event(_event("wh-3"))
        store.mark_webhook_processed("wh-3", True)
        WebhookEvent.objects.update(received_at=timezone.now() - timedelta(minutes=10))

        with patch('listings.tasks.process_webhook') as task:
            count = process_pending_webhooks()

        self.assertEqual(count, 2)
        self.assertEqual(sorted(c.args[0] for c in task.delay.call_args_list), ["wh-1", "wh-2"])

    def test_pending_sweep_respects_limit(self):
        store = DjangoProductStore()
        for i in range(3):
            store.save_webhook_event(_event(f"wh-{i}"))
        WebhookEvent.objects.update(received_at=timezone.now() - timedelta(minutes=10))

        with patch('listings.tasks.process_webhook') as task:
            count = process_pending_webhooks(limit=2)

        self.assertEqual(count, 2)
        self.assertEqual(task.delay.call_count, 2)

    def test_pending_sweep_leaves_recent_events_to_their_own_dispatch(self):
        store = DjangoProductStore()
        store.save_webhook_event(_event("wh-fresh"))
        store.save_webhook_event(_event("wh-old"))
        WebhookEvent.objects.filter(webhook_id="wh-old").update(received_at=timezone.now() - timedelta(minutes=10))

        with patch('listings.tasks.process_webhook') as task:
            count = process_pending_webhooks()

        self.assertEqual(count, 1)
        task.delay.assert_called_once_with("wh-old")

    @override_settings(WEBHOOK_CLAIM_TIMEOUT_SECONDS=600)
    def test_pending_sweep_reclaims_stale_claims(self):
        store = DjangoProductStore()
        store.save_webhook_event(_event("wh-stuck"))
        store.save_webhook_event(_event("wh-running"))
        store.claim_webhook("wh-stuck")
        store.claim_webhook("wh-running")
        WebhookEvent.objects.update(received_at=timezone.now() - timedelta(hours=1))
        WebhookEvent.objects.filter(webhook_id="wh-stuck").update(claimed_at=timezone.now() - timedelta(minutes=30))

        with patch('listings.tasks.process_webhook') as task:
            count = process_pending_webhooks()

        self.assertEqual(count, 1)
        task.delay.assert_called_once_with("wh-stuck")


class TestSyncProductsTask(TestCase):
    @override_settings(MARKETPLACE_USER_IDS=[])
    def test_no_users_configured(self):
        self.assertEqual(sync_products(), {})

    @override_settings(MARKETPLACE_USER_IDS=["1", "2"])
    def test_syncs_every_configured_user(self):
        client = InMemoryCatalogClient([_product("MLA1"), _product("MLA2")])

        with patch('listings.services.build_client', return_value=client):
            result = sync_products()

        self.assertEqual(set(result), {"1", "2"})
        self.assertEqual(result["1"]["new"], 2)
        self.assertEqual(Product.objects.filter(user_id="2").count(), 2)

    def test_complete_store_is_skipped(self):
        client = InMemoryCatalogClient([_product("MLA1")])

        with patch('listings.services.build_client', return_value=client):
            sync_products(user_id="1")
            result = sync_products(user_id="1")

        self.assertTrue(result["1"]["skipped"])

    def test_connection_failure_propagates(self):
        client = InMemoryCatalogClient([_product("MLA1")], fail_pages={1})

        with patch('listings.services.build_client', return_value=client):
            with self.assertRaises(requests.ConnectionError):
                sync_products(user_id="1")

    def test_auth_failure_propagates(self):
        client = MagicMock()
        client.list_product_ids.side_effect = CatalogAuthError("401 Unauthorized")

        with patch('listings.services.build_client', return_value=client):
            with self.assertRaises(CatalogAuthError):
                sync_products(user_id="1")


class TestCleanupTask(TestCase):
    def test_deletes_old_processed_events(self):
        store = DjangoProductStore()
        store.save_webhook_event(_event("wh-old"))
        store.save_webhook_event(_event("wh-pending"))
        store.mark_webhook_processed("wh-old", True)
        WebhookEvent.objects.filter(webhook_id="wh-old").update(processed_at=timezone.now() - timedelta(days=30))

        deleted = cleanup_processed_webhooks(days_old=7)

        self.assertEqual(deleted, 1)
        self.assertEqual(list(WebhookEvent.objects.values_list("webhook_id", flat=True)), ["wh-pending"])
