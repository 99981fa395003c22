from datetime import timedelta

from django.test import TestCase
from django.utils import timezone

from listings.models import MonitorSetting, Product, ScanControl, StockAlert, WebhookEvent
from listings.stores.django_store import DjangoProductStore


def _record(item_id, user_id="1", **overrides):
    record = {
        "item_id": item_id,
        "user_id": user_id,
        "title": f"Producto {item_id}",
        "seller_sku": f"SKU-{item_id}",
        "available_quantity": 10,
        "price": 100.0,
        "status": "active",
        "permalink": f"https://example.com/{item_id}",
        "category_id": "MLA1",
        "condition": "new",
        "listing_type_id": "gold_special",
        "health": None,
        "estimated_handling_time": None,
        "last_api_sync": timezone.now(),
    }
    record.update(overrides)
    return record


def _event(webhook_id="wh-1", **overrides):
    event = {
        "webhook_id": webhook_id,
        "topic": "items",
        "resource": "/items/MLA1",
        "user_id": "1",
        "application_id": "999",
        "product_id": "MLA1",
        "processed": False,
    }
    event.update(overrides)
    return event


class TestProductPersistence(TestCase):
    def setUp(self):
        self.store = DjangoProductStore()

    def test_bulk_upsert_creates_then_updates(self):
        self.store.upsert_multiple_products([_record("MLA1"), _record("MLA2")])
        self.store.upsert_multiple_products([_record("MLA1", available_quantity=2)])

        self.assertEqual(Product.objects.count(), 2)
        self.assertEqual(Product.objects.get(item_id="MLA1").available_quantity, 2)

    def test_same_item_for_two_users_is_two_rows(self):
        self.store.upsert_multiple_products([_record("MLA1", user_id="1"), _record("MLA1", user_id="2")])
        self.assertEqual(Product.objects.filter(item_id="MLA1").count(), 2)

    def test_partial_update_leaves_other_fields(self):
        self.store.upsert_multiple_products([_record("MLA1")])

        updated = self.store.update_products_changed_fields([
            {"item_id": "MLA1", "user_id": "1", "available_quantity": 4},
        ])

        product = Product.objects.get(item_id="MLA1")
        self.assertEqual(updated, 1)
        self.assertEqual(product.available_quantity, 4)
        self.assertEqual(product.permalink, "https://example.com/MLA1")

    def test_upsert_product_preserves_unmentioned_fields(self):
        synced = timezone.now() - timedelta(days=1)
        self.store.upsert_multiple_products([_record("MLA1", last_api_sync=synced)])

        self.store.upsert_product({
            "item_id": "MLA1", "user_id": "1", "available_quantity": 1,
            "last_webhook_sync": timezone.now(), "webhook_source": "ml_webhook",
        })

        product = Product.objects.get(item_id="MLA1")
        self.assertEqual(product.available_quantity, 1)
        self.assertEqual(product.last_api_sync, synced)
        self.assertEqual(product.webhook_source, "ml_webhook")

    def test_comparison_projection(self):
        self.store.upsert_multiple_products([_record("MLA1"), _record("MLA2")])

        rows = self.store.get_products_for_comparison(["MLA1"], "1")

        self.assertEqual(len(rows), 1)
        self.assertNotIn("permalink", rows[0])
        self.assertEqual(rows[0]["seller_sku"], "SKU-MLA1")

    def test_filters_and_counts(self):
        self.store.upsert_multiple_products([
            _record("MLA1", available_quantity=2),
            _record("MLA2", available_quantity=20),
            _record("MLA3", available_quantity=1, status="paused"),
        ])

        low = self.store.get_products("1", {"max_quantity": 5})
        active_low = self.store.get_products("1", {"max_quantity": 5, "status": "active"})

        self.assertEqual([p["item_id"] for p in low], ["MLA1", "MLA3"])
        self.assertEqual([p["item_id"] for p in active_low], ["MLA1"])
        self.assertEqual(len(self.store.get_products("1", {"limit": 1})), 1)
        self.assertEqual(self.store.count_products("1"), 3)
        self.assertEqual(self.store.get_stored_ids("1"), {"MLA1", "MLA2", "MLA3"})

    def test_delete_products(self):
        self.store.upsert_multiple_products([_record("MLA1"), _record("MLA2")])
        deleted = self.store.delete_products(["MLA2"], "1")
        self.assertEqual(deleted, 1)
        self.assertIsNone(self.store.get_product("MLA2", "1"))
        self.assertIsNotNone(self.store.get_product("MLA1", "1"))


class TestWebhookPersistence(TestCase):
    def setUp(self):
        self.store = DjangoProductStore()

    def test_webhook_saved_once(self):
        _, created_first = self.store.save_webhook_event(_event())
        _, created_second = self.store.save_webhook_event(_event(attempts=2))

        self.assertTrue(created_first)
        self.assertFalse(created_second)
        self.assertEqual(WebhookEvent.objects.count(), 1)

    def test_mark_processed_happens_once(self):
        self.store.save_webhook_event(_event())

        first = self.store.mark_webhook_processed("wh-1", True, {"action": "product_updated"})
        second = self.store.mark_webhook_processed("wh-1", False, {"error": "late"})

        event = WebhookEvent.objects.get(webhook_id="wh-1")
        self.assertTrue(first)
        self.assertFalse(second)
        self.assertEqual(event.processing_status, WebhookEvent.ProcessingStatus.COMPLETED)
        self.assertEqual(event.processing_result, {"action": "product_updated"})
        self.assertIsNone(self.store.get_pending_webhook("wh-1"))

    def test_pending_webhooks_oldest_first(self):
        now = timezone.now()
        self.store.save_webhook_event(_event("wh-new", received_at=now))
        self.store.save_webhook_event(_event("wh-old", received_at=now - timedelta(minutes=5)))
        self.store.save_webhook_event(_event("wh-done"))
        self.store.mark_webhook_processed("wh-done", True)

        pending = self.store.get_pending_webhooks(10)

        self.assertEqual([e["webhook_id"] for e in pending], ["wh-old", "wh-new"])
        self.assertEqual(self.store.count_pending_webhooks(), 2)
        self.assertEqual(self.store.count_webhooks(), 3)

    def test_claim_is_granted_once(self):
        self.store.save_webhook_event(_event())

        self.assertTrue(self.store.claim_webhook("wh-1"))
        self.assertFalse(self.store.claim_webhook("wh-1"))

        event = WebhookEvent.objects.get(webhook_id="wh-1")
        self.assertEqual(event.processing_status, WebhookEvent.ProcessingStatus.PROCESSING)
        self.assertIsNotNone(event.claimed_at)
        self.assertFalse(event.processed)

    def test_stale_claim_can_be_retaken(self):
        self.store.save_webhook_event(_event())
        self.store.claim_webhook("wh-1")
        now = timezone.now()

        self.assertFalse(self.store.claim_webhook("wh-1", stale_before=now - timedelta(minutes=10)))
        self.assertTrue(self.store.claim_webhook("wh-1", stale_before=now + timedelta(seconds=1)))

    def test_processed_event_cannot_be_claimed(self):
        self.store.save_webhook_event(_event())
        self.store.mark_webhook_processed("wh-1", True)

        self.assertFalse(self.store.claim_webhook("wh-1", stale_before=timezone.now()))
        self.assertFalse(self.store.claim_webhook("missing"))

    def test_pending_webhooks_window(self):
        now = timezone.now()
        self.store.save_webhook_event(_event("wh-fresh", received_at=now))
        self.store.save_webhook_event(_event("wh-old", received_at=now - timedelta(minutes=10)))
        self.store.save_webhook_event(_event("wh-claimed", received_at=now - timedelta(minutes=10)))
        self.store.claim_webhook("wh-claimed")

        recent_cutoff = self.store.get_pending_webhooks(10, received_before=now - timedelta(minutes=2))
        with_stale = self.store.get_pending_webhooks(
            10, received_before=now - timedelta(minutes=2), stale_before=now + timedelta(seconds=1),
        )

        self.assertEqual([e["webhook_id"] for e in recent_cutoff], ["wh-old"])
        self.assertEqual(sorted(e["webhook_id"] for e in with_stale), ["wh-claimed", "wh-old"])

    def test_cleanup_only_removes_old_processed_events(self):
        self.store.save_webhook_event(_event("wh-old"))
        self.store.save_webhook_event(_event("wh-recent"))
        self.store.save_webhook_event(_event("wh-pending"))
        self.store.mark_webhook_processed("wh-old", True)
        self.store.mark_webhook_processed("wh-recent", True)
        WebhookEvent.objects.filter(webhook_id="wh-old").update(processed_at=timezone.now() - timedelta(days=10))

        deleted = self.store.cleanup_processed_webhooks(days_old=7)

        self.assertEqual(deleted, 1)
        self.assertEqual(
            set(WebhookEvent.objects.values_list("webhook_id", flat=True)),
            {"wh-recent", "wh-pending"},
        )


class TestAlertsConfigAndScanState(TestCase):
    def setUp(self):
        self.store = DjangoProductStore()

    def test_stock_alerts(self):
        self.store.save_stock_alert({
            "user_id": "1", "item_id": "MLA1", "alert_type": "LOW_STOCK",
            "previous_stock": 10, "new_stock": 3, "threshold": 5,
        })
        self.store.save_stock_alert({
            "user_id": "1", "item_id": "MLA2", "alert_type": "STOCK_INCREASE",
            "previous_stock": 1, "new_stock": 30, "threshold": 5,
        })

        self.assertEqual(StockAlert.objects.count(), 2)
        low = self.store.get_stock_alerts("1", alert_type="LOW_STOCK")
        self.assertEqual([a["item_id"] for a in low], ["MLA1"])

    def test_config_roundtrip(self):
        self.assertIsNone(self.store.get_config("stock_threshold"))
        self.store.set_config("stock_threshold", 8)
        self.store.set_config("stock_threshold", 7)
        self.assertEqual(self.store.get_config("stock_threshold"), "7")
        self.assertEqual(MonitorSetting.objects.count(), 1)

    def test_scan_state(self):
        self.assertIsNone(self.store.get_scan_state("1"))
        self.store.save_scan_state("1", continuation="scroll-1", total_products=100)
        self.store.save_scan_state("1", scan_completed=True, continuation=None)

        state = self.store.get_scan_state("1")
        self.assertTrue(state["scan_completed"])
        self.assertIsNone(state["continuation"])
        self.assertEqual(state["total_products"], 100)
        self.assertEqual(ScanControl.objects.count(), 1)
