from abc import ABC, abstractmethod


class BaseProductStore(ABC):
    """Persistence for products, webhook events, alerts and sync checkpoints.

    Records cross this boundary as plain dicts keyed by model field names.
    """

    # Products

    @abstractmethod
    def get_products(self, user_id, filters=None) -> list[dict]:
        """Products of a user. Filters: ``status``, ``max_quantity``, ``limit``."""

    @abstractmethod
    def count_products(self, user_id) -> int:
        ...

    @abstractmethod
    def get_product(self, item_id, user_id) -> dict | None:
        ...

    @abstractmethod
    def get_products_for_comparison(self, item_ids, user_id) -> list[dict]:
        """Minimal projection: the id plus the fields the diff engine tracks."""

    @abstractmethod
    def get_stored_ids(self, user_id) -> set:
        ...

    @abstractmethod
    def upsert_product(self, record):
        ...

    @abstractmethod
    def upsert_multiple_products(self, records):
        ...

    @abstractmethod
    def update_products_changed_fields(self, partials):
        """Apply partial records; only keys present in each partial are written."""

    @abstractmethod
    def delete_products(self, item_ids, user_id) -> int:
        ...

    # Webhook events

    @abstractmethod
    def save_webhook_event(self, event) -> tuple[dict, bool]:
        """Insert once per webhook_id. Returns ``(record, created)``."""

    @abstractmethod
    def claim_webhook(self, webhook_id, stale_before=None) -> bool:
        """Move a pending event to processing. False if another worker holds it.

        A processing claim older than ``stale_before`` may be taken over.
        """

    @abstractmethod
    def get_pending_webhook(self, webhook_id) -> dict | None:
        ...

    @abstractmethod
    def get_pending_webhooks(self, limit=50, received_before=None, stale_before=None) -> list[dict]:
        """Claimable events, oldest first, optionally only those received before a cutoff."""

    @abstractmethod
    def count_webhooks(self) -> int:
        ...

    @abstractmethod
    def count_pending_webhooks(self) -> int:
        ...

    @abstractmethod
    def mark_webhook_processed(self, webhook_id, success, result=None) -> bool:
        """Flip a pending event to completed/failed. False if it was not pending."""

    @abstractmethod
    def cleanup_processed_webhooks(self, days_old=7) -> int:
        ...

    # Alerts

    @abstractmethod
    def save_stock_alert(self, alert) -> dict:
        ...

    @abstractmethod
    def get_stock_alerts(self, user_id, alert_type=None, limit=None) -> list[dict]:
        ...

    # Config and scan checkpoints

    @abstractmethod
    def get_config(self, key):
        ...

    @abstractmethod
    def set_config(self, key, value):
        ...

    @abstractmethod
    def get_scan_state(self, user_id) -> dict | None:
        ...

    @abstractmethod
    def save_scan_state(self, user_id, **fields) -> dict:
        ...
