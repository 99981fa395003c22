from abc import ABC, abstractmethod


class BaseCatalogClient(ABC):
    @abstractmethod
    def list_product_ids(self, user_id, continuation=None) -> dict:
        """Fetch one page of product ids.

        Returns ``{'ids', 'scan_completed', 'has_more_products',
        'continuation', 'total'}``. Pass the previous page's continuation to
        resume; ``None`` starts a fresh scan.
        """

    @abstractmethod
    def get_product(self, item_id, user_id=None) -> dict:
        """Fetch the full record of a single product."""

    @abstractmethod
    def get_multiple_products(self, item_ids, user_id=None) -> list[dict]:
        """Fetch full records for a batch of product ids."""
