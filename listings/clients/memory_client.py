import copy
import logging
import random

import requests

from .base import BaseCatalogClient

logger = logging.getLogger(__name__)

PAGE_SIZE = 50

MOCK_ITEM_NAMES = (
    'Auriculares Bluetooth', 'Mouse Inalambrico', 'Teclado Mecanico', 'Cable USB-C',
    'Soporte para Notebook', 'Lampara LED', 'Parlante Portatil', 'Funda para Celular',
)


def generate_mock_products(count, seed=None):
    """Deterministic fake catalog for mock mode; the same seed yields the same products."""
    rng = random.Random(seed)
    products = []
    for n in range(1, count + 1):
        item_id = f'MLA9{n:08d}'
        name = rng.choice(MOCK_ITEM_NAMES)
        days = rng.randint(1, 10)
        products.append({
            'id': item_id,
            'title': f'{name} #{n}',
            'seller_sku': f'MOCK-{n:04d}',
            'available_quantity': rng.randint(0, 40),
            'price': float(rng.randrange(500, 50000, 50)),
            'status': rng.choice(('active', 'active', 'active', 'paused')),
            'permalink': f'https://articulo.mercadolibre.com.ar/{item_id}',
            'category_id': 'MLA1000',
            'condition': 'new',
            'listing_type_id': rng.choice(('gold_special', 'gold_pro')),
            'attributes': [],
            'sale_terms': [{
                'id': 'MANUFACTURING_TIME',
                'value_name': f'{days} dias',
                'value_struct': {'number': days, 'unit': 'dias'},
            }],
        })
    return products


class InMemoryCatalogClient(BaseCatalogClient):
    """Catalog held in a dict, used in mock mode and tests.

    ``fail_pages`` holds page numbers (1-based) whose listing raises;
    ``fail_batches`` holds batch numbers of ``get_multiple_products`` calls
    that raise.
    """

    def __init__(self, products=None, page_size=PAGE_SIZE, fail_pages=(), fail_batches=()):
        self.products = {p['id']: p for p in (products or [])}
        self.page_size = page_size
        self.fail_pages = set(fail_pages)
        self.fail_batches = set(fail_batches)
        self.page_calls = 0
        self.batch_calls = 0

    def set_product(self, product):
        self.products[product['id']] = product

    def remove_product(self, item_id):
        self.products.pop(item_id, None)

    def list_product_ids(self, user_id, continuation=None) -> dict:
        self.page_calls += 1
        offset = int(continuation or 0)
        page_number = offset // self.page_size + 1
        if page_number in self.fail_pages:
            raise requests.ConnectionError(f"mock page {page_number} unavailable")

        all_ids = list(self.products)
        ids = all_ids[offset:offset + self.page_size]
        next_offset = offset + len(ids)
        has_more = next_offset < len(all_ids)

        return {
            'ids': ids,
            'scan_completed': not has_more,
            'has_more_products': has_more,
            'continuation': str(next_offset) if has_more else None,
            'total': len(all_ids),
        }

    def get_product(self, item_id, user_id=None) -> dict:
        if item_id not in self.products:
            raise requests.HTTPError(f"mock item {item_id} not found")
        return copy.deepcopy(self.products[item_id])

    def get_multiple_products(self, item_ids, user_id=None) -> list[dict]:
        self.batch_calls += 1
        if self.batch_calls in self.fail_batches:
            raise requests.Timeout(f"mock batch {self.batch_calls} timed out")
        return [copy.deepcopy(self.products[i]) for i in item_ids if i in self.products]
