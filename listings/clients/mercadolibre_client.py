import logging
import time

import requests
from django.conf import settings

from listings.exceptions import CatalogAuthError, RateLimitExceeded
from listings.transforms import chunked

from .base import BaseCatalogClient

logger = logging.getLogger(__name__)

API_BASE_URL = getattr(settings, 'MARKETPLACE_API_BASE_URL', 'https://api.mercadolibre.com')
ACCESS_TOKEN = getattr(settings, 'MARKETPLACE_ACCESS_TOKEN', '')

MAX_RETRIES = 5
RETRY_BASE_DELAY = 1.0
SCAN_PAGE_SIZE = 50
MULTIGET_CHUNK_SIZE = 20
REQUEST_TIMEOUT = 15


class MercadoLibreClient(BaseCatalogClient):
    def __init__(self, access_token=None, base_url=None, session=None):
        self.base_url = (base_url or API_BASE_URL).rstrip('/')
        self.session = session or self.make_session(access_token or ACCESS_TOKEN)

    def make_session(self, access_token) -> requests.Session:
        session = requests.Session()
        session.headers.update({
            'Authorization': f'Bearer {access_token}',
            'Accept': 'application/json',
        })
        return session

    def _get(self, path, params=None):
        url = f"{self.base_url}{path}"

        for attempt in range(MAX_RETRIES):
            response = self.session.get(url, params=params, timeout=REQUEST_TIMEOUT)

            if response.status_code == 429:
                retry_after = float(response.headers.get('Retry-After', RETRY_BASE_DELAY))
                delay = max(retry_after, RETRY_BASE_DELAY * (2 ** attempt))
                logger.warning(
                    "Rate limited (429) on %s, attempt %d/%d, waiting %.1fs",
                    path, attempt + 1, MAX_RETRIES, delay,
                )
                time.sleep(delay)
                continue

            if response.status_code in (401, 403):
                raise CatalogAuthError(
                    f"Catalog API rejected credentials ({response.status_code}) for {path}",
                    response=response,
                )

            response.raise_for_status()
            return response.json()

        raise RateLimitExceeded(f"Rate limit exceeded after {MAX_RETRIES} retries for {path}")

    def list_product_ids(self, user_id, continuation=None) -> dict:
        params = {'search_type': 'scan', 'limit': SCAN_PAGE_SIZE}
        if continuation:
            params['scroll_id'] = continuation

        data = self._get(f"/users/{user_id}/items/search", params=params)
        ids = data.get('results') or []
        scroll_id = data.get('scroll_id')
        scan_completed = not ids or not scroll_id

        logger.debug("Scan page for user %s: %d ids, completed=%s", user_id, len(ids), scan_completed)
        return {
            'ids': ids,
            'scan_completed': scan_completed,
            'has_more_products': not scan_completed,
            'continuation': scroll_id,
            'total': (data.get('paging') or {}).get('total'),
        }

    def get_product(self, item_id, user_id=None) -> dict:
        return self._get(f"/items/{item_id}")

    def get_multiple_products(self, item_ids, user_id=None) -> list[dict]:
        products = []
        for chunk in chunked(list(item_ids), MULTIGET_CHUNK_SIZE):
            entries = self._get('/items', params={'ids': ','.join(chunk)})
            for entry in entries:
                if entry.get('code') == 200:
                    products.append(entry['body'])
                else:
                    logger.warning("Multiget skipped an entry with code %s", entry.get('code'))
        return products
