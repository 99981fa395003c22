import re

SKU_ATTRIBUTE_IDS = ('SELLER_SKU', 'SKU')
MANUFACTURING_TIME_TERM = 'MANUFACTURING_TIME'
WEBHOOK_SOURCE = 'ml_webhook'

TRACKED_FIELDS = (
    'available_quantity',
    'price',
    'status',
    'title',
    'seller_sku',
    'estimated_handling_time',
)

_NUMBER_RE = re.compile(r'\d+(?:\.\d+)?')


def extract_sku(raw):
    """Explicit seller_sku wins, then a SKU-like attribute, else None."""
    if raw.get('seller_sku'):
        return raw['seller_sku']

    attributes = raw.get('attributes')
    if isinstance(attributes, list):
        for attr in attributes:
            if not isinstance(attr, dict):
                continue
            name = attr.get('name') or ''
            if attr.get('id') in SKU_ATTRIBUTE_IDS or 'sku' in name.lower():
                if attr.get('value_name'):
                    return attr['value_name']
                break

    return None


def extract_handling_time(raw):
    """Manufacturing time in hours, from the MANUFACTURING_TIME sale term."""
    sale_terms = raw.get('sale_terms')
    if not isinstance(sale_terms, list):
        return None

    term = next(
        (t for t in sale_terms if isinstance(t, dict) and t.get('id') == MANUFACTURING_TIME_TERM),
        None,
    )
    if term is None:
        return None

    value_struct = term.get('value_struct') or {}
    number = value_struct.get('number') if isinstance(value_struct, dict) else None
    if isinstance(number, (int, float)) and not isinstance(number, bool):
        return int(round(number * 24))

    match = _NUMBER_RE.search(term.get('value_name') or '')
    if match:
        return int(round(float(match.group()) * 24))

    return None


def map_product(raw, user_id, synced_at, source='api'):
    record = {
        'item_id': raw['id'],
        'user_id': str(user_id),
        'title': raw.get('title') or '',
        'seller_sku': extract_sku(raw),
        'available_quantity': raw.get('available_quantity') or 0,
        'price': raw.get('price'),
        'status': raw.get('status') or '',
        'permalink': raw.get('permalink') or '',
        'category_id': raw.get('category_id') or '',
        'condition': raw.get('condition') or '',
        'listing_type_id': raw.get('listing_type_id') or '',
        'health': raw.get('health'),
        'estimated_handling_time': extract_handling_time(raw),
    }
    if source == 'webhook':
        record['last_webhook_sync'] = synced_at
        record['webhook_source'] = WEBHOOK_SOURCE
    else:
        record['last_api_sync'] = synced_at
    return record


def changed_fields(record, stored):
    return [field for field in TRACKED_FIELDS if record.get(field) != stored.get(field)]


def compare_products(remote_batch, stored_batch, user_id, synced_at):
    """Split a fetched batch into new, changed and unchanged products.

    Changed entries carry only the tracked fields plus the sync timestamp,
    so the write touches nothing the remote side did not report on.
    """
    stored_by_id = {p['item_id']: p for p in stored_batch}
    result = {'new': [], 'changed': [], 'unchanged': 0}

    for raw in remote_batch:
        record = map_product(raw, user_id, synced_at)
        stored = stored_by_id.get(record['item_id'])

        if stored is None:
            result['new'].append(record)
        elif changed_fields(record, stored):
            partial = {'item_id': record['item_id'], 'user_id': record['user_id']}
            for field in TRACKED_FIELDS:
                partial[field] = record[field]
            partial['last_api_sync'] = synced_at
            result['changed'].append(partial)
        else:
            result['unchanged'] += 1

    return result


def deduplicate_ids(ids, seen=None):
    """Order-preserving dedupe. Pass ``seen`` to dedupe across pages."""
    seen = set() if seen is None else seen
    fresh = []
    for item_id in ids:
        if item_id in seen:
            continue
        seen.add(item_id)
        fresh.append(item_id)
    return fresh


def chunked(items, size):
    for start in range(0, len(items), size):
        yield items[start:start + size]
