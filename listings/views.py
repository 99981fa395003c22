import json
import logging

from django.db import transaction
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from listings.models import StockAlert
from listings.processor import resolve_threshold
from listings.services import build_ingestor, build_store
from listings.tasks import process_webhook

logger = logging.getLogger(__name__)


def enqueue_after_commit(webhook_id):
    transaction.on_commit(lambda: process_webhook.delay(webhook_id))


def client_ip_from(request):
    forwarded = request.headers.get('X-Forwarded-For')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR', '')


@csrf_exempt
@require_POST
def marketplace_webhook(request):
    try:
        payload = json.loads(request.body or b'null')
    except (ValueError, UnicodeDecodeError):
        logger.warning("Webhook body is not valid JSON")
        return JsonResponse({'success': False, 'error': 'invalid_json'}, status=400)

    ingestor = build_ingestor(dispatch=enqueue_after_commit)
    status, body = ingestor.ingest(payload, client_ip_from(request), dict(request.headers))
    return JsonResponse(body, status=status)


@require_GET
def marketplace_webhook_status(request):
    return JsonResponse(build_ingestor(dispatch=enqueue_after_commit).status())


def _query_int(request, name):
    value = request.GET.get(name)
    if value in (None, ''):
        return None
    return int(value)


def _bad_request(error, **details):
    return JsonResponse({'success': False, 'error': error, **details}, status=400)


@require_GET
def stock_alerts(request):
    user_id = request.GET.get('user_id')
    if not user_id:
        return _bad_request('missing_user_id')
    alert_type = request.GET.get('type') or None
    if alert_type and alert_type not in StockAlert.AlertType.values:
        return _bad_request('invalid_alert_type', allowed=StockAlert.AlertType.values)
    try:
        limit = _query_int(request, 'limit')
    except ValueError:
        return _bad_request('invalid_limit')

    alerts = build_store().get_stock_alerts(user_id, alert_type=alert_type, limit=limit or 100)
    return JsonResponse({'user_id': user_id, 'count': len(alerts), 'alerts': alerts})


@require_GET
def low_stock_products(request):
    user_id = request.GET.get('user_id')
    if not user_id:
        return _bad_request('missing_user_id')
    try:
        limit = _query_int(request, 'limit')
    except ValueError:
        return _bad_request('invalid_limit')

    store = build_store()
    threshold = resolve_threshold(store)
    products = store.get_products(user_id, {
        'status': request.GET.get('status') or None,
        'max_quantity': threshold,
        'limit': limit,
    })
    return JsonResponse({'user_id': user_id, 'threshold': threshold, 'count': len(products), 'products': products})
