from django.conf import settings
from django.utils.module_loading import import_string

from listings.clients.memory_client import InMemoryCatalogClient, generate_mock_products
from listings.notifiers import AlertNotifier
from listings.processor import WebhookProcessor
from listings.sync import SyncOrchestrator
from listings.webhooks import WebhookIngestor


def build_client():
    if settings.MARKETPLACE_MOCK_MODE:
        return InMemoryCatalogClient(generate_mock_products(
            settings.MARKETPLACE_MOCK_PRODUCTS, seed=settings.MARKETPLACE_MOCK_SEED,
        ))
    return import_string(settings.CATALOG_CLIENT_CLASS)()


def build_store():
    return import_string(settings.PRODUCT_STORE_CLASS)()


def build_notifier():
    return AlertNotifier.from_settings()


def build_orchestrator(client=None, store=None):
    return SyncOrchestrator(client=client or build_client(), store=store or build_store())


def build_processor(client=None, store=None, notifier=None):
    return WebhookProcessor(
        client=client or build_client(),
        store=store or build_store(),
        notifier=notifier or build_notifier(),
    )


def build_ingestor(dispatch, store=None):
    return WebhookIngestor(store=store or build_store(), dispatch=dispatch)
