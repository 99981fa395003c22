from pathlib import Path

from environs import Env

env = Env()
env.read_env(recurse=False)

BASE_DIR = Path(__file__).resolve().parent.parent.parent

SECRET_KEY = env.str('SECRET_KEY', 'django-insecure-3q!v8z#kt0m$w5@r1e9c^h2y7u4n6b(p_x+j)d&f=gs-la%io')

DEBUG = env.bool('DEBUG', False)

ALLOWED_HOSTS = env.list('ALLOWED_HOSTS', [])

INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'django.contrib.auth',
    'listings',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'core.urls'

WSGI_APPLICATION = 'core.wsgi.application'

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': env.str('SQLITE_PATH', str(BASE_DIR / 'db.sqlite3')),
    }
}

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

LOG_LEVEL = env.str('LOG_LEVEL', 'INFO')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'standard': {
            'format': '%(asctime)s %(levelname)s %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'standard',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
    'loggers': {
        'listings': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
    },
}

# Celery
CELERY_BROKER_URL = env.str('CELERY_BROKER_URL', 'redis://localhost:6379/0')
CELERY_RESULT_BACKEND = CELERY_BROKER_URL
CELERY_BEAT_SCHEDULE = {
    'process-pending-webhooks-every-5-min': {
        'task': 'listings.tasks.process_pending_webhooks',
        'schedule': 300,
    },
    'check-full-sync-every-15-min': {
        'task': 'listings.tasks.sync_products',
        'schedule': 900,
    },
    'cleanup-processed-webhooks-daily': {
        'task': 'listings.tasks.cleanup_processed_webhooks',
        'schedule': 86400,
    },
}

# Marketplace API
MARKETPLACE_API_BASE_URL = env.str('MARKETPLACE_API_BASE_URL', 'https://api.mercadolibre.com')
MARKETPLACE_ACCESS_TOKEN = env.str('MARKETPLACE_ACCESS_TOKEN', '')
MARKETPLACE_MOCK_MODE = env.bool('MARKETPLACE_MOCK_MODE', False)
MARKETPLACE_USER_IDS = env.list('MARKETPLACE_USER_IDS', [])

# Collaborators: swap via env or override in prod.py/test.py
CATALOG_CLIENT_CLASS = env.str('CATALOG_CLIENT_CLASS', 'listings.clients.mercadolibre_client.MercadoLibreClient')
PRODUCT_STORE_CLASS = env.str('PRODUCT_STORE_CLASS', 'listings.stores.django_store.DjangoProductStore')

# Stock monitoring
STOCK_THRESHOLD = env.int('STOCK_THRESHOLD', 5)

# Full sync
SYNC_DETAIL_BATCH_SIZE = env.int('SYNC_DETAIL_BATCH_SIZE', 30)
SYNC_PAGE_DELAY = env.float('SYNC_PAGE_DELAY', 2.0)
SYNC_BATCH_DELAY = env.float('SYNC_BATCH_DELAY', 1.5)
SYNC_ERROR_BACKOFF = env.float('SYNC_ERROR_BACKOFF', 5.0)
SYNC_MAX_PAGES = env.int('SYNC_MAX_PAGES', None)
SYNC_CLEANUP_DELETED = env.bool('SYNC_CLEANUP_DELETED', True)
FULL_SYNC_MAX_AGE_HOURS = env.int('FULL_SYNC_MAX_AGE_HOURS', None)

# Webhooks
WEBHOOK_ALLOWED_IPS = env.list(
    'WEBHOOK_ALLOWED_IPS',
    ['54.88.218.97', '18.215.140.160', '18.213.114.129', '18.206.34.84'],
)
WEBHOOK_RETENTION_DAYS = env.int('WEBHOOK_RETENTION_DAYS', 7)
WEBHOOK_PENDING_BATCH = env.int('WEBHOOK_PENDING_BATCH', 50)
# Events younger than this are left to their own dispatch
WEBHOOK_SWEEP_GRACE_SECONDS = env.int('WEBHOOK_SWEEP_GRACE_SECONDS', 120)
# A claim older than this is considered abandoned and can be retaken
WEBHOOK_CLAIM_TIMEOUT_SECONDS = env.int('WEBHOOK_CLAIM_TIMEOUT_SECONDS', 600)

# Mock mode catalog
MARKETPLACE_MOCK_PRODUCTS = env.int('MARKETPLACE_MOCK_PRODUCTS', 25)
MARKETPLACE_MOCK_SEED = env.int('MARKETPLACE_MOCK_SEED', 1)

# Low stock notifications: any of console, email, telegram
ALERT_CHANNELS = env.list('ALERT_CHANNELS', ['console'])
ALERT_EMAIL_RECIPIENTS = env.list('ALERT_EMAIL_RECIPIENTS', [])
DEFAULT_FROM_EMAIL = env.str('DEFAULT_FROM_EMAIL', 'stock-monitor@localhost')
EMAIL_BACKEND = env.str('EMAIL_BACKEND', 'django.core.mail.backends.smtp.EmailBackend')
EMAIL_HOST = env.str('EMAIL_HOST', 'localhost')
EMAIL_PORT = env.int('EMAIL_PORT', 25)
EMAIL_HOST_USER = env.str('EMAIL_HOST_USER', '')
EMAIL_HOST_PASSWORD = env.str('EMAIL_HOST_PASSWORD', '')
EMAIL_USE_TLS = env.bool('EMAIL_USE_TLS', False)
TELEGRAM_BOT_TOKEN = env.str('TELEGRAM_BOT_TOKEN', '')
TELEGRAM_CHAT_ID = env.str('TELEGRAM_CHAT_ID', '')
