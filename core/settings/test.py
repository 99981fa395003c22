from .base import *  # noqa: F401,F403

DEBUG = False

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

MARKETPLACE_MOCK_MODE = False
MARKETPLACE_ACCESS_TOKEN = 'test-access-token'
MARKETPLACE_USER_IDS = []

SYNC_PAGE_DELAY = 0
SYNC_BATCH_DELAY = 0
SYNC_ERROR_BACKOFF = 0
FULL_SYNC_MAX_AGE_HOURS = None

EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'
ALERT_CHANNELS = ['console']
ALERT_EMAIL_RECIPIENTS = []
TELEGRAM_BOT_TOKEN = ''
TELEGRAM_CHAT_ID = ''
