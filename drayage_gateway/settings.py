"""
Django settings for drayage_gateway project.
"""
import os
import sys
from pathlib import Path
from celery.schedules import crontab
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.getenv('DJANGO_SECRET_KEY', 'dev-secret-key-change-in-production')
DEBUG = os.getenv('DEBUG', 'True').lower() == 'true'
ALLOWED_HOSTS = os.getenv('ALLOWED_HOSTS', 'localhost,127.0.0.1').split(',')

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'rest_framework',
    'notifications',
    'quotes',
    'portpro',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'drayage_gateway.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'drayage_gateway.wsgi.application'

# Database configuration
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.postgresql',
        'NAME': os.getenv('DB_NAME', 'drayage_gateway'),
        'USER': os.getenv('DB_USER', 'postgres'),
        'PASSWORD': os.getenv('DB_PASSWORD', 'postgres'),
        'HOST': os.getenv('DB_HOST', 'localhost'),
        'PORT': os.getenv('DB_PORT', '5432'),
    }
}

TESTING = (
    os.getenv('USE_SQLITE_FOR_TESTS', '').lower() == 'true'
    or any('pytest' in arg for arg in sys.argv)
    or bool(os.getenv('PYTEST_CURRENT_TEST'))
)

# Use SQLite for tests to avoid requiring a running PostgreSQL server
if TESTING:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': os.getenv('SQLITE_NAME', ':memory:'),
        }
    }

AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator'},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Redis (Celery broker and webhook deduplication store)
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')

# Celery configuration
CELERY_BROKER_URL = os.getenv('CELERY_BROKER_URL', REDIS_URL)
CELERY_RESULT_BACKEND = os.getenv('CELERY_RESULT_BACKEND', REDIS_URL)
CELERY_ACCEPT_CONTENT = ['json']
CELERY_TASK_SERIALIZER = 'json'
CELERY_RESULT_SERIALIZER = 'json'
CELERY_TIMEZONE = 'America/Los_Angeles'

# Periodic jobs. Each run is expected to finish before the next tick.
CELERY_BEAT_SCHEDULE = {
    'portpro-poll': {
        'task': 'portpro.tasks.poll_portpro_loads',
        'schedule': crontab(minute='*/5'),
    },
    'portpro-reconcile': {
        'task': 'portpro.tasks.reconcile_portpro_loads',
        'schedule': crontab(minute=0, hour='*/4'),
    },
    'portpro-dlq-retry': {
        'task': 'portpro.tasks.retry_dead_letters',
        'schedule': crontab(minute='*/15'),
    },
    'portpro-sync-health': {
        'task': 'portpro.tasks.check_sync_health',
        'schedule': crontab(minute=30),
    },
    'portpro-cleanup-logs': {
        'task': 'portpro.tasks.cleanup_sync_logs',
        'schedule': crontab(minute=0, hour=3),
    },
    'notification-digests': {
        'task': 'notifications.tasks.send_notification_digests',
        'schedule': crontab(minute=0, hour=9),
    },
    'quote-expiration': {
        'task': 'quotes.tasks.expire_stale_quotes',
        'schedule': crontab(minute=0),
    },
}

if TESTING:
    CELERY_BROKER_URL = 'memory://'
    CELERY_RESULT_BACKEND = 'cache+memory://'
    CELERY_TASK_ALWAYS_EAGER = True
    CELERY_TASK_EAGER_PROPAGATES = True

# PortPro TMS configuration
PORTPRO_API_URL = os.getenv('PORTPRO_API_URL', 'https://api1.app.portpro.io/v1')
PORTPRO_ACCESS_TOKEN = os.getenv('PORTPRO_ACCESS_TOKEN', '')
PORTPRO_REFRESH_TOKEN = os.getenv('PORTPRO_REFRESH_TOKEN', '')
PORTPRO_TIMEOUT_SECONDS = float(os.getenv('PORTPRO_TIMEOUT_SECONDS', '30'))

# Webhook authentication (X-Hub-Signature: sha1=<hex>)
PORTPRO_WEBHOOK_SECRET = os.getenv('PORTPRO_WEBHOOK_SECRET', '')

# Idempotency store
DEDUP_KEY_PREFIX = os.getenv('DEDUP_KEY_PREFIX', 'portpro:dedup:')
DEDUP_TTL_SECONDS = int(os.getenv('DEDUP_TTL_SECONDS', str(24 * 60 * 60)))

# Dead-letter queue
DLQ_BASE_DELAY_SECONDS = int(os.getenv('DLQ_BASE_DELAY_SECONDS', '60'))
DLQ_MAX_DELAY_SECONDS = int(os.getenv('DLQ_MAX_DELAY_SECONDS', str(4 * 60 * 60)))
DLQ_MAX_RETRIES = int(os.getenv('DLQ_MAX_RETRIES', '5'))
DLQ_ALERT_THRESHOLD = int(os.getenv('DLQ_ALERT_THRESHOLD', '50'))

# Reconciliation / polling
PORTPRO_RECONCILE_BATCH_SIZE = int(os.getenv('PORTPRO_RECONCILE_BATCH_SIZE', '100'))
PORTPRO_POLL_LIMIT = int(os.getenv('PORTPRO_POLL_LIMIT', '100'))
RECONCILE_DRIFT_THRESHOLD = int(os.getenv('RECONCILE_DRIFT_THRESHOLD', '20'))
SYNC_STALE_HOURS = int(os.getenv('SYNC_STALE_HOURS', '8'))
WEBHOOK_FAILURE_RATE_THRESHOLD = int(os.getenv('WEBHOOK_FAILURE_RATE_THRESHOLD', '20'))
WEBHOOK_LOG_RETENTION_DAYS = int(os.getenv('WEBHOOK_LOG_RETENTION_DAYS', '30'))
SYNC_RUN_RETENTION_DAYS = int(os.getenv('SYNC_RUN_RETENTION_DAYS', '90'))

# Notifications
SITE_URL = os.getenv('SITE_URL', 'https://newstreamlogistics.com')
DEFAULT_FROM_EMAIL = os.getenv('EMAIL_FROM', 'noreply@newstreamlogistics.com')
EMAIL_BACKEND = os.getenv('EMAIL_BACKEND', 'django.core.mail.backends.smtp.EmailBackend')
EMAIL_HOST = os.getenv('EMAIL_HOST', 'localhost')
EMAIL_PORT = int(os.getenv('EMAIL_PORT', '25'))
EMAIL_HOST_USER = os.getenv('EMAIL_HOST_USER', '')
EMAIL_HOST_PASSWORD = os.getenv('EMAIL_HOST_PASSWORD', '')
EMAIL_USE_TLS = os.getenv('EMAIL_USE_TLS', 'False').lower() == 'true'
EMAIL_TIMEOUT = int(os.getenv('EMAIL_TIMEOUT', '15'))
NOTIFICATION_DEFAULT_TIMEZONE = os.getenv('NOTIFICATION_DEFAULT_TIMEZONE', 'America/Los_Angeles')

# Chat webhook (Slack-compatible incoming webhooks)
SLACK_NOTIFICATIONS_ENABLED = os.getenv('SLACK_NOTIFICATIONS_ENABLED', 'True').lower() == 'true'
SLACK_WEBHOOK_URL = os.getenv('SLACK_WEBHOOK_URL', '')
SLACK_CHANNEL_WEBHOOKS = {
    'new-quotes': os.getenv('SLACK_WEBHOOK_NEW_QUOTES', ''),
    'quotes-accepted': os.getenv('SLACK_WEBHOOK_QUOTES_ACCEPTED', ''),
    'load-alerts': os.getenv('SLACK_WEBHOOK_LOAD_ALERTS', ''),
}
SLACK_TIMEOUT_SECONDS = float(os.getenv('SLACK_TIMEOUT_SECONDS', '10'))
SLACK_DISABLED_EVENTS = [e for e in os.getenv('SLACK_DISABLED_EVENTS', '').split(',') if e]

if TESTING:
    EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'
    SLACK_WEBHOOK_URL = ''
    SLACK_CHANNEL_WEBHOOKS = {}
    PORTPRO_WEBHOOK_SECRET = 'test-webhook-secret'

# Logging configuration
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {module} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'INFO',
    },
    'loggers': {
        'portpro': {
            'handlers': ['console'],
            'level': 'DEBUG',
            'propagate': False,
        },
        'notifications': {
            'handlers': ['console'],
            'level': 'DEBUG',
            'propagate': False,
        },
        'quotes': {
            'handlers': ['console'],
            'level': 'DEBUG',
            'propagate': False,
        },
    },
}

# REST Framework configuration
REST_FRAMEWORK = {
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'DEFAULT_PARSER_CLASSES': [
        'rest_framework.parsers.JSONParser',
    ],
}
