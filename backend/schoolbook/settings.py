import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.getenv('DJANGO_SECRET_KEY', 'dev-secret')

DEBUG = os.getenv('DEBUG', '0') == '1'

ALLOWED_HOSTS = ['*'] if DEBUG else ['localhost', '127.0.0.1']

INSTALLED_APPS = [
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'rest_framework',
    'accounts',
    'academics',
    'gradebooks',
]

DB_NAME = os.getenv('DB_NAME')
DB_USER = os.getenv('DB_USER')
DB_PASS = os.getenv('DB_PASS')
DB_HOST = os.getenv('DB_HOST')
DB_PORT = os.getenv('DB_PORT', '5432')
# Prefer PostgreSQL only when DB env vars are explicitly provided.
# Leave DB_* unset to use SQLite.
if DB_NAME:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.postgresql',
            'NAME': DB_NAME,
            'USER': DB_USER,
            'PASSWORD': DB_PASS,
            'HOST': DB_HOST,
            'PORT': DB_PORT,
            'DISABLE_SERVER_SIDE_CURSORS': True,
            'CONN_MAX_AGE': int(os.getenv('DB_CONN_MAX_AGE', '0')),
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / 'db.sqlite3',
        }
    }

AUTH_PASSWORD_VALIDATORS = []

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

AUTH_USER_MODEL = 'accounts.User'

REST_FRAMEWORK = {
    'DATETIME_FORMAT': 'iso-8601',
}

# Gradebook workflow switches. Read through `gradebooks.conf`.
GRADEBOOK_WORKFLOW = {
    # Run every multi-record workflow through the compensating path even when
    # the database supports transactions (useful for replica sets / tests).
    'FORCE_COMPENSATING_UNIT_OF_WORK': os.getenv('GRADEBOOK_FORCE_COMPENSATING', '0') == '1',
    # Signatures created before period ids existed count for any period.
    'LEGACY_SIGNATURES_MATCH_ANY_PERIOD': os.getenv('GRADEBOOK_LEGACY_SIGNATURES_MATCH_ANY_PERIOD', '1') == '1',
    'BYPASS_SCOPES_ENABLED': os.getenv('GRADEBOOK_BYPASS_SCOPES_ENABLED', '1') == '1',
    'ADMIN_ROLES': tuple(
        r.strip().upper() for r in os.getenv('GRADEBOOK_ADMIN_ROLES', 'ADMIN').split(',') if r.strip()
    ),
    'DATA_EDIT_MAX_RETRIES': int(os.getenv('GRADEBOOK_DATA_EDIT_MAX_RETRIES', '3')),
}

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'plain': {
            'format': '%(asctime)s %(levelname)s %(name)s %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'plain',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
    'loggers': {
        'gradebooks': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
        'academics': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
    },
}
