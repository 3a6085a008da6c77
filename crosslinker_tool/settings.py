"""
Django settings for the crosslinker_tool.

The project hosts a single app, ``crosslinker``, which exposes the content
interlinking recommendation engine to the rest of the platform. It keeps
no database of its own: content is passed in by the calling services and
only generation responses are cached.

Please consult the Django documentation for additional configuration
options: https://docs.djangoproject.com/en/5.0/ref/settings/
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from django.core.exceptions import ImproperlyConfigured

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv('DJANGO_SECRET_KEY', 'django-insecure-change-me')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = os.getenv('DJANGO_DEBUG', 'false').lower() == 'true'

RUNNING_TESTS = os.getenv('PYTEST_CURRENT_TEST') is not None or 'pytest' in sys.modules
if RUNNING_TESTS:
    DEBUG = True

if not DEBUG and SECRET_KEY == 'django-insecure-change-me' and not RUNNING_TESTS:
    raise ImproperlyConfigured('DJANGO_SECRET_KEY must be set when DEBUG is False.')

ALLOWED_HOSTS: list[str] = [
    host.strip()
    for host in os.getenv('DJANGO_ALLOWED_HOSTS', '127.0.0.1,localhost,testserver').split(',')
    if host.strip()
]

# Application definition
INSTALLED_APPS = [
    'crosslinker',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'crosslinker_tool.urls'

WSGI_APPLICATION = 'crosslinker_tool.wsgi.application'

# Content lives in the calling services; this project stores nothing.
DATABASES: dict[str, dict[str, object]] = {}

# Caches
# https://docs.djangoproject.com/en/5.0/ref/settings/#caches

CACHES = {
    'default': {
        'BACKEND': os.getenv('DJANGO_CACHE_BACKEND', 'django.core.cache.backends.locmem.LocMemCache'),
        'LOCATION': os.getenv('DJANGO_CACHE_LOCATION', 'crosslinker-default'),
    },
}

# Internationalization
LANGUAGE_CODE = 'en-us'

TIME_ZONE = 'UTC'

USE_I18N = False

USE_TZ = True

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


# Interlinking engine
CROSSLINKER_ENGINE_CONFIG = os.getenv('CROSSLINKER_ENGINE_CONFIG') or None

# "memory" keeps an in-process LRU cache; "django" stores entries in CACHES[CROSSLINKER_CACHE_ALIAS].
CROSSLINKER_CACHE_BACKEND = os.getenv('CROSSLINKER_CACHE_BACKEND', 'memory').lower()
if CROSSLINKER_CACHE_BACKEND not in {'memory', 'django'}:
    raise ImproperlyConfigured(
        f'Unsupported CROSSLINKER_CACHE_BACKEND: {CROSSLINKER_CACHE_BACKEND!r} (expected "memory" or "django").'
    )
CROSSLINKER_CACHE_ALIAS = os.getenv('CROSSLINKER_CACHE_ALIAS', 'default')
CROSSLINKER_CACHE_MAX_ENTRIES = int(os.getenv('CROSSLINKER_CACHE_MAX_ENTRIES', '1000'))

OPENAI_API_KEY = os.getenv('OPENAI_API_KEY', '')
CROSSLINKER_MODEL = os.getenv('CROSSLINKER_MODEL', 'gpt-4o')
CROSSLINKER_BACKEND_TIMEOUT = float(os.getenv('CROSSLINKER_BACKEND_TIMEOUT', '60'))

# Request size guards for the JSON endpoints
CROSSLINKER_MAX_TARGETS = int(os.getenv('CROSSLINKER_MAX_TARGETS', '500'))
CROSSLINKER_MAX_LIMIT = int(os.getenv('CROSSLINKER_MAX_LIMIT', '25'))


log_level = os.getenv('DJANGO_LOG_LEVEL', 'INFO').upper()
crosslinker_log_level = os.getenv('CROSSLINKER_LOG_LEVEL', log_level).upper()
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'simple': {
            'format': '%(asctime)s %(levelname)s %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': log_level,
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': log_level,
            'propagate': False,
        },
        'crosslinker': {
            'handlers': ['console'],
            'level': crosslinker_log_level,
            'propagate': False,
        },
    },
}
