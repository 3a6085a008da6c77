"""WSGI config for crosslinker_tool.

It exposes the WSGI callable as a module-level variable named ``application``.
The interlinking views are coroutines; Django runs them through its
async adapter when served over WSGI.

For more information on this file, see
https://docs.djangoproject.com/en/5.0/howto/deployment/wsgi/
"""

import os

from django.core.wsgi import get_wsgi_application  # type: ignore

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'crosslinker_tool.settings')

application = get_wsgi_application()
