"""
WSGI config for crab_backend project.

It exposes the WSGI callable as a module-level variable named ``application``.

For more information on this file, see
https://docs.djangoproject.com/en/4.2/howto/deployment/wsgi/
"""

import logging
import os

import django
from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'crab_backend.settings')

logger = logging.getLogger(__name__)

# Apply migrations on startup for single-instance hosts without a release step
if os.environ.get('RUN_MIGRATIONS', 'False').lower() in ('true', '1', 'yes'):
    django.setup()
    from django.core.management import call_command
    from django.db import DatabaseError

    try:
        logger.info('Running database migrations...')
        call_command('migrate', '--noinput')
    except DatabaseError as exc:
        logger.error('Migration failed: %s', exc)
        raise

application = get_wsgi_application()
