"""
Celery configuration for the settlement service.

Celery runs the settlement maintenance jobs:
- Expiring withdrawals stuck in processing without a gateway transfer
- Retrying distribution for paid orders left pending
- Verifying cached wallet balances against the transaction log

This configuration uses Redis as both the message broker and result backend.
Tasks are auto-discovered from all installed Django apps. Schedules live in
CELERY_BEAT_SCHEDULE and are read by the django-celery-beat scheduler.

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

# Create Celery application instance
# The name should match the Django project name
app = Celery("config")

# Load configuration from Django settings
# All Celery settings should be prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Auto-discover tasks from all registered Django apps
# Celery will look for a tasks.py module in each installed app
app.autodiscover_tasks()
