"""
Celery configuration for PageWatch.

This module configures Celery for asynchronous task processing
with separate queues for crawling and maintenance work.
"""

import os
from celery import Celery
from celery.schedules import crontab

# Set the default Django settings module for the 'celery' program.
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("pagewatch")

# Using a string here means the worker doesn't have to serialize
# the configuration object to child processes.
# - namespace='CELERY' means all celery-related configuration keys
#   should have a `CELERY_` prefix.
app.config_from_object("django.conf:settings", namespace="CELERY")

# Load task modules from all registered Django apps.
app.autodiscover_tasks()

# Configure task queues for different operations
app.conf.task_queues = {
    "crawl": {
        "exchange": "crawl",
        "routing_key": "crawl",
    },
    "maintenance": {
        "exchange": "maintenance",
        "routing_key": "maintenance",
    },
    "default": {
        "exchange": "default",
        "routing_key": "default",
    },
}

# Default task routing
app.conf.task_default_queue = "default"
app.conf.task_default_exchange = "default"
app.conf.task_default_routing_key = "default"

# Route specific tasks to their queues
app.conf.task_routes = {
    "pagewatch.tasks.run_crawl_tick": {"queue": "crawl"},
    "pagewatch.tasks.check_target_now": {"queue": "crawl"},
    "pagewatch.tasks.run_retention_sweep": {"queue": "maintenance"},
    "pagewatch.tasks.reset_daily_quotas": {"queue": "maintenance"},
    "pagewatch.tasks.purge_expired_leases": {"queue": "maintenance"},
}

# Configure Celery Beat schedule for periodic tasks
app.conf.beat_schedule = {
    "crawl-tick-daily": {
        "task": "pagewatch.tasks.run_crawl_tick",
        "schedule": crontab(hour=6, minute=0),  # 06:00 UTC
    },
    # Catches targets deferred by the tick deadline; "checked today" keeps
    # already crawled targets out
    "crawl-tick-hourly-catch-up": {
        "task": "pagewatch.tasks.run_crawl_tick",
        "schedule": crontab(minute=0),
    },
    "reset-daily-quotas": {
        "task": "pagewatch.tasks.reset_daily_quotas",
        "schedule": crontab(hour=0, minute=5),
    },
    "retention-sweep-weekly": {
        "task": "pagewatch.tasks.run_retention_sweep",
        "schedule": crontab(hour=3, minute=0, day_of_week=0),  # Sunday 03:00 UTC
    },
    "purge-expired-leases-every-15-minutes": {
        "task": "pagewatch.tasks.purge_expired_leases",
        "schedule": crontab(minute="*/15"),
    },
}

