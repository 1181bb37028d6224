"""
PageWatch application configuration.
"""

from django.apps import AppConfig


class PageWatchConfig(AppConfig):
    """Configuration for the pagewatch Django application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "pagewatch"
    verbose_name = "Page Watch"
