"""
Monitoring for the page-watch pipeline.

- Sentry error tracking with pipeline context
- CrawlError records for failed target runs
- Global daily crawl volume (feeds the global throttle)
"""

from .sentry_integration import add_pipeline_breadcrumb, capture_alert, capture_pipeline_error
from .error_logger import create_crawl_error_record, log_error_with_context
from .crawl_volume import CrawlVolumeCounter, get_crawl_volume_counter

__all__ = [
    "add_pipeline_breadcrumb",
    "capture_alert",
    "capture_pipeline_error",
    "create_crawl_error_record",
    "log_error_with_context",
    "CrawlVolumeCounter",
    "get_crawl_volume_counter",
]
