"""
URL configuration for PageWatch.

Routes:
- /admin/ - Django admin for tenants, targets, snapshots and alerts
- /api/schema/, /api/docs/, /api/redoc/ - OpenAPI schema and viewers
- /api/health/ - Health check (unauthenticated)
- /api/v1/ - PageWatch API
"""

from django.contrib import admin
from django.urls import path, include
from drf_spectacular.views import (
    SpectacularAPIView,
    SpectacularRedocView,
    SpectacularSwaggerView,
)

from pagewatch.views import health_check

urlpatterns = [
    # Django Admin
    path("admin/", admin.site.urls),

    # API Documentation
    path("api/schema/", SpectacularAPIView.as_view(), name="schema"),
    path(
        "api/docs/",
        SpectacularSwaggerView.as_view(url_name="schema"),
        name="swagger-ui",
    ),
    path(
        "api/redoc/",
        SpectacularRedocView.as_view(url_name="schema"),
        name="redoc",
    ),

    # Health Check Endpoint (no auth required for load balancer checks)
    path("api/health/", health_check, name="health-check"),

    # PageWatch API
    path("api/v1/", include("pagewatch.api.urls")),
]
