"""
PageWatch API URL configuration.

Endpoints:
- POST /api/v1/targets/<target_id>/check-now/ - Manual check of one target
"""

from django.urls import path

from pagewatch.api.views import check_target_now

app_name = 'pagewatch_api'

urlpatterns = [
    path('targets/<uuid:target_id>/check-now/', check_target_now, name='check_target_now'),
]
