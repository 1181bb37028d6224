"""
PageWatch API views.

The manual check runs inline so the caller gets the outcome in the
response. Denials from the abuse guardrails and plan quota map to 429 with a
structured body; ineligible targets map to 409.
"""

import logging

from asgiref.sync import async_to_sync
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from pagewatch.api.throttling import ManualCheckThrottle
from pagewatch.models import Target

logger = logging.getLogger(__name__)

RESULT_STATUS_CODES = {
    'completed': status.HTTP_200_OK,
    'failed': status.HTTP_200_OK,
    'denied': status.HTTP_429_TOO_MANY_REQUESTS,
    'ineligible': status.HTTP_409_CONFLICT,
    'error': status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _get_orchestrator():
    """Get Orchestrator instance (lazy import to avoid circular imports)."""
    from pagewatch.services.orchestrator import Orchestrator
    return Orchestrator()


@extend_schema(
    tags=['Targets'],
    summary='Check a target now',
    description='''
    Run the change-detection pipeline for one target immediately.

    Subject to the plan's daily manual check quota and the abuse guardrails.
    Bypasses the "already checked today" rule, but not a paused target or
    a target cooling down after failures.
    ''',
    parameters=[
        OpenApiParameter('target_id', OpenApiTypes.UUID, OpenApiParameter.PATH),
    ],
    request=None,
    responses={
        200: {
            'description': 'Check ran (success reports whether the page was fetched)',
            'content': {
                'application/json': {
                    'example': {
                        'success': True,
                        'status': 'completed',
                        'message': 'Pricing updated: Pro:$49→$59',
                        'severity': 'high',
                        'alert_created': True,
                    }
                }
            }
        },
        404: {'description': 'Target not found'},
        409: {'description': 'Target not eligible for checking'},
        429: {
            'description': 'Quota exhausted or abuse guardrail triggered',
            'content': {
                'application/json': {
                    'example': {
                        'success': False,
                        'flag': 'manual_spam',
                        'message': 'Free plan allows 1 manual check per day.',
                        'action': 'soft_block',
                        'upgrade_prompt': True,
                    }
                }
            }
        },
    },
)
@api_view(['POST'])
@permission_classes([IsAuthenticated])
@throttle_classes([ManualCheckThrottle])
def check_target_now(request, target_id):
    """
    Manually check one target.

    Only the owning tenant's user may trigger a check; other users get 404.
    """
    try:
        target = Target.objects.select_related('tenant').get(id=target_id)
    except Target.DoesNotExist:
        return Response({'error': 'Target not found'}, status=status.HTTP_404_NOT_FOUND)

    if target.tenant.user_id != request.user.id:
        return Response({'error': 'Target not found'}, status=status.HTTP_404_NOT_FOUND)

    orchestrator = _get_orchestrator()
    try:
        result = async_to_sync(orchestrator.check_now)(target.id)
    except Target.DoesNotExist:
        return Response({'error': 'Target not found'}, status=status.HTTP_404_NOT_FOUND)

    http_status = RESULT_STATUS_CODES.get(result.status, status.HTTP_200_OK)

    if result.status == 'denied':
        logger.info(f"Manual check denied for target {target.id}: {result.flag}")
        return Response({
            'success': False,
            'flag': result.flag,
            'message': result.reason,
            'action': result.action,
            'upgrade_prompt': result.upgrade_prompt,
        }, status=http_status)

    data = {
        'success': result.success,
        'status': result.status,
        'message': result.reason,
    }
    if result.outcome is not None:
        data.update({
            'severity': result.outcome.severity,
            'alert_created': result.outcome.alert_created,
            'strategy': result.outcome.strategy,
            'escalated': result.outcome.escalated,
        })

    return Response(data, status=http_status)
