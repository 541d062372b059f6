import logging

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework import status

from finance.models import SystemSetting
from finance.permissions import Capability, can
from finance.responses import success_response, error_response
from finance.serializers import SystemSettingSerializer
from finance.views.helpers import validation_message

logger = logging.getLogger(__name__)


@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([IsAuthenticated])
def setting_api(request):
    """Get system settings (any authenticated user) or update them (super admin)"""
    settings = SystemSetting.get_settings()
    if request.method == 'GET':
        return success_response(SystemSettingSerializer(settings).data)

    if not can(request.user, Capability.SETTINGS_MANAGE):
        return error_response(
            'Access denied. Only a super admin can update settings.',
            status.HTTP_403_FORBIDDEN
        )

    serializer = SystemSettingSerializer(settings, data=request.data, partial=True)
    if serializer.is_valid():
        settings = serializer.save()
        logger.info(f"System settings updated by {request.user.email}")
        return success_response(SystemSettingSerializer(settings).data, message='Settings updated successfully.')
    return error_response(validation_message(serializer.errors), errors=serializer.errors)
