import logging

from django.db import transaction
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework import status

from finance.models import NotificationPreference
from finance.responses import success_response, error_response
from finance.serializers import LoginSerializer, RegisterSerializer, UserSerializer
from finance.services import notification_service
from finance.views.helpers import validation_message

logger = logging.getLogger(__name__)


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def register_api(request):
    """Self-service registration. New accounts are always members."""
    serializer = RegisterSerializer(data=request.data)
    if not serializer.is_valid():
        return error_response(validation_message(serializer.errors), errors=serializer.errors)

    with transaction.atomic():
        user = serializer.save()
        NotificationPreference.for_user(user)
        token, _ = Token.objects.get_or_create(user=user)
        transaction.on_commit(lambda: notification_service.notify_new_member(user.pk))

    logger.info(f"New member registered: {user.email}")
    return success_response(
        {'token': token.key, 'user': UserSerializer(user).data},
        message='Registration successful.',
        status_code=status.HTTP_201_CREATED
    )


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def login_api(request):
    """API endpoint for email/password login, returns a bearer token"""
    serializer = LoginSerializer(data=request.data, context={'request': request})
    if not serializer.is_valid():
        errors = serializer.errors
        if 'non_field_errors' in errors:
            return error_response(str(errors['non_field_errors'][0]), status.HTTP_401_UNAUTHORIZED)
        return error_response('Email and password are required.', errors=errors)

    user = serializer.validated_data['user']
    token, _ = Token.objects.get_or_create(user=user)
    return success_response(
        {'token': token.key, 'user': UserSerializer(user).data},
        message='Login successful.'
    )


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def logout_api(request):
    """Revoke the caller's token"""
    Token.objects.filter(user=request.user).delete()
    return success_response(message='Successfully logged out.')


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def current_user_api(request):
    """API endpoint to get current authenticated user"""
    return success_response(UserSerializer(request.user).data)
