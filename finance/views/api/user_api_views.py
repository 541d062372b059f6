import logging

from django.db import transaction
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework import status

from finance.exceptions import Forbidden, InvalidRequest
from finance.models import User, UserRole, NotificationPreference
from finance.permissions import Capability, HasCapability, can, is_admin
from finance.responses import success_response, error_response
from finance.serializers import (
    UserSerializer, AdminUserUpdateSerializer, ChangePasswordSerializer,
    NotificationPreferenceSerializer, RoleUpdateSerializer
)
from finance.filter_helpers import apply_text_search
from finance.views.helpers import get_member_or_404, validation_message

logger = logging.getLogger(__name__)

USER_SEARCH_FIELDS = ['email', 'first_name', 'last_name', 'membership_id', 'phone_number']


def _require_manageable(actor, target):
    """Admins manage members; accounts with an admin role are managed by super admins only"""
    if not can(actor, Capability.MEMBERS_WRITE):
        raise Forbidden('Access denied. Only administrators can manage other users.')
    if is_admin(target) and target.pk != actor.pk and not can(actor, Capability.USERS_PROMOTE):
        raise Forbidden('Access denied. Only a super admin can manage administrator accounts.')


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasCapability(Capability.MEMBERS_READ)])
def user_list_api(request):
    """List users, optionally filtered by ``role``, ``search`` and ``isActive``"""
    users = User.objects.all()

    role = request.query_params.get('role', '').strip().lower()
    if role:
        if role not in UserRole.values:
            raise InvalidRequest(f"Unknown role '{role}'.")
        users = users.filter(role=role)

    is_active = request.query_params.get('isActive', '').strip().lower()
    if is_active in ('true', 'false'):
        users = users.filter(is_active=is_active == 'true')

    users = apply_text_search(users, request.query_params.get('search', ''), USER_SEARCH_FIELDS)
    users = users.order_by('first_name', 'last_name', 'email')
    return success_response(UserSerializer(users, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasCapability(Capability.MEMBERS_READ)])
def member_list_api(request):
    """Active members, for assignment pickers"""
    members = User.objects.filter(role=UserRole.MEMBER, is_active=True)
    members = apply_text_search(members, request.query_params.get('search', ''), USER_SEARCH_FIELDS)
    members = members.order_by('first_name', 'last_name', 'email')
    return success_response(UserSerializer(members, many=True).data)


@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([IsAuthenticated])
def profile_api(request):
    """Get or update the caller's own profile"""
    if request.method == 'GET':
        return success_response(UserSerializer(request.user).data)

    serializer = UserSerializer(request.user, data=request.data, partial=True)
    if serializer.is_valid():
        user = serializer.save()
        return success_response(UserSerializer(user).data, message='Profile updated successfully.')
    return error_response(validation_message(serializer.errors), errors=serializer.errors)


@api_view(['PUT'])
@permission_classes([IsAuthenticated])
def change_password_api(request):
    serializer = ChangePasswordSerializer(data=request.data, context={'request': request})
    if not serializer.is_valid():
        return error_response(validation_message(serializer.errors), errors=serializer.errors)

    user = request.user
    with transaction.atomic():
        user.set_password(serializer.validated_data['newPassword'])
        user.save(update_fields=['password', 'updated_at'])
        # Rotate the token so other sessions are signed out
        Token.objects.filter(user=user).delete()
        token = Token.objects.create(user=user)
    logger.info(f"Password changed for {user.email}")
    return success_response({'token': token.key}, message='Password changed successfully.')


@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([IsAuthenticated])
def notification_settings_api(request):
    preference = NotificationPreference.for_user(request.user)
    if request.method == 'GET':
        return success_response(NotificationPreferenceSerializer(preference).data)

    serializer = NotificationPreferenceSerializer(preference, data=request.data, partial=True)
    if serializer.is_valid():
        preference = serializer.save()
        return success_response(
            NotificationPreferenceSerializer(preference).data,
            message='Notification settings updated.'
        )
    return error_response(validation_message(serializer.errors), errors=serializer.errors)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def user_detail_api(request, pk):
    """
    GET: own record, or ``members.read``.
    PUT/PATCH: own profile fields, or ``members.write`` for other users.
    DELETE: deactivates the account; the record is kept.
    """
    target = get_member_or_404(pk)
    actor = request.user

    if request.method == 'GET':
        if target.pk != actor.pk and not can(actor, Capability.MEMBERS_READ):
            return error_response('Access denied. You can only view your own profile.', status.HTTP_403_FORBIDDEN)
        return success_response(UserSerializer(target).data)

    if request.method == 'DELETE':
        if target.pk == actor.pk:
            raise InvalidRequest('You cannot deactivate your own account.')
        _require_manageable(actor, target)
        with transaction.atomic():
            target.is_active = False
            target.save(update_fields=['is_active', 'updated_at'])
            Token.objects.filter(user=target).delete()
        logger.info(f"User {target.email} deactivated by {actor.email}")
        return success_response(UserSerializer(target).data, message='User deactivated successfully.')

    if target.pk == actor.pk:
        serializer = UserSerializer(target, data=request.data, partial=True)
    else:
        _require_manageable(actor, target)
        serializer = AdminUserUpdateSerializer(target, data=request.data, partial=True)

    if serializer.is_valid():
        user = serializer.save()
        return success_response(UserSerializer(user).data, message='User updated successfully.')
    return error_response(validation_message(serializer.errors), errors=serializer.errors)


@api_view(['PATCH', 'PUT'])
@permission_classes([IsAuthenticated, HasCapability(Capability.USERS_PROMOTE)])
def user_role_api(request, pk):
    """Change a user's role. The new role takes effect on their next request."""
    target = get_member_or_404(pk)
    serializer = RoleUpdateSerializer(data=request.data)
    if not serializer.is_valid():
        return error_response(validation_message(serializer.errors), errors=serializer.errors)
    if target.pk == request.user.pk:
        raise InvalidRequest('You cannot change your own role.')

    previous = target.role
    target.role = serializer.validated_data['role']
    target.save(update_fields=['role', 'updated_at'])
    logger.info(f"Role of {target.email} changed from {previous} to {target.role} by {request.user.email}")
    return success_response(UserSerializer(target).data, message='User role updated successfully.')
