import logging

from django.shortcuts import get_object_or_404
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework import status

from finance.exceptions import Conflict, Forbidden
from finance.models import Pledge, PaymentStatus
from finance.permissions import Capability, HasCapability, can
from finance.responses import success_response, error_response
from finance.serializers import PledgeSerializer
from finance.services.ledger_service import LedgerService
from finance.filter_helpers import apply_list_filters
from finance.views.helpers import get_member_or_404, parse_id, require_owner_or, require_self_or, validation_message

logger = logging.getLogger(__name__)

PLEDGE_SEARCH_FIELDS = ['title', 'description', 'user__email', 'user__first_name', 'user__last_name']


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def pledge_list_create_api(request):
    """
    GET: every pledge (``pledges.manage``).
    POST: pledge for yourself; administrators may pledge on behalf of ``userId``.
    """
    if request.method == 'GET':
        if not can(request.user, Capability.PLEDGES_MANAGE):
            return error_response(
                'Access denied. Use /pledges/my-pledges to see your own pledges.',
                status.HTTP_403_FORBIDDEN
            )
        pledges = apply_list_filters(
            Pledge.objects.select_related('user'), request,
            search_fields=PLEDGE_SEARCH_FIELDS, date_field='pledge_date'
        )
        return success_response(PledgeSerializer(pledges, many=True).data)

    owner = request.user
    user_id = request.data.get('userId')
    if user_id and parse_id(user_id, 'userId') != request.user.pk:
        if not can(request.user, Capability.PLEDGES_MANAGE):
            raise Forbidden('Access denied. Members can only create pledges for themselves.')
        owner = get_member_or_404(user_id)

    serializer = PledgeSerializer(data=request.data)
    if serializer.is_valid():
        pledge = serializer.save(user=owner, status=PaymentStatus.PENDING)
        logger.info(f"Pledge #{pledge.pk} of {pledge.amount} created for {owner.email}")
        return success_response(
            PledgeSerializer(pledge).data,
            message='Pledge created successfully.',
            status_code=status.HTTP_201_CREATED
        )
    return error_response(validation_message(serializer.errors), errors=serializer.errors)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_pledges_api(request):
    pledges = apply_list_filters(
        Pledge.objects.filter(user=request.user).select_related('user'), request,
        search_fields=['title', 'description'], date_field='pledge_date'
    )
    return success_response(PledgeSerializer(pledges, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def member_pledges_api(request, user_id):
    require_self_or(request.user, user_id, Capability.PLEDGES_MANAGE)
    member = get_member_or_404(user_id)
    pledges = apply_list_filters(
        Pledge.objects.filter(user=member).select_related('user'), request,
        search_fields=['title', 'description'], date_field='pledge_date'
    )
    return success_response(PledgeSerializer(pledges, many=True).data)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def pledge_detail_api(request, pk):
    """Owners may edit or delete their pledge while it is still pending"""
    pledge = get_object_or_404(Pledge.objects.select_related('user'), pk=pk)
    require_owner_or(request.user, pledge, Capability.PLEDGES_MANAGE)

    if request.method == 'GET':
        return success_response(PledgeSerializer(pledge).data)

    if pledge.status != PaymentStatus.PENDING:
        raise Conflict(f"This pledge is already {pledge.status} and can no longer be changed.")

    if request.method == 'DELETE':
        if pledge.payments.exists():
            raise Conflict('This pledge has recorded payments and cannot be deleted.')
        pledge.delete()
        logger.info(f"Pledge #{pk} deleted by {request.user.email}")
        return success_response(message='Pledge deleted successfully.')

    serializer = PledgeSerializer(pledge, data=request.data, partial=True)
    if serializer.is_valid():
        pledge = serializer.save()
        return success_response(PledgeSerializer(pledge).data, message='Pledge updated successfully.')
    return error_response(validation_message(serializer.errors), errors=serializer.errors)


@api_view(['PUT', 'PATCH'])
@permission_classes([IsAuthenticated, HasCapability(Capability.PLEDGES_MANAGE)])
def pledge_reject_api(request, pk):
    pledge = LedgerService.reject_pledge(pk, request.user)
    return success_response(PledgeSerializer(pledge).data, message='Pledge rejected.')
