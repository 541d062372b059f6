import logging

from django.db import transaction
from django.shortcuts import get_object_or_404
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework import status

from finance.exceptions import Conflict
from finance.models import Levy, MemberLevy
from finance.permissions import Capability, HasCapability
from finance.responses import success_response, error_response
from finance.serializers import LevySerializer, MemberLevySerializer
from finance.services.ledger_service import LedgerService
from finance.filter_helpers import apply_list_filters
from finance.views.helpers import (
    get_member_or_404, parse_assignment_targets, parse_id, require_capability, require_self_or, validation_message
)

logger = logging.getLogger(__name__)

MEMBER_LEVY_SEARCH_FIELDS = ['user__email', 'user__first_name', 'user__last_name', 'levy__title']


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def levy_list_create_api(request):
    """
    GET: list levies; ``isActive=true|false`` narrows the list.
    POST: create a levy and assign it to ``members`` ("all" or a list of user ids).
    """
    if request.method == 'GET':
        levies = Levy.objects.select_related('created_by')
        is_active = request.query_params.get('isActive', '').strip().lower()
        if is_active in ('true', 'false'):
            levies = levies.filter(is_active=is_active == 'true')
        levies = apply_list_filters(
            levies, request, search_fields=['title', 'description'], date_field='start_date', status_field=None
        )
        return success_response(LevySerializer(levies, many=True).data)

    require_capability(request.user, Capability.OBLIGATIONS_MANAGE, 'Access denied. Only administrators can create levies.')
    serializer = LevySerializer(data=request.data)
    if not serializer.is_valid():
        return error_response(validation_message(serializer.errors), errors=serializer.errors)

    targets = parse_assignment_targets(request.data)
    with transaction.atomic():
        levy = serializer.save(created_by=request.user)
        assignment = LedgerService.assign_obligation(levy, targets) if targets else {'assigned': 0, 'skipped': 0}

    logger.info(f"Levy #{levy.pk} '{levy.title}' created by {request.user.email}")
    return success_response(
        {**LevySerializer(levy).data, 'assignment': assignment},
        message='Levy created successfully.',
        status_code=status.HTTP_201_CREATED
    )


@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([IsAuthenticated])
def levy_detail_api(request, pk):
    levy = get_object_or_404(Levy.objects.select_related('created_by'), pk=pk)
    if request.method == 'GET':
        return success_response(LevySerializer(levy).data)

    require_capability(request.user, Capability.OBLIGATIONS_MANAGE, 'Access denied. Only administrators can update levies.')
    serializer = LevySerializer(levy, data=request.data, partial=True)
    if serializer.is_valid():
        levy = serializer.save()
        return success_response(LevySerializer(levy).data, message='Levy updated successfully.')
    return error_response(validation_message(serializer.errors), errors=serializer.errors)


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasCapability(Capability.OBLIGATIONS_MANAGE)])
def levy_assign_api(request, pk):
    levy = get_object_or_404(Levy, pk=pk)
    targets = parse_assignment_targets(request.data)
    if not targets:
        return error_response('Specify members to assign: "all" or a list of user ids.')

    assignment = LedgerService.assign_obligation(levy, targets)
    if not assignment['assigned'] and assignment['skipped']:
        raise Conflict('This levy is already assigned to every selected member.')
    return success_response(assignment, message=f"Levy assigned to {assignment['assigned']} member(s).")


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasCapability(Capability.OBLIGATIONS_MANAGE)])
def member_levy_list_api(request):
    member_levies = MemberLevy.objects.select_related('user', 'levy', 'levy__created_by')
    user_id = request.query_params.get('userId', '').strip()
    if user_id:
        member_levies = member_levies.filter(user_id=parse_id(user_id, 'userId'))
    levy_id = request.query_params.get('levyId', '').strip()
    if levy_id:
        member_levies = member_levies.filter(levy_id=parse_id(levy_id, 'levyId'))
    member_levies = apply_list_filters(member_levies, request, search_fields=MEMBER_LEVY_SEARCH_FIELDS)
    return success_response(MemberLevySerializer(member_levies, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_levies_api(request):
    member_levies = MemberLevy.objects.filter(user=request.user).select_related('user', 'levy', 'levy__created_by')
    member_levies = apply_list_filters(member_levies, request, search_fields=['levy__title'])
    return success_response(MemberLevySerializer(member_levies, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_levies_api(request, user_id):
    require_self_or(request.user, user_id, Capability.MEMBERS_READ)
    member = get_member_or_404(user_id)
    member_levies = MemberLevy.objects.filter(user=member).select_related('user', 'levy', 'levy__created_by')
    member_levies = apply_list_filters(member_levies, request, search_fields=['levy__title'])
    return success_response(MemberLevySerializer(member_levies, many=True).data)
