import logging

from django.db import transaction
from django.shortcuts import get_object_or_404
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework import status

from finance.exceptions import Conflict
from finance.models import Due, MemberDue
from finance.permissions import Capability, HasCapability
from finance.responses import success_response, error_response
from finance.serializers import DueSerializer, MemberDueSerializer
from finance.services.ledger_service import LedgerService
from finance.filter_helpers import apply_list_filters
from finance.views.helpers import (
    get_member_or_404, parse_assignment_targets, parse_id, require_capability, require_self_or, validation_message
)

logger = logging.getLogger(__name__)

MEMBER_DUE_SEARCH_FIELDS = ['user__email', 'user__first_name', 'user__last_name', 'due__name']


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def due_list_create_api(request):
    """
    GET: list due templates (any authenticated user).
    POST: create a due and optionally assign it (``members``, or ``assignToAll``/``selectedMembers``).
    """
    if request.method == 'GET':
        dues = apply_list_filters(
            Due.objects.select_related('created_by'), request,
            search_fields=['name', 'description'], date_field='due_date', status_field=None
        )
        return success_response(DueSerializer(dues, many=True).data)

    require_capability(request.user, Capability.OBLIGATIONS_MANAGE, 'Access denied. Only administrators can create dues.')
    serializer = DueSerializer(data=request.data)
    if not serializer.is_valid():
        return error_response(validation_message(serializer.errors), errors=serializer.errors)

    targets = parse_assignment_targets(request.data)
    with transaction.atomic():
        due = serializer.save(created_by=request.user)
        assignment = LedgerService.assign_obligation(due, targets) if targets else {'assigned': 0, 'skipped': 0}

    logger.info(f"Due #{due.pk} '{due.name}' created by {request.user.email}")
    return success_response(
        {**DueSerializer(due).data, 'assignment': assignment},
        message='Due created successfully.',
        status_code=status.HTTP_201_CREATED
    )


@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([IsAuthenticated])
def due_detail_api(request, pk):
    """Get or update a due template. Existing member dues keep their assigned amount."""
    due = get_object_or_404(Due.objects.select_related('created_by'), pk=pk)
    if request.method == 'GET':
        return success_response(DueSerializer(due).data)

    require_capability(request.user, Capability.OBLIGATIONS_MANAGE, 'Access denied. Only administrators can update dues.')
    serializer = DueSerializer(due, data=request.data, partial=True)
    if serializer.is_valid():
        due = serializer.save()
        return success_response(DueSerializer(due).data, message='Due updated successfully.')
    return error_response(validation_message(serializer.errors), errors=serializer.errors)


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasCapability(Capability.OBLIGATIONS_MANAGE)])
def due_assign_api(request, pk):
    due = get_object_or_404(Due, pk=pk)
    targets = parse_assignment_targets(request.data)
    if not targets:
        return error_response('Specify members to assign: "all" or a list of user ids.')

    assignment = LedgerService.assign_obligation(due, targets)
    if not assignment['assigned'] and assignment['skipped']:
        raise Conflict('This due is already assigned to every selected member.')
    return success_response(assignment, message=f"Due assigned to {assignment['assigned']} member(s).")


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasCapability(Capability.OBLIGATIONS_MANAGE)])
def member_due_list_api(request):
    """All member dues, filterable by ``status``, ``userId``, ``dueId`` and ``search``"""
    member_dues = MemberDue.objects.select_related('user', 'due', 'due__created_by')
    user_id = request.query_params.get('userId', '').strip()
    if user_id:
        member_dues = member_dues.filter(user_id=parse_id(user_id, 'userId'))
    due_id = request.query_params.get('dueId', '').strip()
    if due_id:
        member_dues = member_dues.filter(due_id=parse_id(due_id, 'dueId'))
    member_dues = apply_list_filters(member_dues, request, search_fields=MEMBER_DUE_SEARCH_FIELDS)
    return success_response(MemberDueSerializer(member_dues, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_dues_api(request):
    member_dues = MemberDue.objects.filter(user=request.user).select_related('user', 'due', 'due__created_by')
    member_dues = apply_list_filters(member_dues, request, search_fields=['due__name'])
    return success_response(MemberDueSerializer(member_dues, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_dues_api(request, user_id):
    require_self_or(request.user, user_id, Capability.MEMBERS_READ)
    member = get_member_or_404(user_id)
    member_dues = MemberDue.objects.filter(user=member).select_related('user', 'due', 'due__created_by')
    member_dues = apply_list_filters(member_dues, request, search_fields=['due__name'])
    return success_response(MemberDueSerializer(member_dues, many=True).data)
