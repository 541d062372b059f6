from django.shortcuts import get_object_or_404
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework import status

from finance.models import Loan, LoanStatus
from finance.permissions import Capability, HasCapability, LoanAccess
from finance.responses import success_response, error_response
from finance.serializers import LoanSerializer, RejectSerializer
from finance.services.ledger_service import LedgerService
from finance.filter_helpers import apply_list_filters
from finance.views.helpers import get_member_or_404, require_owner_or, require_self_or, validation_message

LOAN_SEARCH_FIELDS = ['purpose', 'user__email', 'user__first_name', 'user__last_name', 'user__membership_id']
LOAN_RELATIONS = ('user', 'approved_by')


def filter_loans(queryset, request):
    return apply_list_filters(
        queryset.select_related(*LOAN_RELATIONS), request,
        search_fields=LOAN_SEARCH_FIELDS, date_field='application_date'
    )


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasCapability(Capability.LOANS_READ)])
def loan_list_api(request):
    """List every loan (admin level 2 and above)"""
    loans = filter_loans(Loan.objects.all(), request)
    return success_response(LoanSerializer(loans, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasCapability(Capability.LOANS_READ)])
def active_loan_list_api(request):
    """Approved loans that are not yet repaid"""
    loans = filter_loans(Loan.objects.filter(status=LoanStatus.APPROVED), request)
    return success_response(LoanSerializer(loans, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, LoanAccess])
def my_loans_api(request):
    loans = filter_loans(Loan.objects.filter(user=request.user), request)
    return success_response(LoanSerializer(loans, many=True).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, LoanAccess])
def loan_apply_api(request):
    """Apply for a loan at the organisation's current default interest rate"""
    serializer = LoanSerializer(data=request.data)
    if not serializer.is_valid():
        return error_response(validation_message(serializer.errors), errors=serializer.errors)

    loan = LedgerService.apply_for_loan(
        request.user, serializer.validated_data['amount'], serializer.validated_data['purpose']
    )
    return success_response(
        LoanSerializer(loan).data,
        message='Loan application submitted successfully.',
        status_code=status.HTTP_201_CREATED
    )


@api_view(['GET'])
@permission_classes([IsAuthenticated, LoanAccess])
def member_loans_api(request, user_id):
    require_self_or(request.user, user_id, Capability.LOANS_READ)
    member = get_member_or_404(user_id)
    loans = filter_loans(Loan.objects.filter(user=member), request)
    return success_response(LoanSerializer(loans, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, LoanAccess])
def loan_detail_api(request, pk):
    loan = get_object_or_404(Loan.objects.select_related(*LOAN_RELATIONS), pk=pk)
    require_owner_or(request.user, loan, Capability.LOANS_READ, 'Access denied. You can only view your own loans.')
    return success_response(LoanSerializer(loan).data)


@api_view(['PUT', 'PATCH'])
@permission_classes([IsAuthenticated, HasCapability(Capability.LOANS_MANAGE)])
def loan_approve_api(request, pk):
    loan = LedgerService.approve_loan(pk, request.user)
    return success_response(LoanSerializer(loan).data, message='Loan approved successfully.')


@api_view(['PUT', 'PATCH'])
@permission_classes([IsAuthenticated, HasCapability(Capability.LOANS_MANAGE)])
def loan_reject_api(request, pk):
    serializer = RejectSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    loan = LedgerService.reject_loan(pk, request.user, serializer.validated_data['reason'])
    return success_response(LoanSerializer(loan).data, message='Loan rejected.')


@api_view(['PUT', 'PATCH'])
@permission_classes([IsAuthenticated, HasCapability(Capability.LOANS_MANAGE)])
def loan_mark_paid_api(request, pk):
    loan = LedgerService.mark_loan_paid(pk, request.user)
    return success_response(LoanSerializer(loan).data, message='Loan marked as paid.')
