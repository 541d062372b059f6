import logging

from django.db.models import Q
from django.shortcuts import get_object_or_404
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework import status

from finance.exceptions import Conflict, Forbidden, InvalidRequest
from finance.models import Payment, PaymentStatus, PaymentType
from finance.permissions import Capability, HasCapability, can, is_owner
from finance.responses import success_response, error_response
from finance.serializers import PaymentSerializer, PaymentCreateSerializer, ReceiptSerializer, RejectSerializer
from finance.services.ledger_service import LedgerService
from finance.filter_helpers import apply_list_filters
from finance.views.helpers import get_member_or_404, parse_id, require_self_or, validation_message

logger = logging.getLogger(__name__)

PAYMENT_SEARCH_FIELDS = ['description', 'user__email', 'user__first_name', 'user__last_name', 'user__membership_id']
PAYMENT_RELATIONS = ('user', 'approved_by', 'recorded_by')


def visible_payments(user, queryset=None):
    """Loan repayments are only visible to their owner or to ``loans.read`` holders"""
    queryset = Payment.objects.all() if queryset is None else queryset
    if not can(user, Capability.LOANS_READ):
        queryset = queryset.exclude(Q(payment_type=PaymentType.LOAN_REPAYMENT) & ~Q(user=user))
    return queryset


def filter_payments(queryset, request):
    payment_type = request.query_params.get('paymentType', '').strip().lower()
    if payment_type:
        queryset = queryset.filter(payment_type=payment_type)
    return apply_list_filters(
        queryset.select_related(*PAYMENT_RELATIONS), request,
        search_fields=PAYMENT_SEARCH_FIELDS, date_field='payment_date'
    )


def _record(request, user, paid_by_admin):
    serializer = PaymentCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return error_response(validation_message(serializer.errors), errors=serializer.errors)

    data = serializer.validated_data
    payment = LedgerService.record_payment(
        user=user,
        amount=data['amount'],
        payment_type=data['paymentType'],
        recorded_by=request.user,
        related_item_id=data.get('relatedItem'),
        paid_by_admin=paid_by_admin or data.get('paidByAdmin', False),
        description=data.get('description', ''),
        payment_date=data.get('paymentDate'),
        payment_method=data.get('paymentMethod'),
        receipt_url=data.get('receiptUrl', ''),
    )
    return success_response(
        PaymentSerializer(payment).data,
        message='Payment recorded successfully and is awaiting approval.',
        status_code=status.HTTP_201_CREATED
    )


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def payment_list_create_api(request):
    """
    GET: every payment (``payments.read_all``), filterable by ``status``,
    ``paymentType``, ``userId``, ``search`` and date range.
    POST: record a payment for yourself, or for ``user`` when permitted.
    """
    if request.method == 'GET':
        if not can(request.user, Capability.PAYMENTS_READ_ALL):
            return error_response(
                'Access denied. Use /payments/my-payments to see your own payments.',
                status.HTTP_403_FORBIDDEN
            )
        payments = visible_payments(request.user)
        user_id = request.query_params.get('userId', '').strip()
        if user_id:
            payments = payments.filter(user_id=parse_id(user_id, 'userId'))
        payments = filter_payments(payments, request)
        return success_response(PaymentSerializer(payments, many=True).data)

    user = request.user
    user_id = request.data.get('user')
    if user_id not in (None, ''):
        user = get_member_or_404(user_id)
    return _record(request, user, paid_by_admin=False)


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasCapability(Capability.PAYMENTS_RECORD_FOR_MEMBERS)])
def admin_payment_api(request):
    """Record a payment on a member's behalf (cash received at the desk, etc.)"""
    user_id = request.data.get('user')
    if user_id in (None, ''):
        raise InvalidRequest('user is required when recording a payment for a member.')
    return _record(request, get_member_or_404(user_id), paid_by_admin=True)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_payments_api(request):
    payments = filter_payments(Payment.objects.filter(user=request.user), request)
    return success_response(PaymentSerializer(payments, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def member_payments_api(request, user_id):
    require_self_or(request.user, user_id, Capability.PAYMENTS_READ_ALL)
    member = get_member_or_404(user_id)
    payments = visible_payments(request.user, Payment.objects.filter(user=member))
    payments = filter_payments(payments, request)
    return success_response(PaymentSerializer(payments, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def payment_detail_api(request, pk):
    payment = get_object_or_404(Payment.objects.select_related(*PAYMENT_RELATIONS), pk=pk)
    if not is_owner(request.user, payment):
        if not can(request.user, Capability.PAYMENTS_READ_ALL):
            raise Forbidden('Access denied. You can only view your own payments.')
        if payment.payment_type == PaymentType.LOAN_REPAYMENT and not can(request.user, Capability.LOANS_READ):
            raise Forbidden('Access denied. Your role does not permit viewing loan repayments.')
    return success_response(PaymentSerializer(payment).data)


@api_view(['PUT', 'PATCH'])
@permission_classes([IsAuthenticated])
def payment_approve_api(request, pk):
    payment = LedgerService.approve_payment(pk, request.user)
    return success_response(PaymentSerializer(payment).data, message='Payment approved successfully.')


@api_view(['PUT', 'PATCH'])
@permission_classes([IsAuthenticated])
def payment_reject_api(request, pk):
    serializer = RejectSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    payment = LedgerService.reject_payment(pk, request.user, serializer.validated_data['reason'])
    return success_response(PaymentSerializer(payment).data, message='Payment rejected.')


@api_view(['PUT', 'PATCH'])
@permission_classes([IsAuthenticated])
def payment_receipt_api(request, pk):
    """Attach a receipt URL. Owners may only do so while the payment is pending."""
    payment = get_object_or_404(Payment.objects.select_related(*PAYMENT_RELATIONS), pk=pk)
    if not is_owner(request.user, payment) and not can(request.user, Capability.PAYMENTS_APPROVE):
        raise Forbidden('Access denied. You can only attach receipts to your own payments.')
    if (not is_owner(request.user, payment) and payment.payment_type == PaymentType.LOAN_REPAYMENT
            and not can(request.user, Capability.LOANS_MANAGE)):
        raise Forbidden('Your role does not permit processing loan repayments.')
    if payment.status != PaymentStatus.PENDING and not can(request.user, Capability.PAYMENTS_APPROVE):
        raise Conflict('Receipts can only be attached to pending payments.')

    serializer = ReceiptSerializer(data=request.data)
    if not serializer.is_valid():
        return error_response(validation_message(serializer.errors), errors=serializer.errors)

    payment.receipt_url = serializer.validated_data['receiptUrl']
    payment.save(update_fields=['receipt_url', 'updated_at'])
    return success_response(PaymentSerializer(payment).data, message='Receipt attached successfully.')
