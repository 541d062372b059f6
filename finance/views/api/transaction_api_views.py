from decimal import Decimal

from django.db.models import Sum
from django.db.models.functions import Coalesce
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework import status

from finance.models import PaymentType, Transaction, TransactionType
from finance.permissions import Capability, HasCapability, can
from finance.responses import success_response, error_response
from finance.serializers import TransactionSerializer
from finance.filter_helpers import apply_date_filter, apply_list_filters, date_bounds_from_request
from finance.views.helpers import validation_message

TRANSACTION_SEARCH_FIELDS = ['title', 'category', 'description']


def visible_transactions(user):
    """Entries booked from loan repayments are only visible to ``loans.read`` holders"""
    queryset = Transaction.objects.all()
    if not can(user, Capability.LOANS_READ):
        queryset = queryset.exclude(related_payment__payment_type=PaymentType.LOAN_REPAYMENT)
    return queryset


def filter_transactions(queryset, request):
    category = request.query_params.get('category', '').strip()
    if category:
        queryset = queryset.filter(category__iexact=category)
    return apply_list_filters(
        queryset.select_related('recorded_by'), request,
        search_fields=TRANSACTION_SEARCH_FIELDS, date_field='date', status_field=None
    )


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, HasCapability(Capability.TRANSACTIONS_MANAGE)])
def transaction_list_create_api(request):
    """List ledger transactions (``type`` filter) or record an income/expense entry"""
    if request.method == 'GET':
        transactions = visible_transactions(request.user)
        transaction_type = request.query_params.get('type', '').strip().lower()
        if transaction_type:
            transactions = transactions.filter(type=transaction_type)
        transactions = filter_transactions(transactions, request)
        return success_response(TransactionSerializer(transactions, many=True).data)

    serializer = TransactionSerializer(data=request.data)
    if serializer.is_valid():
        entry = serializer.save(recorded_by=request.user)
        return success_response(
            TransactionSerializer(entry).data,
            message='Transaction recorded successfully.',
            status_code=status.HTTP_201_CREATED
        )
    return error_response(validation_message(serializer.errors), errors=serializer.errors)


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasCapability(Capability.TRANSACTIONS_MANAGE)])
def income_list_api(request):
    transactions = filter_transactions(visible_transactions(request.user).filter(type=TransactionType.INCOME), request)
    return success_response(TransactionSerializer(transactions, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasCapability(Capability.TRANSACTIONS_MANAGE)])
def expense_list_api(request):
    transactions = filter_transactions(visible_transactions(request.user).filter(type=TransactionType.EXPENSE), request)
    return success_response(TransactionSerializer(transactions, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasCapability(Capability.TRANSACTIONS_MANAGE)])
def transaction_summary_api(request):
    """Income, expense and net balance for ``startDate``..``endDate``, broken down by category"""
    start_date, end_date = date_bounds_from_request(request)
    transactions = apply_date_filter(visible_transactions(request.user), 'date', start_date, end_date)

    by_category = {TransactionType.INCOME: [], TransactionType.EXPENSE: []}
    rows = transactions.values('type', 'category').annotate(total=Sum('amount')).order_by('type', 'category')
    for row in rows:
        by_category[row['type']].append({'category': row['category'], 'total': row['total']})

    total_income = transactions.filter(type=TransactionType.INCOME).aggregate(
        total=Coalesce(Sum('amount'), Decimal('0.00')))['total']
    total_expense = transactions.filter(type=TransactionType.EXPENSE).aggregate(
        total=Coalesce(Sum('amount'), Decimal('0.00')))['total']

    return success_response({
        'startDate': start_date,
        'endDate': end_date,
        'totalIncome': total_income,
        'totalExpense': total_expense,
        'netBalance': total_income - total_expense,
        'incomeByCategory': by_category[TransactionType.INCOME],
        'expenseByCategory': by_category[TransactionType.EXPENSE],
    })
