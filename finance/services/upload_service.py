"""
Bulk CSV imports.

Every row is applied in its own savepoint: a bad row is reported back with
its line number and the rest of the file still goes in.
"""
import csv
import io
import logging

from django.conf import settings
from django.db import transaction
from rest_framework.exceptions import APIException

from finance.exceptions import InvalidRequest
from finance.models import Due, Transaction, TransactionType, User
from finance.serializers import DueSerializer, PaymentCreateSerializer, TransactionSerializer
from finance.services.ledger_service import LedgerService
from finance.views.helpers import validation_message

logger = logging.getLogger(__name__)

UPLOAD_KINDS = ('dues', 'payments', 'income', 'expenses')


class RowError(Exception):
    pass


def read_csv(uploaded_file):
    """Decode an uploaded CSV into a list of dicts with stripped keys and values"""
    if uploaded_file is None:
        raise InvalidRequest('Attach a CSV file in the "file" field.')
    if not uploaded_file.name.lower().endswith('.csv'):
        raise InvalidRequest('Only .csv files are supported.')
    if uploaded_file.size > settings.BULK_UPLOAD_MAX_SIZE:
        raise InvalidRequest(f"File is larger than the {settings.BULK_UPLOAD_MAX_SIZE} byte limit.")

    try:
        text = uploaded_file.read().decode('utf-8-sig')
    except UnicodeDecodeError:
        raise InvalidRequest('The file must be UTF-8 encoded.')

    reader = csv.DictReader(io.StringIO(text))
    if not reader.fieldnames:
        raise InvalidRequest('The file is empty.')
    return [
        {(key or '').strip(): (value or '').strip() for key, value in row.items()}
        for row in reader
    ]


def _validated(serializer):
    if not serializer.is_valid():
        raise RowError(validation_message(serializer.errors))
    return serializer.validated_data


def _import_due(row, actor):
    serializer = DueSerializer(data={
        'name': row.get('name'),
        'amount': row.get('amount'),
        'dueDate': row.get('dueDate') or None,
        'description': row.get('description', ''),
    })
    _validated(serializer)
    serializer.save(created_by=actor)


def _import_payment(row, actor):
    email = row.get('email', '').lower()
    member = User.objects.filter(email__iexact=email, is_active=True).first()
    if member is None:
        raise RowError(f"No active user with email '{email}'.")
    data = _validated(PaymentCreateSerializer(data={
        'amount': row.get('amount'),
        'paymentType': row.get('paymentType'),
        'relatedItem': row.get('relatedItem') or None,
        'paymentDate': row.get('paymentDate') or None,
        'paymentMethod': row.get('paymentMethod') or 'cash',
        'description': row.get('description', ''),
    }))
    LedgerService.record_payment(
        user=member,
        amount=data['amount'],
        payment_type=data['paymentType'],
        recorded_by=actor,
        related_item_id=data.get('relatedItem'),
        paid_by_admin=True,
        description=data.get('description', ''),
        payment_date=data.get('paymentDate'),
        payment_method=data.get('paymentMethod'),
    )


def _transaction_importer(transaction_type):
    def _import(row, actor):
        serializer = TransactionSerializer(data={
            'title': row.get('title'),
            'amount': row.get('amount'),
            'type': transaction_type,
            'category': row.get('category') or 'Uncategorized',
            'description': row.get('description', ''),
            'date': row.get('date') or None,
        })
        _validated(serializer)
        serializer.save(recorded_by=actor)
    return _import


IMPORTERS = {
    'dues': _import_due,
    'payments': _import_payment,
    'income': _transaction_importer(TransactionType.INCOME),
    'expenses': _transaction_importer(TransactionType.EXPENSE),
}


def import_rows(kind, rows, actor):
    """
    Apply ``rows`` for upload ``kind``.

    Returns:
        dict: {'created': int, 'skipped': int, 'errors': [{'row': int, 'message': str}]}
    """
    importer = IMPORTERS.get(kind)
    if importer is None:
        raise InvalidRequest(f"Unknown upload type '{kind}'. Use one of: {', '.join(UPLOAD_KINDS)}.")

    result = {'created': 0, 'skipped': 0, 'errors': []}
    # Line 1 is the header row
    for line_number, row in enumerate(rows, start=2):
        if not any(row.values()):
            continue
        try:
            with transaction.atomic():
                importer(row, actor)
            result['created'] += 1
        except RowError as e:
            result['skipped'] += 1
            result['errors'].append({'row': line_number, 'message': str(e)})
        except APIException as e:
            result['skipped'] += 1
            result['errors'].append({'row': line_number, 'message': str(e.detail)})

    logger.info(
        f"Bulk {kind} upload by {actor.email}: {result['created']} created, {result['skipped']} skipped"
    )
    return result
