"""
Report builders and CSV/Excel exporters.

Each builder returns a ``Report`` of column headers, rows (lists of cell
values in header order) and a summary dict; the exporters only format it.
"""
import csv
import logging
from collections import namedtuple
from decimal import Decimal
from io import BytesIO

from django.db.models import Q, Sum
from django.db.models.functions import Coalesce
from django.http import HttpResponse
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from finance.exceptions import InvalidRequest
from finance.models import (
    User, UserRole, MemberDue, Loan, Payment, PaymentStatus, Transaction
)
from finance.services.ledger_service import LedgerService
from finance.filter_helpers import apply_date_filter

logger = logging.getLogger(__name__)

Report = namedtuple('Report', ['name', 'title', 'headers', 'rows', 'summary'])

REPORT_FORMATS = ('json', 'csv', 'excel')


def financial_report(start_date=None, end_date=None):
    transactions = apply_date_filter(
        Transaction.objects.select_related('recorded_by'), 'date', start_date, end_date
    ).order_by('date', 'pk')
    rows = [
        [entry.date, entry.title, entry.type, entry.category, entry.amount,
         entry.recorded_by.email if entry.recorded_by else '']
        for entry in transactions
    ]
    return Report(
        'financial', 'Financial Report',
        ['Date', 'Title', 'Type', 'Category', 'Amount', 'Recorded By'],
        rows,
        LedgerService.aggregate(start_date=start_date, end_date=end_date),
    )


def members_report(start_date=None, end_date=None):
    payment_window = Q(payments__status=PaymentStatus.APPROVED)
    if start_date:
        payment_window &= Q(payments__payment_date__gte=start_date)
    if end_date:
        payment_window &= Q(payments__payment_date__lte=end_date)

    members = User.objects.filter(role=UserRole.MEMBER).annotate(
        total_paid=Coalesce(Sum('payments__amount', filter=payment_window), Decimal('0.00')),
    ).order_by('first_name', 'last_name', 'email')

    dues_outstanding = dict(
        MemberDue.objects.values('user_id').annotate(total=Sum('balance')).values_list('user_id', 'total')
    )
    rows = [
        [member.membership_id or '', member.get_full_name(), member.email, member.phone_number,
         'Active' if member.is_active else 'Inactive',
         dues_outstanding.get(member.pk, Decimal('0.00')), member.total_paid]
        for member in members
    ]
    return Report(
        'members', 'Members Report',
        ['Membership ID', 'Name', 'Email', 'Phone', 'Status', 'Dues Outstanding', 'Total Paid'],
        rows,
        {
            'totalMembers': len(rows),
            'activeMembers': sum(1 for member in members if member.is_active),
        },
    )


def payments_report(start_date=None, end_date=None):
    payments = apply_date_filter(
        Payment.objects.select_related('user', 'approved_by'), 'payment_date', start_date, end_date
    ).order_by('payment_date', 'pk')
    rows = [
        [payment.pk, payment.payment_date, payment.user.email, payment.payment_type, payment.payment_method,
         payment.amount, payment.status, payment.approved_by.email if payment.approved_by else '']
        for payment in payments
    ]
    return Report(
        'payments', 'Payments Report',
        ['ID', 'Date', 'Member', 'Type', 'Method', 'Amount', 'Status', 'Processed By'],
        rows,
        {
            'count': len(rows),
            'totalApproved': sum((p.amount for p in payments if p.status == PaymentStatus.APPROVED), Decimal('0.00')),
            'totalPending': sum((p.amount for p in payments if p.status == PaymentStatus.PENDING), Decimal('0.00')),
        },
    )


def dues_report(start_date=None, end_date=None):
    member_dues = apply_date_filter(
        MemberDue.objects.select_related('user', 'due'), 'created_at', start_date, end_date
    ).order_by('due__name', 'user__email')
    rows = [
        [member_due.due.name, member_due.user.email, member_due.amount, member_due.amount_paid,
         member_due.balance, member_due.status]
        for member_due in member_dues
    ]
    return Report(
        'dues', 'Dues Report',
        ['Due', 'Member', 'Amount', 'Amount Paid', 'Balance', 'Status'],
        rows,
        LedgerService.obligation_summary(member_dues),
    )


def loans_report(start_date=None, end_date=None):
    loans = apply_date_filter(
        Loan.objects.select_related('user'), 'application_date', start_date, end_date
    ).order_by('application_date', 'pk')
    rows = [
        [loan.pk, loan.user.email, loan.amount, loan.interest_rate, loan.total_payable, loan.status,
         loan.application_date, loan.approval_date, loan.repayment_date]
        for loan in loans
    ]
    return Report(
        'loans', 'Loans Report',
        ['ID', 'Member', 'Amount', 'Interest Rate', 'Total Payable', 'Status',
         'Applied', 'Approved', 'Repaid'],
        rows,
        {'count': len(rows), 'totalAmount': sum((loan.amount for loan in loans), Decimal('0.00'))},
    )


REPORT_BUILDERS = {
    'financial': financial_report,
    'members': members_report,
    'payments': payments_report,
    'dues': dues_report,
    'loans': loans_report,
}


def build_report(report_type, start_date=None, end_date=None):
    builder = REPORT_BUILDERS.get(report_type)
    if builder is None:
        raise InvalidRequest(f"Unknown report '{report_type}'. Use one of: {', '.join(REPORT_BUILDERS)}.")
    report = builder(start_date, end_date)
    logger.info(f"Built {report_type} report with {len(report.rows)} row(s) for {start_date or 'start'}..{end_date or 'today'}")
    return report


def report_filename(report, start_date, end_date, extension):
    period = 'all'
    if start_date or end_date:
        period = f"{start_date.strftime('%Y%m%d') if start_date else 'start'}_{end_date.strftime('%Y%m%d') if end_date else 'today'}"
    return f"{report.name}_report_{period}.{extension}"


def report_as_dict(report):
    return {
        'report': report.name,
        'title': report.title,
        'summary': report.summary,
        'rows': [dict(zip(report.headers, row)) for row in report.rows],
    }


def create_csv_response(report, filename):
    """Create an HTTP response for CSV file download"""
    response = HttpResponse(content_type='text/csv')
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    writer = csv.writer(response)
    writer.writerow(report.headers)
    for row in report.rows:
        writer.writerow(['' if value is None else value for value in row])
    return response


def create_excel_response(report, filename):
    """Create an HTTP response for Excel file download"""
    workbook = Workbook()
    worksheet = workbook.active
    worksheet.title = report.title[:31]

    header_fill = PatternFill(start_color='1F4E78', end_color='1F4E78', fill_type='solid')
    header_font = Font(bold=True, color='FFFFFF', size=11)
    worksheet.append(report.headers)
    for col_num in range(1, len(report.headers) + 1):
        cell = worksheet.cell(row=1, column=col_num)
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = Alignment(horizontal='center', vertical='center')

    for row in report.rows:
        worksheet.append(row)

    for col_num, header in enumerate(report.headers, 1):
        values = [header] + [row[col_num - 1] for row in report.rows]
        width = max(len(str(value)) for value in values if value is not None)
        worksheet.column_dimensions[get_column_letter(col_num)].width = min(max(width + 2, 10), 50)
        if any(isinstance(row[col_num - 1], Decimal) for row in report.rows):
            for row_num in range(2, len(report.rows) + 2):
                worksheet.cell(row=row_num, column=col_num).number_format = '#,##0.00'

    output = BytesIO()
    workbook.save(output)
    output.seek(0)

    response = HttpResponse(
        output.read(),
        content_type='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
    )
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    return response
