from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from finance.exceptions import InvalidRequest
from finance.permissions import Capability, HasCapability
from finance.responses import success_response
from finance.services.report_service import (
    REPORT_FORMATS, build_report, create_csv_response, create_excel_response,
    report_as_dict, report_filename
)
from finance.filter_helpers import date_bounds_from_request


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasCapability(Capability.REPORTS_GENERATE)])
def report_api(request, report_type, export_format):
    """Generate a report as json, csv or excel (``?startDate=&endDate=`` or ``?period=``)"""
    if export_format not in REPORT_FORMATS:
        raise InvalidRequest(f"Unknown format '{export_format}'. Use one of: {', '.join(REPORT_FORMATS)}.")

    start_date, end_date = date_bounds_from_request(request)
    report = build_report(report_type, start_date, end_date)

    if export_format == 'csv':
        return create_csv_response(report, report_filename(report, start_date, end_date, 'csv'))
    if export_format == 'excel':
        return create_excel_response(report, report_filename(report, start_date, end_date, 'xlsx'))

    return success_response({
        **report_as_dict(report),
        'startDate': start_date,
        'endDate': end_date,
    })
