from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from finance.models import Payment
from finance.permissions import Capability, can
from finance.responses import success_response
from finance.serializers import PaymentSerializer
from finance.services.ledger_service import LedgerService
from finance.views.api.payment_api_views import visible_payments
from finance.filter_helpers import date_bounds_from_request


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def dashboard_api(request):
    """
    Financial summary for ``startDate``..``endDate``.

    Administrators see organisation-wide figures; everyone else sees only
    their own records. Loan figures are included for ``loans.read`` holders
    and for a member's own loans.
    """
    user = request.user
    start_date, end_date = date_bounds_from_request(request)
    organisation_wide = can(user, Capability.DASHBOARD_ADMIN)

    if organisation_wide:
        summary = LedgerService.aggregate(
            start_date=start_date, end_date=end_date, include_loans=can(user, Capability.LOANS_READ)
        )
        recent = visible_payments(user)
    else:
        summary = LedgerService.aggregate(user=user, start_date=start_date, end_date=end_date)
        recent = Payment.objects.filter(user=user)

    recent = recent.select_related('user', 'approved_by', 'recorded_by').order_by('-created_at')[:10]
    summary['recentPayments'] = PaymentSerializer(recent, many=True).data
    summary['scope'] = 'organisation' if organisation_wide else 'member'
    summary['startDate'] = start_date
    summary['endDate'] = end_date
    return success_response(summary)
