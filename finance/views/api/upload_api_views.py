from rest_framework.decorators import api_view, parser_classes, permission_classes
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework import status

from finance.permissions import Capability, HasCapability
from finance.responses import success_response
from finance.services.upload_service import import_rows, read_csv


@api_view(['POST'])
@parser_classes([MultiPartParser, FormParser])
@permission_classes([IsAuthenticated, HasCapability(Capability.UPLOADS_BULK)])
def bulk_upload_api(request, kind):
    """
    Import dues, payments, income or expenses from a CSV upload (super admin).

    Expected columns:
        dues: name, amount, dueDate, description
        payments: email, amount, paymentType, relatedItem, paymentDate, paymentMethod, description
        income / expenses: title, amount, category, date, description
    """
    rows = read_csv(request.FILES.get('file'))
    result = import_rows(kind, rows, request.user)
    status_code = status.HTTP_201_CREATED if result['created'] else status.HTTP_200_OK
    return success_response(
        result,
        message=f"{result['created']} row(s) imported, {result['skipped']} skipped.",
        status_code=status_code
    )
