import logging

from django.shortcuts import get_object_or_404
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework import status

from finance.exceptions import Conflict, Forbidden
from finance.models import Donation, PaymentStatus
from finance.permissions import Capability, can
from finance.responses import success_response, error_response
from finance.serializers import DonationSerializer
from finance.filter_helpers import apply_list_filters
from finance.views.helpers import get_member_or_404, parse_id, require_owner_or, validation_message

logger = logging.getLogger(__name__)

DONATION_SEARCH_FIELDS = ['purpose', 'description', 'user__email', 'user__first_name', 'user__last_name']


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def donation_list_create_api(request):
    """
    GET: every donation (``donations.manage``).
    POST: declare a donation; it is settled by a donation payment referencing it.
    """
    if request.method == 'GET':
        if not can(request.user, Capability.DONATIONS_MANAGE):
            return error_response(
                'Access denied. Use /donations/my-donations to see your own donations.',
                status.HTTP_403_FORBIDDEN
            )
        donations = apply_list_filters(
            Donation.objects.select_related('user'), request,
            search_fields=DONATION_SEARCH_FIELDS, date_field='donation_date'
        )
        return success_response(DonationSerializer(donations, many=True).data)

    owner = request.user
    user_id = request.data.get('userId')
    if user_id and parse_id(user_id, 'userId') != request.user.pk:
        if not can(request.user, Capability.DONATIONS_MANAGE):
            raise Forbidden('Access denied. Members can only record their own donations.')
        owner = get_member_or_404(user_id)

    serializer = DonationSerializer(data=request.data)
    if serializer.is_valid():
        donation = serializer.save(user=owner, status=PaymentStatus.PENDING)
        logger.info(f"Donation #{donation.pk} of {donation.amount} declared for {owner.email}")
        return success_response(
            DonationSerializer(donation).data,
            message='Donation recorded successfully.',
            status_code=status.HTTP_201_CREATED
        )
    return error_response(validation_message(serializer.errors), errors=serializer.errors)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_donations_api(request):
    donations = apply_list_filters(
        Donation.objects.filter(user=request.user).select_related('user'), request,
        search_fields=['purpose', 'description'], date_field='donation_date'
    )
    return success_response(DonationSerializer(donations, many=True).data)


@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([IsAuthenticated])
def donation_detail_api(request, pk):
    donation = get_object_or_404(Donation.objects.select_related('user'), pk=pk)
    if request.method == 'GET':
        require_owner_or(request.user, donation, Capability.DONATIONS_MANAGE)
        return success_response(DonationSerializer(donation).data)

    if not can(request.user, Capability.DONATIONS_MANAGE):
        raise Forbidden('Access denied. Only administrators can update donations.')
    if donation.status != PaymentStatus.PENDING:
        raise Conflict(f"This donation is already {donation.status} and can no longer be changed.")

    serializer = DonationSerializer(donation, data=request.data, partial=True)
    if serializer.is_valid():
        donation = serializer.save()
        return success_response(DonationSerializer(donation).data, message='Donation updated successfully.')
    return error_response(validation_message(serializer.errors), errors=serializer.errors)
