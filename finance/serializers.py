from decimal import Decimal

from django.contrib.auth import authenticate
from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers

from .models import (
    User, UserRole, NotificationPreference, Due, Levy, MemberDue, MemberLevy,
    Pledge, Donation, Loan, Payment, PaymentType, PaymentMethod, Transaction,
    TransactionType, SystemSetting
)
from .permissions import capabilities_for

POSITIVE_AMOUNT = Decimal('0.01')


class LowercaseChoiceField(serializers.ChoiceField):
    """Choice field tolerant of upper-case enum values sent by older clients"""

    def to_internal_value(self, data):
        if isinstance(data, str):
            data = data.strip().lower()
        return super().to_internal_value(data)


class UserSummarySerializer(serializers.ModelSerializer):
    firstName = serializers.CharField(source='first_name', read_only=True)
    lastName = serializers.CharField(source='last_name', read_only=True)
    membershipId = serializers.CharField(source='membership_id', read_only=True)

    class Meta:
        model = User
        fields = ['id', 'email', 'firstName', 'lastName', 'membershipId', 'role']
        read_only_fields = fields


class UserSerializer(serializers.ModelSerializer):
    firstName = serializers.CharField(source='first_name', required=False, allow_blank=True)
    lastName = serializers.CharField(source='last_name', required=False, allow_blank=True)
    phoneNumber = serializers.CharField(source='phone_number', required=False, allow_blank=True)
    membershipId = serializers.CharField(source='membership_id', read_only=True)
    isActive = serializers.BooleanField(source='is_active', read_only=True)
    dateJoined = serializers.DateTimeField(source='date_joined', read_only=True)
    fcmToken = serializers.CharField(source='fcm_token', write_only=True, required=False, allow_null=True, allow_blank=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)
    capabilities = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            'id', 'email', 'firstName', 'lastName', 'phoneNumber', 'address',
            'membershipId', 'role', 'isActive', 'dateJoined', 'fcmToken',
            'capabilities', 'createdAt', 'updatedAt'
        ]
        read_only_fields = ['id', 'email', 'role', 'isActive', 'dateJoined', 'capabilities', 'createdAt', 'updatedAt']

    def get_capabilities(self, obj):
        """Return the sorted capability tags granted to this user's role"""
        return sorted(capabilities_for(obj))


class AdminUserUpdateSerializer(UserSerializer):
    membershipId = serializers.CharField(source='membership_id', required=False, allow_null=True, allow_blank=True)
    isActive = serializers.BooleanField(source='is_active', required=False)

    class Meta(UserSerializer.Meta):
        read_only_fields = ['id', 'email', 'role', 'dateJoined', 'capabilities', 'createdAt', 'updatedAt']

    def validate_membershipId(self, value):
        value = value or None
        if value and User.objects.filter(membership_id=value).exclude(pk=self.instance.pk).exists():
            raise serializers.ValidationError('This membership ID is already in use.')
        return value


class RegisterSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True)
    firstName = serializers.CharField(source='first_name')
    lastName = serializers.CharField(source='last_name')
    phoneNumber = serializers.CharField(source='phone_number', required=False, allow_blank=True)

    class Meta:
        model = User
        fields = ['email', 'password', 'firstName', 'lastName', 'phoneNumber', 'address']
        extra_kwargs = {'address': {'required': False}}

    def validate_email(self, value):
        value = User.objects.normalize_email(value).lower()
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError('A user with this email already exists.')
        return value

    def validate_password(self, value):
        validate_password(value)
        return value

    def create(self, validated_data):
        password = validated_data.pop('password')
        return User.objects.create_user(password=password, role=UserRole.MEMBER, **validated_data)


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)

    def validate(self, attrs):
        email = attrs.get('email')
        password = attrs.get('password')

        existing = User.objects.filter(email__iexact=email).first()
        if existing is not None and not existing.is_active and existing.check_password(password):
            raise serializers.ValidationError('User account is deactivated. Please contact an administrator.')

        user = authenticate(request=self.context.get('request'), email=email.lower(), password=password)
        if not user:
            raise serializers.ValidationError('Invalid email or password.')
        attrs['user'] = user
        return attrs


class ChangePasswordSerializer(serializers.Serializer):
    currentPassword = serializers.CharField(write_only=True)
    newPassword = serializers.CharField(write_only=True)

    def validate_currentPassword(self, value):
        user = self.context['request'].user
        if not user.check_password(value):
            raise serializers.ValidationError('Current password is incorrect.')
        return value

    def validate_newPassword(self, value):
        validate_password(value, self.context['request'].user)
        return value


class RoleUpdateSerializer(serializers.Serializer):
    role = LowercaseChoiceField(choices=UserRole.choices)


class NotificationPreferenceSerializer(serializers.ModelSerializer):
    emailNotifications = serializers.BooleanField(source='email_notifications', required=False)
    smsNotifications = serializers.BooleanField(source='sms_notifications', required=False)
    dueReminders = serializers.BooleanField(source='due_reminders', required=False)
    paymentConfirmations = serializers.BooleanField(source='payment_confirmations', required=False)
    loanUpdates = serializers.BooleanField(source='loan_updates', required=False)

    class Meta:
        model = NotificationPreference
        fields = ['emailNotifications', 'smsNotifications', 'dueReminders', 'paymentConfirmations', 'loanUpdates']


class SystemSettingSerializer(serializers.ModelSerializer):
    paymentReminders = serializers.BooleanField(source='payment_reminders', required=False)
    paymentConfirmations = serializers.BooleanField(source='payment_confirmations', required=False)
    loanUpdates = serializers.BooleanField(source='loan_updates', required=False)
    newMemberNotifications = serializers.BooleanField(source='new_member_notifications', required=False)
    monthlySummary = serializers.BooleanField(source='monthly_summary', required=False)
    defaultLoanInterestRate = serializers.DecimalField(
        source='default_loan_interest_rate', max_digits=5, decimal_places=2,
        min_value=Decimal('0.00'), max_value=Decimal('100.00'), required=False
    )
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = SystemSetting
        fields = [
            'paymentReminders', 'paymentConfirmations', 'loanUpdates',
            'newMemberNotifications', 'monthlySummary', 'defaultLoanInterestRate', 'updatedAt'
        ]


class DueSerializer(serializers.ModelSerializer):
    amount = serializers.DecimalField(max_digits=15, decimal_places=2, min_value=POSITIVE_AMOUNT)
    dueDate = serializers.DateField(source='due_date', required=False, allow_null=True)
    isRecurring = serializers.BooleanField(source='is_recurring', required=False)
    createdBy = UserSummarySerializer(source='created_by', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = Due
        fields = [
            'id', 'name', 'amount', 'dueDate', 'description', 'isRecurring',
            'frequency', 'createdBy', 'createdAt', 'updatedAt'
        ]
        extra_kwargs = {'description': {'required': False}, 'frequency': {'required': False}}

    def to_internal_value(self, data):
        # Clients send full ISO datetimes for dueDate
        if hasattr(data, 'get') and isinstance(data.get('dueDate'), str) and 'T' in data['dueDate']:
            data = data.copy()
            data['dueDate'] = data['dueDate'].split('T', 1)[0]
        return super().to_internal_value(data)


class LevySerializer(serializers.ModelSerializer):
    amount = serializers.DecimalField(max_digits=15, decimal_places=2, min_value=POSITIVE_AMOUNT)
    startDate = serializers.DateField(source='start_date', required=False)
    endDate = serializers.DateField(source='end_date', required=False, allow_null=True)
    isActive = serializers.BooleanField(source='is_active', required=False)
    createdBy = UserSummarySerializer(source='created_by', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = Levy
        fields = [
            'id', 'title', 'amount', 'description', 'startDate', 'endDate',
            'isActive', 'createdBy', 'createdAt', 'updatedAt'
        ]
        extra_kwargs = {'description': {'required': False}}

    def validate(self, attrs):
        start = attrs.get('start_date', getattr(self.instance, 'start_date', None))
        end = attrs.get('end_date', getattr(self.instance, 'end_date', None))
        if start and end and end < start:
            raise serializers.ValidationError({'endDate': 'End date cannot be before start date.'})
        return attrs


class MemberDueSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)
    due = DueSerializer(read_only=True)
    amountPaid = serializers.DecimalField(source='amount_paid', max_digits=15, decimal_places=2, read_only=True)
    paymentId = serializers.IntegerField(source='payment_id', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = MemberDue
        fields = ['id', 'user', 'due', 'amount', 'amountPaid', 'balance', 'status', 'paymentId', 'createdAt', 'updatedAt']
        read_only_fields = fields


class MemberLevySerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)
    levy = LevySerializer(read_only=True)
    amountPaid = serializers.DecimalField(source='amount_paid', max_digits=15, decimal_places=2, read_only=True)
    paymentId = serializers.IntegerField(source='payment_id', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = MemberLevy
        fields = ['id', 'user', 'levy', 'amount', 'amountPaid', 'balance', 'status', 'paymentId', 'createdAt', 'updatedAt']
        read_only_fields = fields


class PledgeSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)
    amount = serializers.DecimalField(max_digits=15, decimal_places=2, min_value=POSITIVE_AMOUNT)
    pledgeDate = serializers.DateField(source='pledge_date', required=False)
    fulfillmentDate = serializers.DateField(source='fulfillment_date', required=False, allow_null=True)
    paymentId = serializers.IntegerField(source='payment_id', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = Pledge
        fields = [
            'id', 'user', 'amount', 'title', 'description', 'pledgeDate',
            'fulfillmentDate', 'status', 'paymentId', 'createdAt', 'updatedAt'
        ]
        read_only_fields = ['id', 'user', 'status', 'paymentId', 'createdAt', 'updatedAt']
        extra_kwargs = {'description': {'required': False}}


class DonationSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)
    amount = serializers.DecimalField(max_digits=15, decimal_places=2, min_value=POSITIVE_AMOUNT)
    donationDate = serializers.DateField(source='donation_date', required=False)
    paymentId = serializers.IntegerField(source='payment_id', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = Donation
        fields = [
            'id', 'user', 'amount', 'purpose', 'description', 'donationDate',
            'status', 'paymentId', 'createdAt', 'updatedAt'
        ]
        read_only_fields = ['id', 'user', 'status', 'paymentId', 'createdAt', 'updatedAt']
        extra_kwargs = {'description': {'required': False}}


class LoanSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)
    amount = serializers.DecimalField(max_digits=15, decimal_places=2, min_value=POSITIVE_AMOUNT)
    applicationDate = serializers.DateField(source='application_date', read_only=True)
    approvalDate = serializers.DateField(source='approval_date', read_only=True)
    repaymentDate = serializers.DateField(source='repayment_date', read_only=True)
    interestRate = serializers.DecimalField(source='interest_rate', max_digits=5, decimal_places=2, read_only=True)
    approvedBy = UserSummarySerializer(source='approved_by', read_only=True)
    rejectionReason = serializers.CharField(source='rejection_reason', read_only=True)
    totalPayable = serializers.DecimalField(source='total_payable', max_digits=15, decimal_places=2, read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = Loan
        fields = [
            'id', 'user', 'amount', 'purpose', 'applicationDate', 'approvalDate',
            'repaymentDate', 'interestRate', 'totalPayable', 'status', 'approvedBy',
            'rejectionReason', 'createdAt', 'updatedAt'
        ]
        read_only_fields = ['id', 'user', 'status']


class PaymentSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)
    paymentType = serializers.CharField(source='payment_type', read_only=True)
    relatedItem = serializers.SerializerMethodField()
    paymentDate = serializers.DateField(source='payment_date', read_only=True)
    paymentMethod = serializers.CharField(source='payment_method', read_only=True)
    receiptUrl = serializers.CharField(source='receipt_url', read_only=True)
    approvedBy = UserSummarySerializer(source='approved_by', read_only=True)
    approvedAt = serializers.DateTimeField(source='approved_at', read_only=True)
    rejectionReason = serializers.CharField(source='rejection_reason', read_only=True)
    paidByAdmin = serializers.BooleanField(source='paid_by_admin', read_only=True)
    recordedBy = UserSummarySerializer(source='recorded_by', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = Payment
        fields = [
            'id', 'user', 'amount', 'paymentType', 'relatedItem', 'description',
            'paymentDate', 'paymentMethod', 'receiptUrl', 'status', 'approvedBy',
            'approvedAt', 'rejectionReason', 'paidByAdmin', 'recordedBy',
            'createdAt', 'updatedAt'
        ]
        read_only_fields = fields

    def get_relatedItem(self, obj):
        """Tagged reference: the variant is the payment type, plus the referenced id"""
        related_id = obj.related_item_id
        if related_id is None:
            return None
        return {'type': obj.payment_type, 'id': related_id}


class PaymentCreateSerializer(serializers.Serializer):
    user = serializers.IntegerField(required=False, allow_null=True)
    amount = serializers.DecimalField(max_digits=15, decimal_places=2, min_value=POSITIVE_AMOUNT)
    paymentType = LowercaseChoiceField(choices=PaymentType.choices)
    relatedItem = serializers.IntegerField(required=False, allow_null=True)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    paymentDate = serializers.DateField(required=False, allow_null=True)
    paymentMethod = LowercaseChoiceField(choices=PaymentMethod.choices, required=False, default=PaymentMethod.CASH)
    receiptUrl = serializers.URLField(required=False, allow_blank=True, default='')
    paidByAdmin = serializers.BooleanField(required=False, default=False)

    def to_internal_value(self, data):
        # Accept ISO datetimes for paymentDate and an empty relatedItem
        if hasattr(data, 'get'):
            data = data.copy()
            if isinstance(data.get('paymentDate'), str) and 'T' in data['paymentDate']:
                data['paymentDate'] = data['paymentDate'].split('T', 1)[0]
            if data.get('relatedItem') == '':
                data['relatedItem'] = None
            if data.get('user') == '':
                data['user'] = None
        return super().to_internal_value(data)


class ReceiptSerializer(serializers.Serializer):
    receiptUrl = serializers.URLField()


class RejectSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')
    rejectionReason = serializers.CharField(required=False, allow_blank=True, default='')

    def validate(self, attrs):
        attrs['reason'] = attrs.get('reason') or attrs.get('rejectionReason') or ''
        return attrs


class TransactionSerializer(serializers.ModelSerializer):
    amount = serializers.DecimalField(max_digits=15, decimal_places=2, min_value=POSITIVE_AMOUNT)
    type = LowercaseChoiceField(choices=TransactionType.choices)
    recordedBy = UserSummarySerializer(source='recorded_by', read_only=True)
    relatedPayment = serializers.IntegerField(source='related_payment_id', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = Transaction
        fields = [
            'id', 'title', 'amount', 'type', 'category', 'description', 'date',
            'recordedBy', 'relatedPayment', 'createdAt', 'updatedAt'
        ]
        read_only_fields = ['id', 'recordedBy', 'relatedPayment', 'createdAt', 'updatedAt']
        extra_kwargs = {'description': {'required': False}, 'date': {'required': False}}
