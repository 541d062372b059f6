from django.conf import settings as django_settings
from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.db import models
from django.db.models import Q
from django.utils import timezone
from decimal import Decimal


# Choice Enums
class UserRole(models.TextChoices):
    MEMBER = 'member', 'Member'
    ADMIN = 'admin', 'Admin (legacy)'
    ADMIN_LEVEL_1 = 'admin_level_1', 'Admin Level 1'
    ADMIN_LEVEL_2 = 'admin_level_2', 'Admin Level 2'
    SUPER_ADMIN = 'super_admin', 'Super Admin'


class PaymentStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    APPROVED = 'approved', 'Approved'
    REJECTED = 'rejected', 'Rejected'


class ObligationStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    PARTIAL = 'partial', 'Partially Paid'
    APPROVED = 'approved', 'Approved'


class PaymentType(models.TextChoices):
    DUE = 'due', 'Due'
    LEVY = 'levy', 'Levy'
    PLEDGE = 'pledge', 'Pledge'
    DONATION = 'donation', 'Donation'
    LOAN_REPAYMENT = 'loan_repayment', 'Loan Repayment'


class PaymentMethod(models.TextChoices):
    CASH = 'cash', 'Cash'
    BANK_TRANSFER = 'bank_transfer', 'Bank Transfer'
    CHECK = 'check', 'Check'
    MOBILE_MONEY = 'mobile_money', 'Mobile Money'
    OTHER = 'other', 'Other'


class LoanStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    APPROVED = 'approved', 'Approved'
    REJECTED = 'rejected', 'Rejected'
    PAID = 'paid', 'Paid'


class TransactionType(models.TextChoices):
    INCOME = 'income', 'Income'
    EXPENSE = 'expense', 'Expense'


# Base Model with Timestamps
class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class UserManager(BaseUserManager):
    use_in_migrations = True

    def _create_user(self, email, password, **extra_fields):
        if not email:
            raise ValueError('The email address must be set')
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_user(self, email, password=None, **extra_fields):
        extra_fields.setdefault('role', UserRole.MEMBER)
        extra_fields.setdefault('is_staff', False)
        extra_fields.setdefault('is_superuser', False)
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('role', UserRole.SUPER_ADMIN)
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        return self._create_user(email, password, **extra_fields)


# User Model
class User(AbstractUser, TimeStampedModel):
    email = models.EmailField(unique=True)
    phone_number = models.CharField(max_length=20, blank=True, default='')
    address = models.TextField(blank=True, default='')
    membership_id = models.CharField(max_length=50, unique=True, blank=True, null=True)
    role = models.CharField(max_length=20, choices=UserRole.choices, default=UserRole.MEMBER)
    fcm_token = models.CharField(max_length=255, blank=True, null=True)

    objects = UserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['first_name', 'last_name']

    class Meta:
        verbose_name = 'User'
        verbose_name_plural = 'Users'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.get_full_name() or self.email} ({self.email})"

    def save(self, *args, **kwargs):
        # Username mirrors the login email
        if self.email:
            self.username = self.email
        super().save(*args, **kwargs)


# NotificationPreference Model
class NotificationPreference(TimeStampedModel):
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='notification_preference')
    email_notifications = models.BooleanField(default=True)
    sms_notifications = models.BooleanField(default=False)
    due_reminders = models.BooleanField(default=True)
    payment_confirmations = models.BooleanField(default=True)
    loan_updates = models.BooleanField(default=True)

    class Meta:
        verbose_name = 'Notification Preference'
        verbose_name_plural = 'Notification Preferences'

    def __str__(self):
        return f"Notification preferences for {self.user.email}"

    @classmethod
    def for_user(cls, user):
        obj, created = cls.objects.get_or_create(user=user)
        return obj


# Due Model
class Due(TimeStampedModel):
    name = models.CharField(max_length=255)
    amount = models.DecimalField(max_digits=15, decimal_places=2)
    due_date = models.DateField(blank=True, null=True)
    description = models.TextField(blank=True, default='')
    is_recurring = models.BooleanField(default=False)
    frequency = models.CharField(max_length=20, blank=True, default='')
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='created_dues')

    class Meta:
        verbose_name = 'Due'
        verbose_name_plural = 'Dues'
        ordering = ['-created_at']
        constraints = [
            models.CheckConstraint(condition=Q(amount__gt=0), name='due_amount_positive'),
        ]

    def __str__(self):
        return f"{self.name} - {self.amount}"


# Levy Model
class Levy(TimeStampedModel):
    title = models.CharField(max_length=255)
    amount = models.DecimalField(max_digits=15, decimal_places=2)
    description = models.TextField(blank=True, default='')
    start_date = models.DateField(default=timezone.localdate)
    end_date = models.DateField(blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='created_levies')

    class Meta:
        verbose_name = 'Levy'
        verbose_name_plural = 'Levies'
        ordering = ['-created_at']
        constraints = [
            models.CheckConstraint(condition=Q(amount__gt=0), name='levy_amount_positive'),
        ]

    def __str__(self):
        return f"{self.title} - {self.amount}"


class MemberObligation(TimeStampedModel):
    """
    Per-member instance of a due or levy.

    ``amount`` is the template amount at assignment time. ``amount_paid`` and
    ``balance`` are only ever moved together by an approved payment, so
    ``amount_paid + balance == amount`` always holds.
    """
    amount = models.DecimalField(max_digits=15, decimal_places=2)
    amount_paid = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))
    balance = models.DecimalField(max_digits=15, decimal_places=2)
    status = models.CharField(max_length=20, choices=ObligationStatus.choices, default=ObligationStatus.PENDING)

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if self.pk is None and self.balance is None:
            self.balance = self.amount - (self.amount_paid or Decimal('0.00'))
        super().save(*args, **kwargs)

    @property
    def is_settled(self):
        return self.balance == 0


# MemberDue Model
class MemberDue(MemberObligation):
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='member_dues')
    due = models.ForeignKey(Due, on_delete=models.CASCADE, related_name='member_dues')
    payment = models.ForeignKey(
        'Payment', on_delete=models.SET_NULL, null=True, blank=True, related_name='settled_dues',
        help_text='Payment that brought the balance to zero'
    )

    class Meta:
        verbose_name = 'Member Due'
        verbose_name_plural = 'Member Dues'
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(fields=['due', 'user'], name='unique_member_due'),
            models.CheckConstraint(condition=Q(balance__gte=0), name='member_due_balance_non_negative'),
            models.CheckConstraint(condition=Q(amount_paid__gte=0), name='member_due_paid_non_negative'),
        ]

    def __str__(self):
        return f"{self.user.email} - {self.due.name} - {self.balance}"


# MemberLevy Model
class MemberLevy(MemberObligation):
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='member_levies')
    levy = models.ForeignKey(Levy, on_delete=models.CASCADE, related_name='member_levies')
    payment = models.ForeignKey(
        'Payment', on_delete=models.SET_NULL, null=True, blank=True, related_name='settled_levies',
        help_text='Payment that brought the balance to zero'
    )

    class Meta:
        verbose_name = 'Member Levy'
        verbose_name_plural = 'Member Levies'
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(fields=['levy', 'user'], name='unique_member_levy'),
            models.CheckConstraint(condition=Q(balance__gte=0), name='member_levy_balance_non_negative'),
            models.CheckConstraint(condition=Q(amount_paid__gte=0), name='member_levy_paid_non_negative'),
        ]

    def __str__(self):
        return f"{self.user.email} - {self.levy.title} - {self.balance}"


# Pledge Model
class Pledge(TimeStampedModel):
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='pledges')
    amount = models.DecimalField(max_digits=15, decimal_places=2)
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, default='')
    pledge_date = models.DateField(default=timezone.localdate)
    fulfillment_date = models.DateField(blank=True, null=True)
    status = models.CharField(max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.PENDING)
    payment = models.ForeignKey(
        'Payment', on_delete=models.SET_NULL, null=True, blank=True, related_name='fulfilled_pledges'
    )

    class Meta:
        verbose_name = 'Pledge'
        verbose_name_plural = 'Pledges'
        ordering = ['-pledge_date', '-created_at']

    def __str__(self):
        return f"{self.user.email} - {self.title} - {self.status}"


# Donation Model
class Donation(TimeStampedModel):
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='donations')
    amount = models.DecimalField(max_digits=15, decimal_places=2)
    purpose = models.CharField(max_length=255)
    description = models.TextField(blank=True, default='')
    donation_date = models.DateField(default=timezone.localdate)
    status = models.CharField(max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.PENDING)
    payment = models.ForeignKey(
        'Payment', on_delete=models.SET_NULL, null=True, blank=True, related_name='linked_donations'
    )

    class Meta:
        verbose_name = 'Donation'
        verbose_name_plural = 'Donations'
        ordering = ['-donation_date', '-created_at']

    def __str__(self):
        return f"{self.user.email} - {self.purpose} - {self.amount}"


# Loan Model
class Loan(TimeStampedModel):
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='loans')
    amount = models.DecimalField(max_digits=15, decimal_places=2)
    purpose = models.CharField(max_length=255)
    application_date = models.DateField(default=timezone.localdate)
    approval_date = models.DateField(blank=True, null=True)
    repayment_date = models.DateField(blank=True, null=True)
    interest_rate = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('5.00'))
    status = models.CharField(max_length=20, choices=LoanStatus.choices, default=LoanStatus.PENDING)
    approved_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='loan_actions')
    rejection_reason = models.TextField(blank=True, default='')

    class Meta:
        verbose_name = 'Loan'
        verbose_name_plural = 'Loans'
        ordering = ['-application_date', '-created_at']

    def __str__(self):
        return f"{self.user.email} - {self.amount} - {self.status}"

    @property
    def total_payable(self):
        return (self.amount * (Decimal('1') + self.interest_rate / Decimal('100'))).quantize(Decimal('0.01'))


# Payment Model
class Payment(TimeStampedModel):
    """
    A payment event. ``payment_type`` is the tag of the related item; exactly
    the reference matching the tag may be set (none for an unlinked donation
    before it is recorded).
    """
    RELATED_FIELDS = {
        PaymentType.DUE: 'member_due',
        PaymentType.LEVY: 'member_levy',
        PaymentType.PLEDGE: 'pledge',
        PaymentType.DONATION: 'donation',
        PaymentType.LOAN_REPAYMENT: 'loan',
    }

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='payments')
    amount = models.DecimalField(max_digits=15, decimal_places=2)
    payment_type = models.CharField(max_length=20, choices=PaymentType.choices)
    member_due = models.ForeignKey(MemberDue, on_delete=models.PROTECT, null=True, blank=True, related_name='payments')
    member_levy = models.ForeignKey(MemberLevy, on_delete=models.PROTECT, null=True, blank=True, related_name='payments')
    pledge = models.ForeignKey(Pledge, on_delete=models.PROTECT, null=True, blank=True, related_name='payments')
    donation = models.ForeignKey(Donation, on_delete=models.PROTECT, null=True, blank=True, related_name='payments')
    loan = models.ForeignKey(Loan, on_delete=models.PROTECT, null=True, blank=True, related_name='repayments')
    description = models.TextField(blank=True, default='')
    payment_date = models.DateField(default=timezone.localdate)
    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices, default=PaymentMethod.CASH)
    receipt_url = models.URLField(max_length=500, blank=True, default='')
    status = models.CharField(max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.PENDING)
    approved_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='approved_payments')
    approved_at = models.DateTimeField(blank=True, null=True)
    rejection_reason = models.TextField(blank=True, default='')
    paid_by_admin = models.BooleanField(default=False)
    recorded_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='recorded_payments')

    class Meta:
        verbose_name = 'Payment'
        verbose_name_plural = 'Payments'
        ordering = ['-payment_date', '-created_at']
        constraints = [
            models.CheckConstraint(condition=Q(amount__gt=0), name='payment_amount_positive'),
        ]
        indexes = [
            models.Index(fields=['status'], name='finance_pay_status_3d4c1b_idx'),
            models.Index(fields=['payment_type'], name='finance_pay_payment_7a2e0f_idx'),
        ]

    def __str__(self):
        return f"{self.get_payment_type_display()} - {self.amount} - {self.status}"

    @property
    def related_item(self):
        """Return the obligation record this payment settles, if any"""
        return getattr(self, self.RELATED_FIELDS[self.payment_type])

    @property
    def related_item_id(self):
        return getattr(self, f"{self.RELATED_FIELDS[self.payment_type]}_id")

    @property
    def is_terminal(self):
        return self.status != PaymentStatus.PENDING


# Transaction Model
class Transaction(TimeStampedModel):
    title = models.CharField(max_length=255)
    amount = models.DecimalField(max_digits=15, decimal_places=2)
    type = models.CharField(max_length=20, choices=TransactionType.choices)
    category = models.CharField(max_length=100)
    description = models.TextField(blank=True, default='')
    date = models.DateField(default=timezone.localdate)
    recorded_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='recorded_transactions')
    related_payment = models.OneToOneField(
        Payment, on_delete=models.SET_NULL, null=True, blank=True, related_name='ledger_transaction'
    )

    class Meta:
        verbose_name = 'Transaction'
        verbose_name_plural = 'Transactions'
        ordering = ['-date', '-created_at']

    def __str__(self):
        return f"{self.get_type_display()} - {self.title} - {self.amount}"


# SystemSetting Model (Singleton)
class SystemSetting(TimeStampedModel):
    payment_reminders = models.BooleanField(default=True, help_text='Remind members about outstanding dues and levies')
    payment_confirmations = models.BooleanField(default=True, help_text='Notify members when payments are approved or rejected')
    loan_updates = models.BooleanField(default=True, help_text='Notify members when loan status changes')
    new_member_notifications = models.BooleanField(default=False, help_text='Notify super admins when new members join')
    monthly_summary = models.BooleanField(default=False, help_text='Send monthly financial summary to all members')
    default_loan_interest_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        help_text='Default loan interest rate in percentage',
        default=Decimal('5.00')
    )

    class Meta:
        verbose_name = 'System Setting'
        verbose_name_plural = 'System Settings'

    def __str__(self):
        return 'System Settings'

    def save(self, *args, **kwargs):
        # Ensure only one instance exists (singleton pattern)
        self.pk = 1
        super().save(*args, **kwargs)

    @classmethod
    def get_settings(cls):
        """Get or create the singleton settings instance"""
        obj, created = cls.objects.get_or_create(
            pk=1,
            defaults={'default_loan_interest_rate': Decimal(str(django_settings.DEFAULT_LOAN_INTEREST_RATE))}
        )
        return obj
