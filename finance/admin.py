from django.contrib import admin, messages
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from rest_framework.exceptions import APIException

from .models import (
    User, NotificationPreference, Due, Levy, MemberDue, MemberLevy, Pledge, Donation,
    Loan, Payment, Transaction, SystemSetting
)
from .services.ledger_service import LedgerService


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ['email', 'first_name', 'last_name', 'membership_id', 'role', 'is_active', 'created_at']
    list_filter = ['role', 'is_active', 'created_at']
    search_fields = ['email', 'first_name', 'last_name', 'membership_id', 'phone_number']
    readonly_fields = ['created_at', 'updated_at', 'date_joined', 'last_login']
    fieldsets = (
        ('Authentication', {
            'fields': ('email', 'password')
        }),
        ('Personal Information', {
            'fields': ('first_name', 'last_name', 'phone_number', 'address', 'membership_id')
        }),
        ('Role', {
            'fields': ('role', 'is_active', 'is_staff', 'is_superuser')
        }),
        ('Important Dates', {
            'fields': ('date_joined', 'last_login', 'created_at', 'updated_at')
        }),
    )
    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('email', 'first_name', 'last_name', 'role', 'password1', 'password2'),
        }),
    )
    ordering = ['-created_at']


@admin.register(NotificationPreference)
class NotificationPreferenceAdmin(admin.ModelAdmin):
    list_display = ['user', 'email_notifications', 'sms_notifications', 'due_reminders', 'payment_confirmations', 'loan_updates']
    search_fields = ['user__email']
    raw_id_fields = ['user']


@admin.register(Due)
class DueAdmin(admin.ModelAdmin):
    list_display = ['name', 'amount', 'due_date', 'is_recurring', 'frequency', 'created_by', 'created_at']
    list_filter = ['is_recurring', 'due_date', 'created_at']
    search_fields = ['name', 'description']
    readonly_fields = ['created_at', 'updated_at']
    raw_id_fields = ['created_by']
    ordering = ['-created_at']


@admin.register(Levy)
class LevyAdmin(admin.ModelAdmin):
    list_display = ['title', 'amount', 'start_date', 'end_date', 'is_active', 'created_at']
    list_filter = ['is_active', 'start_date', 'created_at']
    search_fields = ['title', 'description']
    readonly_fields = ['created_at', 'updated_at']
    raw_id_fields = ['created_by']
    ordering = ['-created_at']


class MemberObligationAdmin(admin.ModelAdmin):
    """Balances only move through approved payments, so they are read-only here"""
    readonly_fields = ['amount', 'amount_paid', 'balance', 'status', 'payment', 'created_at', 'updated_at']
    list_filter = ['status', 'created_at']
    raw_id_fields = ['user']
    ordering = ['-created_at']

    def has_add_permission(self, request):
        return False


@admin.register(MemberDue)
class MemberDueAdmin(MemberObligationAdmin):
    list_display = ['user', 'due', 'amount', 'amount_paid', 'balance', 'status']
    search_fields = ['user__email', 'due__name']

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('user', 'due')


@admin.register(MemberLevy)
class MemberLevyAdmin(MemberObligationAdmin):
    list_display = ['user', 'levy', 'amount', 'amount_paid', 'balance', 'status']
    search_fields = ['user__email', 'levy__title']

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('user', 'levy')


@admin.register(Pledge)
class PledgeAdmin(admin.ModelAdmin):
    list_display = ['user', 'title', 'amount', 'pledge_date', 'status', 'fulfillment_date']
    list_filter = ['status', 'pledge_date']
    search_fields = ['user__email', 'title']
    readonly_fields = ['status', 'payment', 'created_at', 'updated_at']
    raw_id_fields = ['user']
    date_hierarchy = 'pledge_date'


@admin.register(Donation)
class DonationAdmin(admin.ModelAdmin):
    list_display = ['user', 'purpose', 'amount', 'donation_date', 'status']
    list_filter = ['status', 'donation_date']
    search_fields = ['user__email', 'purpose']
    readonly_fields = ['status', 'payment', 'created_at', 'updated_at']
    raw_id_fields = ['user']
    date_hierarchy = 'donation_date'


class LedgerActionMixin:
    """Run a LedgerService transition per selected object and report the outcome"""

    def _run(self, request, queryset, action, verb):
        done = 0
        for obj in queryset:
            try:
                action(obj.pk, request.user)
                done += 1
            except APIException as e:
                self.message_user(request, f"#{obj.pk}: {e.detail}", level=messages.ERROR)
        self.message_user(request, f'{done} record(s) {verb}.')


@admin.register(Loan)
class LoanAdmin(LedgerActionMixin, admin.ModelAdmin):
    list_display = ['user', 'amount', 'interest_rate', 'status', 'application_date', 'approved_by']
    list_filter = ['status', 'application_date', 'created_at']
    search_fields = ['user__email', 'purpose']
    readonly_fields = ['status', 'approved_by', 'approval_date', 'repayment_date', 'created_at', 'updated_at']
    raw_id_fields = ['user']
    date_hierarchy = 'application_date'
    ordering = ['-application_date', '-created_at']
    actions = ['approve_loans', 'reject_loans', 'mark_as_paid']

    @admin.action(description='Approve selected loans')
    def approve_loans(self, request, queryset):
        self._run(request, queryset, LedgerService.approve_loan, 'approved')

    @admin.action(description='Reject selected loans')
    def reject_loans(self, request, queryset):
        self._run(request, queryset, LedgerService.reject_loan, 'rejected')

    @admin.action(description='Mark selected loans as paid')
    def mark_as_paid(self, request, queryset):
        self._run(request, queryset, LedgerService.mark_loan_paid, 'marked as paid')


@admin.register(Payment)
class PaymentAdmin(LedgerActionMixin, admin.ModelAdmin):
    list_display = ['pk', 'user', 'payment_type', 'amount', 'payment_method', 'status', 'payment_date', 'approved_by']
    list_filter = ['status', 'payment_type', 'payment_method', 'paid_by_admin', 'payment_date']
    search_fields = ['user__email', 'description']
    readonly_fields = [
        'user', 'amount', 'payment_type', 'member_due', 'member_levy', 'pledge', 'donation', 'loan',
        'status', 'approved_by', 'approved_at', 'rejection_reason', 'paid_by_admin', 'recorded_by',
        'created_at', 'updated_at'
    ]
    date_hierarchy = 'payment_date'
    ordering = ['-payment_date', '-created_at']
    actions = ['approve_payments', 'reject_payments']

    def has_add_permission(self, request):
        return False

    @admin.action(description='Approve selected payments')
    def approve_payments(self, request, queryset):
        self._run(request, queryset, LedgerService.approve_payment, 'approved')

    @admin.action(description='Reject selected payments')
    def reject_payments(self, request, queryset):
        self._run(request, queryset, LedgerService.reject_payment, 'rejected')


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    list_display = ['title', 'type', 'category', 'amount', 'date', 'recorded_by']
    list_filter = ['type', 'category', 'date']
    search_fields = ['title', 'category', 'description']
    readonly_fields = ['related_payment', 'created_at', 'updated_at']
    date_hierarchy = 'date'
    ordering = ['-date', '-created_at']


@admin.register(SystemSetting)
class SystemSettingAdmin(admin.ModelAdmin):
    list_display = ['payment_reminders', 'payment_confirmations', 'loan_updates', 'new_member_notifications', 'default_loan_interest_rate']
    readonly_fields = ['created_at', 'updated_at']

    def has_add_permission(self, request):
        # Only allow one instance
        return not SystemSetting.objects.exists()

    def has_delete_permission(self, request, obj=None):
        # Prevent deletion of settings
        return False
