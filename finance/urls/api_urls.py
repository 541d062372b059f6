from django.urls import path
from finance.views.api import (
    # Authentication
    register_api, login_api, logout_api, current_user_api,
    # Users
    user_list_api, member_list_api, profile_api, change_password_api,
    notification_settings_api, user_detail_api, user_role_api,
    # Dues
    due_list_create_api, due_detail_api, due_assign_api,
    member_due_list_api, my_dues_api, user_dues_api,
    # Levies
    levy_list_create_api, levy_detail_api, levy_assign_api,
    member_levy_list_api, my_levies_api, user_levies_api,
    # Pledges
    pledge_list_create_api, my_pledges_api, member_pledges_api,
    pledge_detail_api, pledge_reject_api,
    # Donations
    donation_list_create_api, my_donations_api, donation_detail_api,
    # Payments
    payment_list_create_api, admin_payment_api, my_payments_api, member_payments_api,
    payment_detail_api, payment_approve_api, payment_reject_api, payment_receipt_api,
    # Loans
    loan_list_api, active_loan_list_api, my_loans_api, loan_apply_api, member_loans_api,
    loan_detail_api, loan_approve_api, loan_reject_api, loan_mark_paid_api,
    # Transactions
    transaction_list_create_api, income_list_api, expense_list_api, transaction_summary_api,
    # Dashboard, settings, uploads, reports
    dashboard_api, setting_api, bulk_upload_api, report_api,
)

urlpatterns = [
    # Authentication
    path('auth/register', register_api, name='api_register'),
    path('auth/login', login_api, name='api_login'),
    path('auth/logout', logout_api, name='api_logout'),
    path('auth/me', current_user_api, name='api_current_user'),

    # Users
    path('users', user_list_api, name='api_user_list'),
    path('users/members', member_list_api, name='api_member_list'),
    path('users/profile', profile_api, name='api_profile'),
    path('users/change-password', change_password_api, name='api_change_password'),
    path('users/notification-settings', notification_settings_api, name='api_notification_settings'),
    path('users/<int:pk>', user_detail_api, name='api_user_detail'),
    path('users/<int:pk>/role', user_role_api, name='api_user_role'),

    # Dues
    path('dues', due_list_create_api, name='api_due_list'),
    path('dues/members', member_due_list_api, name='api_member_due_list'),
    path('dues/members/my-dues', my_dues_api, name='api_my_dues'),
    path('dues/members/user/<int:user_id>', user_dues_api, name='api_user_dues'),
    path('dues/<int:pk>', due_detail_api, name='api_due_detail'),
    path('dues/<int:pk>/assign', due_assign_api, name='api_due_assign'),

    # Levies
    path('levies', levy_list_create_api, name='api_levy_list'),
    path('levies/members', member_levy_list_api, name='api_member_levy_list'),
    path('levies/members/my-levies', my_levies_api, name='api_my_levies'),
    path('levies/members/user/<int:user_id>', user_levies_api, name='api_user_levies'),
    path('levies/<int:pk>', levy_detail_api, name='api_levy_detail'),
    path('levies/<int:pk>/assign', levy_assign_api, name='api_levy_assign'),

    # Pledges
    path('pledges', pledge_list_create_api, name='api_pledge_list'),
    path('pledges/my-pledges', my_pledges_api, name='api_my_pledges'),
    path('pledges/member/<int:user_id>', member_pledges_api, name='api_member_pledges'),
    path('pledges/<int:pk>', pledge_detail_api, name='api_pledge_detail'),
    path('pledges/<int:pk>/reject', pledge_reject_api, name='api_pledge_reject'),

    # Donations
    path('donations', donation_list_create_api, name='api_donation_list'),
    path('donations/my-donations', my_donations_api, name='api_my_donations'),
    path('donations/<int:pk>', donation_detail_api, name='api_donation_detail'),

    # Payments
    path('payments', payment_list_create_api, name='api_payment_list'),
    path('payments/admin-payment', admin_payment_api, name='api_admin_payment'),
    path('payments/my-payments', my_payments_api, name='api_my_payments'),
    path('payments/member/<int:user_id>', member_payments_api, name='api_member_payments'),
    path('payments/<int:pk>', payment_detail_api, name='api_payment_detail'),
    path('payments/<int:pk>/approve', payment_approve_api, name='api_payment_approve'),
    path('payments/<int:pk>/reject', payment_reject_api, name='api_payment_reject'),
    path('payments/<int:pk>/receipt', payment_receipt_api, name='api_payment_receipt'),

    # Loans
    path('loans', loan_list_api, name='api_loan_list'),
    path('loans/active', active_loan_list_api, name='api_active_loans'),
    path('loans/my-loans', my_loans_api, name='api_my_loans'),
    path('loans/apply', loan_apply_api, name='api_loan_apply'),
    path('loans/member/<int:user_id>', member_loans_api, name='api_member_loans'),
    path('loans/<int:pk>', loan_detail_api, name='api_loan_detail'),
    path('loans/<int:pk>/approve', loan_approve_api, name='api_loan_approve'),
    path('loans/<int:pk>/reject', loan_reject_api, name='api_loan_reject'),
    path('loans/<int:pk>/mark-paid', loan_mark_paid_api, name='api_loan_mark_paid'),

    # Transactions
    path('transactions', transaction_list_create_api, name='api_transaction_list'),
    path('transactions/income', income_list_api, name='api_income_list'),
    path('transactions/expense', expense_list_api, name='api_expense_list'),
    path('transactions/summary', transaction_summary_api, name='api_transaction_summary'),

    # Dashboard
    path('dashboard', dashboard_api, name='api_dashboard'),

    # Settings
    path('settings', setting_api, name='api_settings'),

    # Bulk uploads
    path('uploads/<str:kind>', bulk_upload_api, name='api_bulk_upload'),

    # Reports
    path('reports/<str:report_type>/<str:export_format>', report_api, name='api_report'),
]
