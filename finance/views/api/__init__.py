# API views package
from .auth_api_views import register_api, login_api, logout_api, current_user_api
from .user_api_views import (
    user_list_api, member_list_api, profile_api, change_password_api,
    notification_settings_api, user_detail_api, user_role_api
)
from .due_api_views import (
    due_list_create_api, due_detail_api, due_assign_api,
    member_due_list_api, my_dues_api, user_dues_api
)
from .levy_api_views import (
    levy_list_create_api, levy_detail_api, levy_assign_api,
    member_levy_list_api, my_levies_api, user_levies_api
)
from .pledge_api_views import (
    pledge_list_create_api, my_pledges_api, member_pledges_api,
    pledge_detail_api, pledge_reject_api
)
from .donation_api_views import donation_list_create_api, my_donations_api, donation_detail_api
from .payment_api_views import (
    payment_list_create_api, admin_payment_api, my_payments_api, member_payments_api,
    payment_detail_api, payment_approve_api, payment_reject_api, payment_receipt_api
)
from .loan_api_views import (
    loan_list_api, active_loan_list_api, my_loans_api, loan_apply_api, member_loans_api,
    loan_detail_api, loan_approve_api, loan_reject_api, loan_mark_paid_api
)
from .transaction_api_views import (
    transaction_list_create_api, income_list_api, expense_list_api, transaction_summary_api
)
from .dashboard_api_views import dashboard_api
from .setting_api_views import setting_api
from .upload_api_views import bulk_upload_api
from .report_api_views import report_api
