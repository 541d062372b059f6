import os
import logging

import firebase_admin
from firebase_admin import credentials, messaging, exceptions as firebase_exceptions
from django.conf import settings

from finance.exceptions import UpstreamError
from finance.models import (
    User, UserRole, NotificationPreference, SystemSetting, Payment, Loan, LoanStatus,
    MemberDue, MemberLevy, ObligationStatus
)

logger = logging.getLogger(__name__)

# Initialize Firebase Admin SDK (singleton pattern)
_firebase_app = None


def get_firebase_app():
    """Initialize and return Firebase Admin SDK app instance"""
    global _firebase_app
    if _firebase_app is None:
        service_account_path = getattr(settings, 'FIREBASE_SERVICE_ACCOUNT_PATH', None)
        if not service_account_path:
            service_account_path = os.path.join(settings.BASE_DIR, 'firebase-service-account.json')

        if not os.path.exists(service_account_path):
            logger.error(f"Firebase service account file not found at: {service_account_path}")
            raise UpstreamError(f"Firebase service account file not found at: {service_account_path}")

        try:
            cred = credentials.Certificate(service_account_path)
            _firebase_app = firebase_admin.initialize_app(cred)
        except (ValueError, IOError) as e:
            logger.error(f"Error initializing Firebase Admin SDK: {e}")
            raise UpstreamError('Push notification service is misconfigured.')
        logger.info("Firebase Admin SDK initialized successfully")
    return _firebase_app


def push_enabled():
    return getattr(settings, 'PUSH_NOTIFICATIONS_ENABLED', False)


def send_notification_to_user(fcm_token, title, body, data=None):
    """
    Send a push notification to a single device

    Returns:
        bool: True if successful, False otherwise
    """
    if not fcm_token:
        logger.warning("FCM token is empty, skipping notification")
        return False
    if not push_enabled():
        logger.debug(f"Push notifications disabled, not sending '{title}'")
        return False

    try:
        get_firebase_app()
        message = messaging.Message(
            notification=messaging.Notification(title=title, body=body),
            data={key: str(value) for key, value in (data or {}).items()},
            token=fcm_token,
            android=messaging.AndroidConfig(priority='high'),
        )
        response = messaging.send(message)
        logger.info(f"Successfully sent notification to token {fcm_token[:20]}... Response: {response}")
        return True
    except messaging.UnregisteredError:
        logger.warning(f"FCM token {fcm_token[:20]}... is unregistered/invalid")
        return False
    except (UpstreamError, firebase_exceptions.FirebaseError, ValueError) as e:
        logger.error(f"Error sending notification to user: {e}")
        return False


def notify_user(user, title, body, preference_field=None, data=None):
    """
    Push to ``user`` unless they opted out via ``preference_field`` on
    their NotificationPreference. Never raises.
    """
    if not user.is_active or not user.fcm_token:
        return False
    if preference_field:
        preference = NotificationPreference.for_user(user)
        if not getattr(preference, preference_field):
            logger.debug(f"{user.email} opted out of {preference_field}")
            return False
    return send_notification_to_user(user.fcm_token, title, body, data=data)


def notify_payment_approved(payment_id):
    if not SystemSetting.get_settings().payment_confirmations:
        return False
    payment = Payment.objects.select_related('user').filter(pk=payment_id).first()
    if payment is None:
        return False
    return notify_user(
        payment.user,
        'Payment approved',
        f"Your {payment.get_payment_type_display().lower()} payment of {payment.amount} has been approved.",
        preference_field='payment_confirmations',
        data={'type': 'payment', 'paymentId': payment.pk, 'status': payment.status},
    )


def notify_payment_rejected(payment_id):
    if not SystemSetting.get_settings().payment_confirmations:
        return False
    payment = Payment.objects.select_related('user').filter(pk=payment_id).first()
    if payment is None:
        return False
    body = f"Your {payment.get_payment_type_display().lower()} payment of {payment.amount} was rejected."
    if payment.rejection_reason:
        body = f"{body} Reason: {payment.rejection_reason}"
    return notify_user(
        payment.user,
        'Payment rejected',
        body,
        preference_field='payment_confirmations',
        data={'type': 'payment', 'paymentId': payment.pk, 'status': payment.status},
    )


LOAN_MESSAGES = {
    LoanStatus.APPROVED: ('Loan approved', 'Your loan of {amount} has been approved.'),
    LoanStatus.REJECTED: ('Loan rejected', 'Your loan application of {amount} was rejected.'),
    LoanStatus.PAID: ('Loan repaid', 'Your loan of {amount} is marked as fully repaid.'),
}


def notify_loan_status(loan_id):
    if not SystemSetting.get_settings().loan_updates:
        return False
    loan = Loan.objects.select_related('user').filter(pk=loan_id).first()
    if loan is None or loan.status not in LOAN_MESSAGES:
        return False
    title, template = LOAN_MESSAGES[loan.status]
    return notify_user(
        loan.user,
        title,
        template.format(amount=loan.amount),
        preference_field='loan_updates',
        data={'type': 'loan', 'loanId': loan.pk, 'status': loan.status},
    )


def notify_new_member(user_id):
    """Tell super admins that a member registered"""
    if not SystemSetting.get_settings().new_member_notifications:
        return 0
    member = User.objects.filter(pk=user_id).first()
    if member is None:
        return 0
    sent = 0
    for admin in User.objects.filter(role=UserRole.SUPER_ADMIN, is_active=True):
        if notify_user(admin, 'New member', f"{member.get_full_name() or member.email} has joined."):
            sent += 1
    return sent


def outstanding_obligations():
    """Unsettled dues and levies of active users, grouped by user id"""
    outstanding = {}
    dues = MemberDue.objects.select_related('user', 'due').filter(
        user__is_active=True, balance__gt=0
    ).exclude(status=ObligationStatus.APPROVED)
    levies = MemberLevy.objects.select_related('user', 'levy').filter(
        user__is_active=True, balance__gt=0
    ).exclude(status=ObligationStatus.APPROVED)
    for member_due in dues:
        outstanding.setdefault(member_due.user_id, []).append((member_due.user, member_due.due.name, member_due.balance))
    for member_levy in levies:
        outstanding.setdefault(member_levy.user_id, []).append((member_levy.user, member_levy.levy.title, member_levy.balance))
    return outstanding


def send_due_reminders(dry_run=False):
    """
    Remind members of outstanding dues and levies.

    Returns:
        dict: {'members': int, 'sent': int, 'skipped': int}
    """
    stats = {'members': 0, 'sent': 0, 'skipped': 0}
    if not SystemSetting.get_settings().payment_reminders:
        logger.info("Payment reminders are disabled in system settings")
        return stats

    for user_id, items in outstanding_obligations().items():
        user = items[0][0]
        stats['members'] += 1
        total = sum(balance for _, _, balance in items)
        names = ', '.join(name for _, name, _ in items)
        body = f"You have {len(items)} outstanding item(s) totalling {total}: {names}."
        if dry_run:
            logger.info(f"[dry-run] would remind {user.email}: {body}")
            stats['skipped'] += 1
            continue
        if notify_user(user, 'Payment reminder', body, preference_field='due_reminders'):
            stats['sent'] += 1
        else:
            stats['skipped'] += 1

    logger.info(f"Due reminders processed. Stats: {stats}")
    return stats
