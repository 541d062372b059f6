"""
Obligation ledger.

A payment is recorded as ``pending`` and only moves money when an admin
approves it. Approval locks the payment row and applies the effect on the
related obligation with a conditional UPDATE, so two concurrent approvals
against the same due can never both succeed past the remaining balance and
``amount_paid + balance == amount`` holds after every commit.
"""
import logging
from decimal import Decimal, InvalidOperation

from django.db import transaction
from django.db.models import Count, F, Q, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from finance.exceptions import Conflict, Forbidden, InvalidAmount, InvalidRequest, ResourceNotFound
from finance.models import (
    User, UserRole, Due, Levy, MemberDue, MemberLevy, Pledge, Donation, Loan, LoanStatus,
    Payment, PaymentStatus, PaymentType, PaymentMethod, ObligationStatus, Transaction,
    TransactionType, SystemSetting
)
from finance.permissions import Capability, can, can_use_loans
from finance.services import notification_service
from finance.filter_helpers import apply_date_filter

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')

OBLIGATION_MODELS = {
    PaymentType.DUE: MemberDue,
    PaymentType.LEVY: MemberLevy,
}

TRANSACTION_CATEGORIES = {
    PaymentType.DUE: 'Dues',
    PaymentType.LEVY: 'Levies',
    PaymentType.PLEDGE: 'Pledges',
    PaymentType.DONATION: 'Donations',
    PaymentType.LOAN_REPAYMENT: 'Loan Repayments',
}


def to_amount(value):
    """Coerce ``value`` to a positive two-place Decimal or raise InvalidAmount"""
    try:
        amount = Decimal(str(value)).quantize(Decimal('0.01'))
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmount('Amount must be a number.')
    if amount <= ZERO:
        raise InvalidAmount('Amount must be greater than zero.')
    return amount


def _sum(queryset, field='amount'):
    return queryset.aggregate(total=Coalesce(Sum(field), ZERO))['total']


def _percentage(part, whole):
    if not whole:
        return ZERO
    return (Decimal(part) * 100 / Decimal(whole)).quantize(Decimal('0.01'))


class LedgerService:
    """State transitions for payments and the obligations they settle"""

    # Recording

    @staticmethod
    def record_payment(user, amount, payment_type, recorded_by, related_item_id=None, paid_by_admin=False,
                       description='', payment_date=None, payment_method=PaymentMethod.CASH, receipt_url=''):
        """
        Record a pending payment by ``user``.

        Recording for someone else, or flagging ``paid_by_admin``, needs the
        ``payments.record_for_members`` capability on ``recorded_by``.
        """
        amount = to_amount(amount)
        if payment_type not in PaymentType.values:
            raise InvalidRequest(f"Invalid payment type '{payment_type}'.")
        if user is None or not user.is_active:
            raise InvalidRequest('Payments can only be recorded for active users.')

        on_behalf = user.pk != recorded_by.pk
        if (on_behalf or paid_by_admin) and not can(recorded_by, Capability.PAYMENTS_RECORD_FOR_MEMBERS):
            raise Forbidden('Members can only record payments for themselves.')
        if on_behalf and payment_type == PaymentType.LOAN_REPAYMENT and not can(recorded_by, Capability.LOANS_MANAGE):
            raise Forbidden('Your role does not permit recording loan repayments for other members.')

        payment_date = payment_date or timezone.localdate()

        with transaction.atomic():
            related = LedgerService._resolve_related_item(
                user, amount, payment_type, related_item_id, description, payment_date
            )
            payment = Payment(
                user=user,
                amount=amount,
                payment_type=payment_type,
                description=description or '',
                payment_date=payment_date,
                payment_method=payment_method or PaymentMethod.CASH,
                receipt_url=receipt_url or '',
                paid_by_admin=bool(paid_by_admin),
                recorded_by=recorded_by,
            )
            setattr(payment, Payment.RELATED_FIELDS[payment_type], related)
            payment.save()

            if payment_type == PaymentType.DONATION:
                Donation.objects.filter(pk=related.pk, payment__isnull=True).update(payment=payment)

        logger.info(
            f"Payment #{payment.pk} recorded: {payment_type} {amount} for {user.email} by {recorded_by.email}"
        )
        return payment

    @staticmethod
    def _resolve_related_item(user, amount, payment_type, related_item_id, description, payment_date):
        if payment_type in OBLIGATION_MODELS:
            model = OBLIGATION_MODELS[payment_type]
            obligation = LedgerService._owned_item(model, related_item_id, user, payment_type)
            if obligation.balance <= ZERO:
                raise Conflict(f"This {payment_type} is already fully paid.")
            if amount > obligation.balance:
                raise InvalidAmount(
                    f"Payment amount {amount} exceeds the outstanding balance of {obligation.balance}."
                )
            return obligation

        if payment_type == PaymentType.PLEDGE:
            pledge = LedgerService._owned_item(Pledge, related_item_id, user, payment_type)
            if pledge.status != PaymentStatus.PENDING:
                raise Conflict('Only pending pledges can be paid.')
            return pledge

        if payment_type == PaymentType.LOAN_REPAYMENT:
            loan = LedgerService._owned_item(Loan, related_item_id, user, payment_type)
            if loan.status != LoanStatus.APPROVED:
                raise Conflict('Only approved loans can be repaid.')
            return loan

        # Donations may reference an existing pending donation or create one
        if related_item_id is not None:
            donation = LedgerService._owned_item(Donation, related_item_id, user, payment_type)
            if donation.status != PaymentStatus.PENDING or donation.payment_id is not None:
                raise Conflict('This donation already has a payment.')
            return donation
        return Donation.objects.create(
            user=user,
            amount=amount,
            purpose=description or 'General donation',
            description=description or '',
            donation_date=payment_date,
        )

    @staticmethod
    def _owned_item(model, item_id, user, payment_type):
        if item_id is None:
            raise InvalidRequest(f"relatedItem is required for {payment_type} payments.")
        item = model.objects.filter(pk=item_id).first()
        if item is None:
            raise ResourceNotFound(f"{model._meta.verbose_name} {item_id} not found.")
        if item.user_id != user.pk:
            raise InvalidRequest(f"{model._meta.verbose_name} {item_id} does not belong to this member.")
        return item

    # Approval

    @staticmethod
    def approve_payment(payment_id, approver):
        """
        Approve a pending payment and apply its effect atomically.

        Raises Forbidden (not an admin, own payment, or a loan repayment
        without ``loans.manage``), ResourceNotFound, Conflict (payment no
        longer pending) or InvalidAmount (would overpay the obligation).
        """
        if not can(approver, Capability.PAYMENTS_APPROVE):
            raise Forbidden('Only administrators can approve payments.')

        with transaction.atomic():
            payment = LedgerService._lock_pending(payment_id, approver)
            if payment.user_id == approver.pk:
                raise Forbidden('You cannot approve your own payment.')

            LedgerService._apply_effect(payment)

            now = timezone.now()
            updated = Payment.objects.filter(pk=payment.pk, status=PaymentStatus.PENDING).update(
                status=PaymentStatus.APPROVED, approved_by=approver, approved_at=now, updated_at=now
            )
            if not updated:
                raise Conflict('Payment has already been processed.')

            Transaction.objects.create(
                title=f"{payment.get_payment_type_display()} payment from {payment.user.email}",
                amount=payment.amount,
                type=TransactionType.INCOME,
                category=TRANSACTION_CATEGORIES[payment.payment_type],
                description=payment.description,
                date=payment.payment_date,
                recorded_by=approver,
                related_payment=payment,
            )
            transaction.on_commit(lambda: notification_service.notify_payment_approved(payment.pk))

        payment.refresh_from_db()
        logger.info(f"Payment #{payment.pk} approved by {approver.email}")
        return payment

    @staticmethod
    def _lock_pending(payment_id, approver):
        payment = Payment.objects.select_for_update(of=('self',)).select_related('user').filter(pk=payment_id).first()
        if payment is None:
            raise ResourceNotFound('Payment not found.')
        # Status is only disclosed to callers allowed to act on the payment
        if payment.payment_type == PaymentType.LOAN_REPAYMENT and not can(approver, Capability.LOANS_MANAGE):
            raise Forbidden('Your role does not permit processing loan repayments.')
        if payment.status != PaymentStatus.PENDING:
            raise Conflict(f"Payment has already been {payment.status}.")
        return payment

    @staticmethod
    def _apply_effect(payment):
        related_id = payment.related_item_id
        amount = payment.amount

        if payment.payment_type in OBLIGATION_MODELS:
            model = OBLIGATION_MODELS[payment.payment_type]
            updated = model.objects.filter(pk=related_id, balance__gte=amount).update(
                amount_paid=F('amount_paid') + amount,
                balance=F('balance') - amount,
                updated_at=timezone.now(),
            )
            if not updated:
                if not model.objects.filter(pk=related_id).exists():
                    raise ResourceNotFound(f"{model._meta.verbose_name} not found.")
                raise InvalidAmount('Payment amount exceeds the outstanding balance.')
            model.objects.filter(pk=related_id, balance=ZERO).update(
                status=ObligationStatus.APPROVED, payment=payment
            )
            model.objects.filter(pk=related_id, balance__gt=ZERO).update(status=ObligationStatus.PARTIAL)
            return

        if payment.payment_type == PaymentType.PLEDGE:
            updated = Pledge.objects.filter(pk=related_id, status=PaymentStatus.PENDING).update(
                status=PaymentStatus.APPROVED, payment=payment, fulfillment_date=payment.payment_date,
                updated_at=timezone.now(),
            )
            if not updated:
                raise Conflict('Pledge is no longer pending.')
            return

        if payment.payment_type == PaymentType.DONATION:
            if related_id is None:
                return
            updated = Donation.objects.filter(pk=related_id, status=PaymentStatus.PENDING).update(
                status=PaymentStatus.APPROVED, payment=payment, updated_at=timezone.now()
            )
            if not updated:
                raise Conflict('Donation is no longer pending.')
            return

        updated = Loan.objects.filter(pk=related_id, status=LoanStatus.APPROVED).update(
            status=LoanStatus.PAID, repayment_date=payment.payment_date, updated_at=timezone.now()
        )
        if not updated:
            raise Conflict('Loan is not in an approved state.')

    @staticmethod
    def reject_payment(payment_id, approver, reason=''):
        """Reject a pending payment. No balance moves."""
        if not can(approver, Capability.PAYMENTS_APPROVE):
            raise Forbidden('Only administrators can reject payments.')

        with transaction.atomic():
            payment = LedgerService._lock_pending(payment_id, approver)
            now = timezone.now()
            updated = Payment.objects.filter(pk=payment.pk, status=PaymentStatus.PENDING).update(
                status=PaymentStatus.REJECTED, rejection_reason=reason or '',
                approved_by=approver, approved_at=now, updated_at=now
            )
            if not updated:
                raise Conflict('Payment has already been processed.')
            if payment.payment_type == PaymentType.DONATION and payment.donation_id:
                Donation.objects.filter(pk=payment.donation_id, status=PaymentStatus.PENDING).update(
                    status=PaymentStatus.REJECTED, updated_at=now
                )
            transaction.on_commit(lambda: notification_service.notify_payment_rejected(payment.pk))

        payment.refresh_from_db()
        logger.info(f"Payment #{payment.pk} rejected by {approver.email}: {reason or 'no reason given'}")
        return payment

    # Assignment

    @staticmethod
    def assign_obligation(template, targets):
        """
        Create one MemberDue/MemberLevy per target user for ``template``.

        ``targets`` is ``"all"`` (every active member) or an iterable of user
        ids. Users already holding the obligation are skipped. Returns a dict
        with ``assigned`` and ``skipped`` counts.
        """
        if isinstance(template, Due):
            model, template_field = MemberDue, 'due'
        elif isinstance(template, Levy):
            model, template_field = MemberLevy, 'levy'
        else:
            raise InvalidRequest('Only dues and levies can be assigned.')

        if targets == 'all':
            users = User.objects.filter(is_active=True, role=UserRole.MEMBER)
        else:
            try:
                user_ids = {int(user_id) for user_id in (targets or [])}
            except (TypeError, ValueError):
                raise InvalidRequest('Members must be "all" or a list of user ids.')
            if not user_ids:
                raise InvalidRequest('Select at least one member.')
            users = User.objects.filter(pk__in=user_ids, is_active=True)
            missing = user_ids - set(users.values_list('pk', flat=True))
            if missing:
                raise InvalidRequest(f"Unknown or inactive users: {', '.join(str(pk) for pk in sorted(missing))}.")

        target_ids = list(users.values_list('pk', flat=True))
        existing = set(
            model.objects.filter(**{template_field: template, 'user_id__in': target_ids})
            .values_list('user_id', flat=True)
        )
        new_rows = [
            model(**{
                template_field: template,
                'user_id': user_id,
                'amount': template.amount,
                'amount_paid': ZERO,
                'balance': template.amount,
                'status': ObligationStatus.PENDING,
            })
            for user_id in target_ids if user_id not in existing
        ]
        model.objects.bulk_create(new_rows, ignore_conflicts=True)

        logger.info(
            f"Assigned {template_field} #{template.pk} to {len(new_rows)} member(s), skipped {len(existing)}"
        )
        return {'assigned': len(new_rows), 'skipped': len(existing)}

    # Loans

    @staticmethod
    def apply_for_loan(user, amount, purpose):
        if not can_use_loans(user):
            raise Forbidden('Your role does not permit loan operations.')
        amount = to_amount(amount)
        if not purpose:
            raise InvalidRequest('Loan purpose is required.')
        loan = Loan.objects.create(
            user=user,
            amount=amount,
            purpose=purpose,
            interest_rate=SystemSetting.get_settings().default_loan_interest_rate,
        )
        logger.info(f"Loan #{loan.pk} applied for by {user.email}: {amount}")
        return loan

    @staticmethod
    def _transition_loan(loan_id, actor, from_status, **changes):
        if not can(actor, Capability.LOANS_MANAGE):
            raise Forbidden('Your role does not permit managing loans.')
        with transaction.atomic():
            if not Loan.objects.filter(pk=loan_id).exists():
                raise ResourceNotFound('Loan not found.')
            updated = Loan.objects.filter(pk=loan_id, status=from_status).update(
                updated_at=timezone.now(), **changes
            )
            if not updated:
                raise Conflict(f"Only {from_status} loans can be moved to {changes['status']}.")
            transaction.on_commit(lambda: notification_service.notify_loan_status(loan_id))
        loan = Loan.objects.select_related('user', 'approved_by').get(pk=loan_id)
        logger.info(f"Loan #{loan.pk} is now {loan.status} (by {actor.email})")
        return loan

    @staticmethod
    def approve_loan(loan_id, actor):
        return LedgerService._transition_loan(
            loan_id, actor, LoanStatus.PENDING,
            status=LoanStatus.APPROVED, approved_by=actor, approval_date=timezone.localdate()
        )

    @staticmethod
    def reject_loan(loan_id, actor, reason=''):
        return LedgerService._transition_loan(
            loan_id, actor, LoanStatus.PENDING,
            status=LoanStatus.REJECTED, approved_by=actor, rejection_reason=reason or ''
        )

    @staticmethod
    def mark_loan_paid(loan_id, actor):
        return LedgerService._transition_loan(
            loan_id, actor, LoanStatus.APPROVED,
            status=LoanStatus.PAID, repayment_date=timezone.localdate()
        )

    # Pledges

    @staticmethod
    def reject_pledge(pledge_id, actor):
        if not can(actor, Capability.PLEDGES_MANAGE):
            raise Forbidden('Your role does not permit managing pledges.')
        if not Pledge.objects.filter(pk=pledge_id).exists():
            raise ResourceNotFound('Pledge not found.')
        updated = Pledge.objects.filter(pk=pledge_id, status=PaymentStatus.PENDING).update(
            status=PaymentStatus.REJECTED, updated_at=timezone.now()
        )
        if not updated:
            raise Conflict('Only pending pledges can be rejected.')
        logger.info(f"Pledge #{pledge_id} rejected by {actor.email}")
        return Pledge.objects.select_related('user').get(pk=pledge_id)

    # Aggregation

    @staticmethod
    def aggregate(user=None, start_date=None, end_date=None, include_loans=True):
        """
        Summary totals computed from stored records.

        When ``user`` is given every figure is restricted to that member's own
        records and organisation-wide figures are left out.
        """
        payments = Payment.objects.all()
        member_dues = MemberDue.objects.all()
        member_levies = MemberLevy.objects.all()
        pledges = Pledge.objects.all()
        donations = Donation.objects.all()
        loans = Loan.objects.all()
        if user is not None:
            payments = payments.filter(user=user)
            member_dues = member_dues.filter(user=user)
            member_levies = member_levies.filter(user=user)
            pledges = pledges.filter(user=user)
            donations = donations.filter(user=user)
            loans = loans.filter(user=user)
        if not include_loans:
            payments = payments.exclude(payment_type=PaymentType.LOAN_REPAYMENT)

        payments = apply_date_filter(payments, 'payment_date', start_date, end_date)
        pledges = apply_date_filter(pledges, 'pledge_date', start_date, end_date)
        donations = apply_date_filter(donations, 'donation_date', start_date, end_date)
        loans = apply_date_filter(loans, 'application_date', start_date, end_date)

        approved = payments.filter(status=PaymentStatus.APPROVED)
        status_counts = payments.aggregate(
            pending=Count('pk', filter=Q(status=PaymentStatus.PENDING)),
            approved=Count('pk', filter=Q(status=PaymentStatus.APPROVED)),
            rejected=Count('pk', filter=Q(status=PaymentStatus.REJECTED)),
        )
        collected_by_type = {
            payment_type: _sum(approved.filter(payment_type=payment_type))
            for payment_type in PaymentType.values
            if include_loans or payment_type != PaymentType.LOAN_REPAYMENT
        }

        summary = {
            'totalCollected': _sum(approved),
            'pendingAmount': _sum(payments.filter(status=PaymentStatus.PENDING)),
            'pendingPayments': status_counts['pending'],
            'approvedPayments': status_counts['approved'],
            'rejectedPayments': status_counts['rejected'],
            'collectedByType': collected_by_type,
            'dues': LedgerService.obligation_summary(member_dues),
            'levies': LedgerService.obligation_summary(member_levies),
            'donations': {
                'count': donations.count(),
                'totalApproved': _sum(donations.filter(status=PaymentStatus.APPROVED)),
            },
            'pledges': {
                'count': pledges.count(),
                'totalPledged': _sum(pledges.exclude(status=PaymentStatus.REJECTED)),
                'totalFulfilled': _sum(pledges.filter(status=PaymentStatus.APPROVED)),
                'pending': pledges.filter(status=PaymentStatus.PENDING).count(),
            },
        }

        if include_loans:
            loan_counts = loans.aggregate(
                pending=Count('pk', filter=Q(status=LoanStatus.PENDING)),
                approved=Count('pk', filter=Q(status=LoanStatus.APPROVED)),
                rejected=Count('pk', filter=Q(status=LoanStatus.REJECTED)),
                paid=Count('pk', filter=Q(status=LoanStatus.PAID)),
            )
            summary['loans'] = {
                **loan_counts,
                'totalDisbursed': _sum(loans.filter(status__in=[LoanStatus.APPROVED, LoanStatus.PAID])),
                'outstanding': _sum(loans.filter(status=LoanStatus.APPROVED)),
            }

        if user is None:
            transactions = apply_date_filter(Transaction.objects.all(), 'date', start_date, end_date)
            if not include_loans:
                transactions = transactions.exclude(related_payment__payment_type=PaymentType.LOAN_REPAYMENT)
            total_income = _sum(transactions.filter(type=TransactionType.INCOME))
            total_expense = _sum(transactions.filter(type=TransactionType.EXPENSE))
            summary['memberCount'] = User.objects.filter(is_active=True, role=UserRole.MEMBER).count()
            summary['totalIncome'] = total_income
            summary['totalExpense'] = total_expense
            summary['netBalance'] = total_income - total_expense

        return summary

    @staticmethod
    def obligation_summary(queryset):
        totals = queryset.aggregate(
            total_amount=Coalesce(Sum('amount'), ZERO),
            amount_paid=Coalesce(Sum('amount_paid'), ZERO),
            outstanding=Coalesce(Sum('balance'), ZERO),
            assigned=Count('pk'),
            settled=Count('pk', filter=Q(balance=ZERO)),
        )
        return {
            'assigned': totals['assigned'],
            'settled': totals['settled'],
            'totalAmount': totals['total_amount'],
            'amountPaid': totals['amount_paid'],
            'outstanding': totals['outstanding'],
            'paidPercentage': _percentage(totals['settled'], totals['assigned']),
        }
