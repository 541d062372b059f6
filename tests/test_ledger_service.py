import threading
from datetime import date
from decimal import Decimal

import pytest
from django.db import connection, connections

from finance.exceptions import Conflict, Forbidden, InvalidAmount, InvalidRequest, ResourceNotFound
from finance.models import (
    Donation, Loan, LoanStatus, MemberDue, ObligationStatus, Payment, PaymentStatus, PaymentType,
    Pledge, SystemSetting, Transaction, TransactionType, UserRole
)
from finance.services.ledger_service import LedgerService, to_amount
from tests.conftest import make_user

pytestmark = pytest.mark.django_db


def record_due(member_due, value, recorded_by=None):
    return LedgerService.record_payment(
        user=member_due.user,
        amount=value,
        payment_type=PaymentType.DUE,
        recorded_by=recorded_by or member_due.user,
        related_item_id=member_due.pk,
    )


def assert_balanced(obligation):
    obligation.refresh_from_db()
    assert obligation.amount_paid + obligation.balance == obligation.amount
    assert obligation.balance >= 0


class TestToAmount:
    def test_quantizes(self):
        assert to_amount('12.5') == Decimal('12.50')

    @pytest.mark.parametrize('value', ['0', '-1', 'abc', None])
    def test_rejects_non_positive_or_garbage(self, value):
        with pytest.raises(InvalidAmount):
            to_amount(value)


class TestRecordPayment:
    def test_records_pending_payment(self, member_due):
        payment = record_due(member_due, '1500')

        assert payment.status == PaymentStatus.PENDING
        assert payment.member_due_id == member_due.pk
        assert payment.recorded_by_id == member_due.user_id
        member_due.refresh_from_db()
        assert member_due.balance == Decimal('5000.00')

    def test_amount_above_balance_is_rejected(self, member_due):
        with pytest.raises(InvalidAmount):
            record_due(member_due, '5000.01')

    def test_fully_paid_obligation_is_a_conflict(self, member_due, admin_level_1):
        LedgerService.approve_payment(record_due(member_due, '5000').pk, admin_level_1)
        with pytest.raises(Conflict):
            record_due(member_due, '1')

    def test_related_item_must_belong_to_payer(self, member_due, other_member):
        with pytest.raises(InvalidRequest):
            LedgerService.record_payment(
                user=other_member, amount='100', payment_type=PaymentType.DUE,
                recorded_by=other_member, related_item_id=member_due.pk,
            )

    def test_missing_related_item(self, member):
        with pytest.raises(ResourceNotFound):
            LedgerService.record_payment(
                user=member, amount='100', payment_type=PaymentType.DUE,
                recorded_by=member, related_item_id=999999,
            )

    def test_related_item_required_for_dues(self, member):
        with pytest.raises(InvalidRequest):
            LedgerService.record_payment(user=member, amount='100', payment_type=PaymentType.DUE, recorded_by=member)

    def test_unknown_payment_type(self, member):
        with pytest.raises(InvalidRequest):
            LedgerService.record_payment(user=member, amount='100', payment_type='tithe', recorded_by=member)

    def test_member_cannot_record_for_someone_else(self, member_due, other_member):
        with pytest.raises(Forbidden):
            record_due(member_due, '100', recorded_by=other_member)

    def test_member_cannot_flag_paid_by_admin(self, member_due, member):
        with pytest.raises(Forbidden):
            LedgerService.record_payment(
                user=member, amount='100', payment_type=PaymentType.DUE, recorded_by=member,
                related_item_id=member_due.pk, paid_by_admin=True,
            )

    def test_admin_records_on_behalf_and_payment_stays_pending(self, member_due, admin_level_1):
        payment = LedgerService.record_payment(
            user=member_due.user, amount='100', payment_type=PaymentType.DUE,
            recorded_by=admin_level_1, related_item_id=member_due.pk, paid_by_admin=True,
        )
        assert payment.paid_by_admin is True
        assert payment.recorded_by == admin_level_1
        assert payment.status == PaymentStatus.PENDING

    def test_level_1_cannot_record_loan_repayment_for_member(self, approved_loan, admin_level_1):
        with pytest.raises(Forbidden):
            LedgerService.record_payment(
                user=approved_loan.user, amount='500', payment_type=PaymentType.LOAN_REPAYMENT,
                recorded_by=admin_level_1, related_item_id=approved_loan.pk,
            )

    def test_loan_must_be_approved_to_be_repaid(self, member):
        loan = Loan.objects.create(user=member, amount=Decimal('100.00'), purpose='Tools')
        with pytest.raises(Conflict):
            LedgerService.record_payment(
                user=member, amount='100', payment_type=PaymentType.LOAN_REPAYMENT,
                recorded_by=member, related_item_id=loan.pk,
            )

    def test_donation_without_related_item_creates_one(self, member):
        payment = LedgerService.record_payment(
            user=member, amount='250', payment_type=PaymentType.DONATION, recorded_by=member,
            description='Harvest thanksgiving',
        )
        donation = Donation.objects.get(pk=payment.donation_id)
        assert donation.user == member
        assert donation.amount == Decimal('250.00')
        assert donation.status == PaymentStatus.PENDING
        assert donation.payment_id == payment.pk

    def test_inactive_member_cannot_pay(self, member_due, admin_level_1):
        member = member_due.user
        member.is_active = False
        member.save()
        with pytest.raises(InvalidRequest):
            record_due(member_due, '100', recorded_by=admin_level_1)


class TestApprovePayment:
    def test_full_payment_settles_due(self, member_due, admin_level_1):
        payment = record_due(member_due, '5000')

        approved = LedgerService.approve_payment(payment.pk, admin_level_1)

        assert approved.status == PaymentStatus.APPROVED
        assert approved.approved_by == admin_level_1
        assert approved.approved_at is not None
        member_due.refresh_from_db()
        assert member_due.amount_paid == Decimal('5000.00')
        assert member_due.balance == Decimal('0.00')
        assert member_due.status == ObligationStatus.APPROVED
        assert member_due.payment_id == payment.pk

    def test_approval_creates_income_transaction(self, member_due, admin_level_1):
        payment = record_due(member_due, '1200')
        LedgerService.approve_payment(payment.pk, admin_level_1)

        entry = Transaction.objects.get(related_payment=payment)
        assert entry.type == TransactionType.INCOME
        assert entry.amount == Decimal('1200.00')
        assert entry.category == 'Dues'
        assert entry.recorded_by == admin_level_1

    def test_partial_payment_then_overpayment(self, member_due, admin_level_1):
        LedgerService.approve_payment(record_due(member_due, '2000').pk, admin_level_1)

        member_due.refresh_from_db()
        assert member_due.balance == Decimal('3000.00')
        assert member_due.status == ObligationStatus.PARTIAL

        with pytest.raises(InvalidAmount):
            record_due(member_due, '3500')
        member_due.refresh_from_db()
        assert member_due.balance == Decimal('3000.00')
        assert member_due.amount_paid == Decimal('2000.00')

    def test_overpayment_detected_at_approval_leaves_payment_pending(self, member_due, admin_level_1):
        first = record_due(member_due, '3000')
        second = record_due(member_due, '3000')

        LedgerService.approve_payment(first.pk, admin_level_1)
        with pytest.raises(InvalidAmount):
            LedgerService.approve_payment(second.pk, admin_level_1)

        second.refresh_from_db()
        assert second.status == PaymentStatus.PENDING
        assert not Transaction.objects.filter(related_payment=second).exists()
        member_due.refresh_from_db()
        assert member_due.balance == Decimal('2000.00')
        assert_balanced(member_due)

    def test_no_lost_update_between_sequential_approvals(self, member_due, admin_level_1, admin_level_2):
        first = record_due(member_due, '1000')
        second = record_due(member_due, '1500')
        stale = MemberDue.objects.get(pk=member_due.pk)

        LedgerService.approve_payment(first.pk, admin_level_1)
        LedgerService.approve_payment(second.pk, admin_level_2)

        # The stale instance read before either approval must not matter
        assert stale.balance == Decimal('5000.00')
        member_due.refresh_from_db()
        assert member_due.amount_paid == Decimal('2500.00')
        assert member_due.balance == Decimal('2500.00')
        assert_balanced(member_due)

    @pytest.mark.parametrize('order', [(0, 1, 2), (2, 1, 0), (1, 2, 0)])
    def test_final_state_independent_of_approval_order(self, member_due, admin_level_1, order):
        payments = [record_due(member_due, value) for value in ('1000', '1500', '2500')]

        for index in order:
            LedgerService.approve_payment(payments[index].pk, admin_level_1)
            assert_balanced(member_due)

        member_due.refresh_from_db()
        assert member_due.balance == Decimal('0.00')
        assert member_due.status == ObligationStatus.APPROVED

    def test_levy_payment(self, member_levy, admin_level_1):
        payment = LedgerService.record_payment(
            user=member_levy.user, amount='200', payment_type=PaymentType.LEVY,
            recorded_by=member_levy.user, related_item_id=member_levy.pk,
        )
        LedgerService.approve_payment(payment.pk, admin_level_1)

        member_levy.refresh_from_db()
        assert member_levy.balance == Decimal('1000.00')
        assert member_levy.status == ObligationStatus.PARTIAL
        assert Transaction.objects.get(related_payment=payment).category == 'Levies'

    def test_already_approved_is_conflict(self, member_due, admin_level_1):
        payment = record_due(member_due, '100')
        LedgerService.approve_payment(payment.pk, admin_level_1)

        with pytest.raises(Conflict):
            LedgerService.approve_payment(payment.pk, admin_level_1)
        with pytest.raises(Conflict):
            LedgerService.reject_payment(payment.pk, admin_level_1)
        member_due.refresh_from_db()
        assert member_due.amount_paid == Decimal('100.00')

    def test_unknown_payment(self, admin_level_1):
        with pytest.raises(ResourceNotFound):
            LedgerService.approve_payment(424242, admin_level_1)

    def test_member_cannot_approve(self, member_due, other_member):
        payment = record_due(member_due, '100')
        with pytest.raises(Forbidden):
            LedgerService.approve_payment(payment.pk, other_member)

    def test_admin_cannot_approve_own_payment(self, due, admin_level_1):
        LedgerService.assign_obligation(due, [admin_level_1.pk])
        own_due = admin_level_1.member_dues.get(due=due)
        payment = record_due(own_due, '100')

        with pytest.raises(Forbidden):
            LedgerService.approve_payment(payment.pk, admin_level_1)
        payment.refresh_from_db()
        assert payment.status == PaymentStatus.PENDING

    def test_legacy_admin_approves_like_level_1(self, member_due, legacy_admin):
        payment = record_due(member_due, '100')
        assert LedgerService.approve_payment(payment.pk, legacy_admin).status == PaymentStatus.APPROVED

    def test_loan_repayment_needs_loan_capability(self, approved_loan, admin_level_1, admin_level_2):
        payment = LedgerService.record_payment(
            user=approved_loan.user, amount='10000', payment_type=PaymentType.LOAN_REPAYMENT,
            recorded_by=approved_loan.user, related_item_id=approved_loan.pk,
        )
        with pytest.raises(Forbidden):
            LedgerService.approve_payment(payment.pk, admin_level_1)

        LedgerService.approve_payment(payment.pk, admin_level_2)
        approved_loan.refresh_from_db()
        assert approved_loan.status == LoanStatus.PAID
        assert approved_loan.repayment_date == payment.payment_date

    def test_processed_loan_repayment_stays_forbidden_for_level_1(self, approved_loan, admin_level_1, admin_level_2):
        payment = LedgerService.record_payment(
            user=approved_loan.user, amount='10000', payment_type=PaymentType.LOAN_REPAYMENT,
            recorded_by=approved_loan.user, related_item_id=approved_loan.pk,
        )
        LedgerService.approve_payment(payment.pk, admin_level_2)

        # Level 1 learns nothing about the repayment's status
        with pytest.raises(Forbidden):
            LedgerService.approve_payment(payment.pk, admin_level_1)
        with pytest.raises(Forbidden):
            LedgerService.reject_payment(payment.pk, admin_level_1)
        with pytest.raises(Conflict):
            LedgerService.approve_payment(payment.pk, admin_level_2)

    def test_pledge_payment_fulfils_pledge(self, pledge, admin_level_1):
        payment = LedgerService.record_payment(
            user=pledge.user, amount='500', payment_type=PaymentType.PLEDGE,
            recorded_by=pledge.user, related_item_id=pledge.pk,
        )
        LedgerService.approve_payment(payment.pk, admin_level_1)

        pledge.refresh_from_db()
        assert pledge.status == PaymentStatus.APPROVED
        assert pledge.payment_id == payment.pk
        assert pledge.fulfillment_date == payment.payment_date

    def test_second_pledge_payment_conflicts(self, pledge, admin_level_1):
        first = LedgerService.record_payment(
            user=pledge.user, amount='750', payment_type=PaymentType.PLEDGE,
            recorded_by=pledge.user, related_item_id=pledge.pk,
        )
        second = LedgerService.record_payment(
            user=pledge.user, amount='750', payment_type=PaymentType.PLEDGE,
            recorded_by=pledge.user, related_item_id=pledge.pk,
        )
        LedgerService.approve_payment(first.pk, admin_level_1)

        with pytest.raises(Conflict):
            LedgerService.approve_payment(second.pk, admin_level_1)
        second.refresh_from_db()
        assert second.status == PaymentStatus.PENDING

    def test_donation_payment_approves_donation(self, member, admin_level_1):
        payment = LedgerService.record_payment(
            user=member, amount='80', payment_type=PaymentType.DONATION, recorded_by=member,
        )
        LedgerService.approve_payment(payment.pk, admin_level_1)
        assert Donation.objects.get(pk=payment.donation_id).status == PaymentStatus.APPROVED


class TestRejectPayment:
    def test_reject_keeps_balance(self, member_due, admin_level_1):
        payment = record_due(member_due, '1000')

        rejected = LedgerService.reject_payment(payment.pk, admin_level_1, 'Cheque bounced')

        assert rejected.status == PaymentStatus.REJECTED
        assert rejected.rejection_reason == 'Cheque bounced'
        member_due.refresh_from_db()
        assert member_due.balance == Decimal('5000.00')
        assert not Transaction.objects.filter(related_payment=payment).exists()

    def test_rejected_payment_cannot_be_approved(self, member_due, admin_level_1):
        payment = record_due(member_due, '1000')
        LedgerService.reject_payment(payment.pk, admin_level_1)
        with pytest.raises(Conflict):
            LedgerService.approve_payment(payment.pk, admin_level_1)

    def test_reject_donation_payment_rejects_donation(self, member, admin_level_1):
        payment = LedgerService.record_payment(
            user=member, amount='80', payment_type=PaymentType.DONATION, recorded_by=member,
        )
        LedgerService.reject_payment(payment.pk, admin_level_1)
        assert Donation.objects.get(pk=payment.donation_id).status == PaymentStatus.REJECTED

    def test_member_cannot_reject(self, member_due, other_member):
        payment = record_due(member_due, '100')
        with pytest.raises(Forbidden):
            LedgerService.reject_payment(payment.pk, other_member)


class TestAssignObligation:
    def test_assign_to_all_active_members(self, due, member, other_member, admin_level_1):
        inactive = make_user('ivan@example.com', is_active=False)

        result = LedgerService.assign_obligation(due, 'all')

        assert result == {'assigned': 2, 'skipped': 0}
        assigned = set(MemberDue.objects.filter(due=due).values_list('user_id', flat=True))
        assert assigned == {member.pk, other_member.pk}
        assert inactive.pk not in assigned

    def test_new_obligation_starts_unpaid(self, member_due):
        assert member_due.amount == Decimal('5000.00')
        assert member_due.amount_paid == Decimal('0.00')
        assert member_due.balance == Decimal('5000.00')
        assert member_due.status == ObligationStatus.PENDING

    def test_assignment_is_idempotent(self, due, member, other_member):
        LedgerService.assign_obligation(due, [member.pk])

        result = LedgerService.assign_obligation(due, [member.pk, other_member.pk])

        assert result == {'assigned': 1, 'skipped': 1}
        assert MemberDue.objects.filter(due=due, user=member).count() == 1

    def test_unknown_user_ids(self, due, member):
        with pytest.raises(InvalidRequest):
            LedgerService.assign_obligation(due, [member.pk, 999999])
        assert not MemberDue.objects.filter(due=due).exists()

    def test_empty_selection(self, due):
        with pytest.raises(InvalidRequest):
            LedgerService.assign_obligation(due, [])

    def test_levy_assignment(self, levy, member):
        assert LedgerService.assign_obligation(levy, [member.pk]) == {'assigned': 1, 'skipped': 0}
        assert member.member_levies.get(levy=levy).balance == Decimal('1200.00')

    def test_template_amount_change_does_not_touch_existing(self, member_due):
        due = member_due.due
        due.amount = Decimal('6000.00')
        due.save()
        member_due.refresh_from_db()
        assert member_due.amount == Decimal('5000.00')


class TestLoans:
    def test_apply_uses_configured_interest_rate(self, member):
        settings = SystemSetting.get_settings()
        settings.default_loan_interest_rate = Decimal('7.50')
        settings.save()

        loan = LedgerService.apply_for_loan(member, '2000', 'Equipment')

        assert loan.status == LoanStatus.PENDING
        assert loan.interest_rate == Decimal('7.50')
        assert loan.total_payable == Decimal('2150.00')

    def test_level_1_cannot_manage_loans(self, member, admin_level_1):
        loan = LedgerService.apply_for_loan(member, '2000', 'Equipment')
        with pytest.raises(Forbidden):
            LedgerService.approve_loan(loan.pk, admin_level_1)

    def test_level_1_cannot_apply_for_a_loan(self, admin_level_1, legacy_admin):
        for admin in (admin_level_1, legacy_admin):
            with pytest.raises(Forbidden):
                LedgerService.apply_for_loan(admin, '2000', 'Equipment')
        assert not Loan.objects.exists()

    def test_approve_then_mark_paid(self, member, admin_level_2):
        loan = LedgerService.apply_for_loan(member, '2000', 'Equipment')

        loan = LedgerService.approve_loan(loan.pk, admin_level_2)
        assert loan.status == LoanStatus.APPROVED
        assert loan.approved_by == admin_level_2
        assert loan.approval_date is not None

        loan = LedgerService.mark_loan_paid(loan.pk, admin_level_2)
        assert loan.status == LoanStatus.PAID

    def test_reject_only_pending(self, member, admin_level_2):
        loan = LedgerService.apply_for_loan(member, '2000', 'Equipment')
        LedgerService.reject_loan(loan.pk, admin_level_2, 'Insufficient savings')

        loan.refresh_from_db()
        assert loan.rejection_reason == 'Insufficient savings'
        with pytest.raises(Conflict):
            LedgerService.approve_loan(loan.pk, admin_level_2)

    def test_unknown_loan(self, admin_level_2):
        with pytest.raises(ResourceNotFound):
            LedgerService.approve_loan(123456, admin_level_2)


class TestRejectPledge:
    def test_reject_pending_pledge(self, pledge, admin_level_1):
        assert LedgerService.reject_pledge(pledge.pk, admin_level_1).status == PaymentStatus.REJECTED

    def test_rejected_pledge_cannot_be_paid(self, pledge, admin_level_1):
        LedgerService.reject_pledge(pledge.pk, admin_level_1)
        with pytest.raises(Conflict):
            LedgerService.record_payment(
                user=pledge.user, amount='750', payment_type=PaymentType.PLEDGE,
                recorded_by=pledge.user, related_item_id=pledge.pk,
            )

    def test_member_cannot_reject(self, pledge, other_member):
        with pytest.raises(Forbidden):
            LedgerService.reject_pledge(pledge.pk, other_member)


class TestAggregate:
    def test_organisation_totals(self, member_due, other_member, admin_level_1):
        LedgerService.approve_payment(record_due(member_due, '2000').pk, admin_level_1)
        record_due(member_due, '500')
        donation = LedgerService.record_payment(
            user=other_member, amount='300', payment_type=PaymentType.DONATION, recorded_by=other_member,
        )
        LedgerService.reject_payment(donation.pk, admin_level_1)

        summary = LedgerService.aggregate()

        assert summary['totalCollected'] == Decimal('2000.00')
        assert summary['pendingAmount'] == Decimal('500.00')
        assert summary['approvedPayments'] == 1
        assert summary['pendingPayments'] == 1
        assert summary['rejectedPayments'] == 1
        assert summary['collectedByType'][PaymentType.DUE] == Decimal('2000.00')
        assert summary['dues']['outstanding'] == Decimal('3000.00')
        assert summary['dues']['paidPercentage'] == Decimal('0.00')
        assert summary['totalIncome'] == Decimal('2000.00')
        assert summary['netBalance'] == Decimal('2000.00')
        assert summary['memberCount'] == 2

    def test_paid_percentage_counts_settled_assignments(self, due, member_due, other_member, admin_level_1):
        LedgerService.assign_obligation(due, [other_member.pk])
        other_due = other_member.member_dues.get(due=due)
        LedgerService.approve_payment(record_due(member_due, '5000').pk, admin_level_1)
        LedgerService.approve_payment(record_due(other_due, '4000').pk, admin_level_1)

        dues = LedgerService.aggregate()['dues']

        assert dues['settled'] == 1
        assert dues['assigned'] == 2
        assert dues['amountPaid'] == Decimal('9000.00')
        assert dues['paidPercentage'] == Decimal('50.00')

    def test_member_scope_only_counts_own_records(self, member_due, other_member, admin_level_1):
        LedgerService.approve_payment(record_due(member_due, '2000').pk, admin_level_1)
        LedgerService.record_payment(
            user=other_member, amount='300', payment_type=PaymentType.DONATION, recorded_by=other_member,
        )

        summary = LedgerService.aggregate(user=other_member)

        assert summary['totalCollected'] == Decimal('0.00')
        assert summary['pendingAmount'] == Decimal('300.00')
        assert summary['dues']['assigned'] == 0
        assert 'memberCount' not in summary

    def test_loans_left_out_when_not_requested(self, approved_loan):
        summary = LedgerService.aggregate(include_loans=False)
        assert 'loans' not in summary
        assert PaymentType.LOAN_REPAYMENT not in summary['collectedByType']

    def test_loan_repayment_income_left_out_when_not_requested(self, approved_loan, admin_level_2):
        payment = LedgerService.record_payment(
            user=approved_loan.user, amount='10000', payment_type=PaymentType.LOAN_REPAYMENT,
            recorded_by=approved_loan.user, related_item_id=approved_loan.pk,
        )
        LedgerService.approve_payment(payment.pk, admin_level_2)

        assert LedgerService.aggregate()['totalIncome'] == Decimal('10000.00')
        summary = LedgerService.aggregate(include_loans=False)
        assert summary['totalIncome'] == Decimal('0.00')
        assert summary['netBalance'] == Decimal('0.00')
        assert summary['totalCollected'] == Decimal('0.00')

    def test_loan_totals(self, approved_loan):
        summary = LedgerService.aggregate()
        assert summary['loans']['approved'] == 1
        assert summary['loans']['outstanding'] == Decimal('10000.00')

    def test_date_window(self, member_due, admin_level_1):
        payment = record_due(member_due, '100')
        Payment.objects.filter(pk=payment.pk).update(payment_date='2023-01-15')

        assert LedgerService.aggregate(start_date=date(2023, 1, 1), end_date=date(2023, 1, 31))['pendingAmount'] == Decimal('100.00')
        assert LedgerService.aggregate(start_date=date(2023, 2, 1))['pendingAmount'] == Decimal('0.00')

    def test_empty_ledger(self, db):
        summary = LedgerService.aggregate()
        assert summary['totalCollected'] == Decimal('0.00')
        assert summary['dues']['paidPercentage'] == Decimal('0.00')


def test_super_admin_role_has_every_ledger_capability(member_due):
    boss = make_user('boss@example.com', role=UserRole.SUPER_ADMIN)
    payment = record_due(member_due, '100')
    assert LedgerService.approve_payment(payment.pk, boss).status == PaymentStatus.APPROVED


def test_pledge_amount_need_not_match_payment(pledge, admin_level_1):
    payment = LedgerService.record_payment(
        user=pledge.user, amount='100', payment_type=PaymentType.PLEDGE,
        recorded_by=pledge.user, related_item_id=pledge.pk,
    )
    LedgerService.approve_payment(payment.pk, admin_level_1)
    assert Pledge.objects.get(pk=pledge.pk).status == PaymentStatus.APPROVED


@pytest.mark.skipif(not connection.features.has_select_for_update, reason='backend has no row-level locks')
@pytest.mark.django_db(transaction=True)
def test_concurrent_approvals_do_not_lose_updates(member_due, admin_level_1, admin_level_2):
    first = record_due(member_due, '1000')
    second = record_due(member_due, '1500')
    barrier = threading.Barrier(2)
    errors = []

    def approve(payment, approver):
        try:
            barrier.wait(timeout=10)
            LedgerService.approve_payment(payment.pk, approver)
        except Exception as e:
            errors.append(e)
        finally:
            connections.close_all()

    threads = [
        threading.Thread(target=approve, args=(first, admin_level_1)),
        threading.Thread(target=approve, args=(second, admin_level_2)),
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert errors == []
    member_due.refresh_from_db()
    assert member_due.balance == Decimal('5000.00') - Decimal('1000.00') - Decimal('1500.00')
    assert member_due.amount_paid == Decimal('2500.00')
    assert Payment.objects.filter(status=PaymentStatus.APPROVED).count() == 2
