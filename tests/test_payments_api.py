from decimal import Decimal

import pytest

from finance.models import Payment, PaymentStatus, PaymentType
from finance.services.ledger_service import LedgerService
from tests.conftest import amount

pytestmark = pytest.mark.django_db


def pay_due(client, member_due, value, **extra):
    payload = {'amount': value, 'paymentType': 'due', 'relatedItem': member_due.pk}
    payload.update(extra)
    return client.post('/api/payments', payload, format='json')


class TestRecordPaymentApi:
    def test_member_records_own_payment(self, client_for, member, member_due):
        response = pay_due(client_for(member), member_due, '1500.00', paymentMethod='BANK_TRANSFER')

        assert response.status_code == 201
        data = response.json()['data']
        assert data['status'] == PaymentStatus.PENDING
        assert data['paymentMethod'] == 'bank_transfer'
        assert data['relatedItem'] == {'type': 'due', 'id': member_due.pk}
        assert amount(data['amount']) == Decimal('1500.00')
        assert data['user']['id'] == member.pk

    def test_zero_amount_is_400(self, client_for, member, member_due):
        response = pay_due(client_for(member), member_due, '0')
        assert response.status_code == 400
        assert response.json()['success'] is False

    def test_overpayment_is_400(self, client_for, member, member_due):
        response = pay_due(client_for(member), member_due, '5000.50')

        assert response.status_code == 400
        assert 'exceeds' in response.json()['message']

    def test_member_cannot_record_for_other_member(self, client_for, other_member, member_due):
        response = pay_due(client_for(other_member), member_due, '100', user=member_due.user_id)
        assert response.status_code == 403

    def test_admin_payment_endpoint(self, client_for, admin_level_1, member, member_due):
        response = client_for(admin_level_1).post('/api/payments/admin-payment', {
            'user': member.pk, 'amount': '200', 'paymentType': 'due', 'relatedItem': member_due.pk,
            'paymentDate': '2024-03-01T10:00:00.000Z',
        }, format='json')

        assert response.status_code == 201
        data = response.json()['data']
        assert data['paidByAdmin'] is True
        assert data['recordedBy']['id'] == admin_level_1.pk
        assert data['paymentDate'] == '2024-03-01'
        assert data['status'] == PaymentStatus.PENDING

    def test_admin_payment_endpoint_is_admin_only(self, client_for, member, member_due):
        response = client_for(member).post('/api/payments/admin-payment', {
            'user': member.pk, 'amount': '200', 'paymentType': 'due', 'relatedItem': member_due.pk,
        }, format='json')
        assert response.status_code == 403

    def test_unknown_member(self, client_for, admin_level_1):
        response = client_for(admin_level_1).post('/api/payments/admin-payment', {
            'user': 999999, 'amount': '200', 'paymentType': 'donation',
        }, format='json')
        assert response.status_code == 404


class TestApproveRejectApi:
    def test_member_cannot_approve(self, client_for, member, member_due):
        payment_id = pay_due(client_for(member), member_due, '100').json()['data']['id']

        response = client_for(member).put(f'/api/payments/{payment_id}/approve')

        assert response.status_code == 403
        assert response.json()['success'] is False
        assert Payment.objects.get(pk=payment_id).status == PaymentStatus.PENDING

    def test_admin_approves(self, client_for, member, admin_level_1, member_due):
        payment_id = pay_due(client_for(member), member_due, '5000').json()['data']['id']

        response = client_for(admin_level_1).put(f'/api/payments/{payment_id}/approve')

        assert response.status_code == 200
        assert response.json()['data']['status'] == PaymentStatus.APPROVED
        member_due.refresh_from_db()
        assert member_due.balance == Decimal('0.00')

    def test_approve_twice_is_409(self, client_for, member, admin_level_1, member_due):
        payment_id = pay_due(client_for(member), member_due, '100').json()['data']['id']
        admin = client_for(admin_level_1)
        admin.put(f'/api/payments/{payment_id}/approve')

        response = admin.put(f'/api/payments/{payment_id}/approve')

        assert response.status_code == 409
        assert response.json()['success'] is False

    def test_approve_unknown_is_404(self, client_for, admin_level_1):
        assert client_for(admin_level_1).put('/api/payments/999999/approve').status_code == 404

    def test_reject_with_reason(self, client_for, member, admin_level_1, member_due):
        payment_id = pay_due(client_for(member), member_due, '100').json()['data']['id']

        response = client_for(admin_level_1).put(
            f'/api/payments/{payment_id}/reject', {'rejectionReason': 'Wrong amount'}, format='json'
        )

        assert response.status_code == 200
        assert response.json()['data']['status'] == PaymentStatus.REJECTED
        assert response.json()['data']['rejectionReason'] == 'Wrong amount'

    def test_level_1_cannot_approve_loan_repayment(self, client_for, admin_level_1, admin_level_2, approved_loan):
        payment = LedgerService.record_payment(
            user=approved_loan.user, amount='10000', payment_type=PaymentType.LOAN_REPAYMENT,
            recorded_by=approved_loan.user, related_item_id=approved_loan.pk,
        )
        assert client_for(admin_level_1).put(f'/api/payments/{payment.pk}/approve').status_code == 403
        assert client_for(admin_level_2).put(f'/api/payments/{payment.pk}/approve').status_code == 200
        assert client_for(admin_level_1).put(f'/api/payments/{payment.pk}/approve').status_code == 403
        assert client_for(admin_level_1).put(f'/api/payments/{payment.pk}/reject').status_code == 403

    def test_level_1_cannot_attach_receipt_to_loan_repayment(self, client_for, admin_level_1, approved_loan):
        payment = LedgerService.record_payment(
            user=approved_loan.user, amount='10000', payment_type=PaymentType.LOAN_REPAYMENT,
            recorded_by=approved_loan.user, related_item_id=approved_loan.pk,
        )
        response = client_for(admin_level_1).put(
            f'/api/payments/{payment.pk}/receipt', {'receiptUrl': 'https://example.com/r.jpg'}, format='json'
        )

        assert response.status_code == 403
        payment.refresh_from_db()
        assert payment.receipt_url == ''


class TestPaymentVisibility:
    def test_member_cannot_list_all(self, client_for, member):
        assert client_for(member).get('/api/payments').status_code == 403

    def test_my_payments(self, client_for, member, other_member, member_due):
        pay_due(client_for(member), member_due, '100')
        LedgerService.record_payment(
            user=other_member, amount='50', payment_type=PaymentType.DONATION, recorded_by=other_member,
        )

        response = client_for(member).get('/api/payments/my-payments')

        assert response.status_code == 200
        assert [row['user']['id'] for row in response.json()['data']] == [member.pk]

    def test_loan_repayments_hidden_from_level_1(self, client_for, admin_level_1, admin_level_2, member_due, approved_loan):
        member = approved_loan.user
        pay_due(client_for(member), member_due, '100')
        repayment = LedgerService.record_payment(
            user=member, amount='500', payment_type=PaymentType.LOAN_REPAYMENT,
            recorded_by=member, related_item_id=approved_loan.pk,
        )

        level_1_types = {row['paymentType'] for row in client_for(admin_level_1).get('/api/payments').json()['data']}
        level_2_types = {row['paymentType'] for row in client_for(admin_level_2).get('/api/payments').json()['data']}

        assert level_1_types == {'due'}
        assert level_2_types == {'due', 'loan_repayment'}
        assert client_for(admin_level_1).get(f'/api/payments/{repayment.pk}').status_code == 403
        assert client_for(member).get(f'/api/payments/{repayment.pk}').status_code == 200

    def test_member_cannot_view_other_members_payment(self, client_for, member, other_member, member_due):
        payment_id = pay_due(client_for(member), member_due, '100').json()['data']['id']
        assert client_for(other_member).get(f'/api/payments/{payment_id}').status_code == 403

    def test_member_payments_endpoint(self, client_for, member, other_member, admin_level_1, member_due):
        pay_due(client_for(member), member_due, '100')

        assert client_for(other_member).get(f'/api/payments/member/{member.pk}').status_code == 403
        response = client_for(admin_level_1).get(f'/api/payments/member/{member.pk}')
        assert response.status_code == 200
        assert len(response.json()['data']) == 1

    def test_filters(self, client_for, member, admin_level_1, member_due):
        pay_due(client_for(member), member_due, '100')
        LedgerService.record_payment(user=member, amount='40', payment_type=PaymentType.DONATION, recorded_by=member)
        admin = client_for(admin_level_1)

        assert len(admin.get('/api/payments', {'paymentType': 'donation'}).json()['data']) == 1
        assert len(admin.get('/api/payments', {'status': 'approved'}).json()['data']) == 0
        assert len(admin.get('/api/payments', {'search': 'mary'}).json()['data']) == 2
        assert admin.get('/api/payments', {'startDate': 'yesterday'}).status_code == 400
        assert admin.get('/api/payments', {'userId': 'abc'}).status_code == 400


class TestReceipt:
    def test_owner_attaches_receipt_while_pending(self, client_for, member, admin_level_1, member_due):
        payment_id = pay_due(client_for(member), member_due, '100').json()['data']['id']
        client = client_for(member)

        response = client.put(
            f'/api/payments/{payment_id}/receipt', {'receiptUrl': 'https://files.example.com/r/1.png'}, format='json'
        )
        assert response.status_code == 200
        assert response.json()['data']['receiptUrl'] == 'https://files.example.com/r/1.png'

        client_for(admin_level_1).put(f'/api/payments/{payment_id}/approve')
        response = client.put(
            f'/api/payments/{payment_id}/receipt', {'receiptUrl': 'https://files.example.com/r/2.png'}, format='json'
        )
        assert response.status_code == 409
