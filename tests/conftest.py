from decimal import Decimal

import pytest
from rest_framework.authtoken.models import Token
from rest_framework.test import APIClient

from finance.models import User, UserRole, Due, Levy, Loan, LoanStatus, Pledge
from finance.services.ledger_service import LedgerService

PASSWORD = 'Str0ng-Passw0rd!'


def make_user(email, role=UserRole.MEMBER, **extra):
    extra.setdefault('first_name', email.split('@')[0].title())
    extra.setdefault('last_name', 'Tester')
    return User.objects.create_user(email=email, password=PASSWORD, role=role, **extra)


def amount(value):
    """JSON numbers come back as floats; compare them as money"""
    return Decimal(str(value)).quantize(Decimal('0.01'))


@pytest.fixture(autouse=True)
def push_disabled(settings):
    settings.PUSH_NOTIFICATIONS_ENABLED = False


@pytest.fixture
def member(db):
    return make_user('mary@example.com')


@pytest.fixture
def other_member(db):
    return make_user('oscar@example.com')


@pytest.fixture
def admin_level_1(db):
    return make_user('alice@example.com', role=UserRole.ADMIN_LEVEL_1)


@pytest.fixture
def legacy_admin(db):
    return make_user('legacy@example.com', role=UserRole.ADMIN)


@pytest.fixture
def admin_level_2(db):
    return make_user('bob@example.com', role=UserRole.ADMIN_LEVEL_2)


@pytest.fixture
def super_admin(db):
    return make_user('sara@example.com', role=UserRole.SUPER_ADMIN)


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def client_for():
    """Build an APIClient authenticated as ``user``"""
    def _client_for(user):
        client = APIClient()
        client.force_authenticate(user=user)
        return client
    return _client_for


@pytest.fixture
def token_client_for():
    """Build an APIClient sending a real bearer token for ``user``"""
    def _token_client_for(user):
        token, _ = Token.objects.get_or_create(user=user)
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f'Bearer {token.key}')
        return client
    return _token_client_for


@pytest.fixture
def due(db, admin_level_1):
    return Due.objects.create(name='Annual Dues 2024', amount=Decimal('5000.00'), created_by=admin_level_1)


@pytest.fixture
def levy(db, admin_level_1):
    return Levy.objects.create(title='Building Levy', amount=Decimal('1200.00'), created_by=admin_level_1)


@pytest.fixture
def member_due(due, member):
    LedgerService.assign_obligation(due, [member.pk])
    return member.member_dues.get(due=due)


@pytest.fixture
def member_levy(levy, member):
    LedgerService.assign_obligation(levy, [member.pk])
    return member.member_levies.get(levy=levy)


@pytest.fixture
def pledge(member):
    return Pledge.objects.create(user=member, amount=Decimal('750.00'), title='Roof fund')


@pytest.fixture
def approved_loan(member):
    return Loan.objects.create(
        user=member, amount=Decimal('10000.00'), purpose='School fees', status=LoanStatus.APPROVED
    )
