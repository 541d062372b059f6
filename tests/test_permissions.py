import pytest
from django.contrib.auth.models import AnonymousUser

from finance.models import UserRole
from finance.permissions import (
    ROLE_CAPABILITIES, Capability, HasCapability, can, can_access_owned, capabilities_for, is_admin
)
from tests.conftest import make_user

pytestmark = pytest.mark.django_db


class FakeRequest:
    def __init__(self, user):
        self.user = user


def test_member_has_no_capabilities(member):
    assert capabilities_for(member) == frozenset()
    assert not is_admin(member)


def test_legacy_admin_matches_level_1():
    assert ROLE_CAPABILITIES[UserRole.ADMIN] == ROLE_CAPABILITIES[UserRole.ADMIN_LEVEL_1]


def test_tiers_are_cumulative():
    level_1 = ROLE_CAPABILITIES[UserRole.ADMIN_LEVEL_1]
    level_2 = ROLE_CAPABILITIES[UserRole.ADMIN_LEVEL_2]
    super_admin = ROLE_CAPABILITIES[UserRole.SUPER_ADMIN]
    assert level_1 < level_2 < super_admin


@pytest.mark.parametrize('role, capability, expected', [
    (UserRole.ADMIN_LEVEL_1, Capability.PAYMENTS_APPROVE, True),
    (UserRole.ADMIN_LEVEL_1, Capability.LOANS_READ, False),
    (UserRole.ADMIN_LEVEL_1, Capability.LOANS_MANAGE, False),
    (UserRole.ADMIN_LEVEL_2, Capability.LOANS_MANAGE, True),
    (UserRole.ADMIN_LEVEL_2, Capability.USERS_PROMOTE, False),
    (UserRole.ADMIN_LEVEL_2, Capability.REPORTS_GENERATE, False),
    (UserRole.SUPER_ADMIN, Capability.USERS_PROMOTE, True),
    (UserRole.SUPER_ADMIN, Capability.SETTINGS_MANAGE, True),
    (UserRole.SUPER_ADMIN, Capability.UPLOADS_BULK, True),
    (UserRole.MEMBER, Capability.PAYMENTS_READ_ALL, False),
])
def test_capability_table(role, capability, expected):
    user = make_user(f'{role}@example.com', role=role)
    assert can(user, capability) is expected


def test_inactive_admin_has_nothing():
    user = make_user('gone@example.com', role=UserRole.SUPER_ADMIN, is_active=False)
    assert capabilities_for(user) == frozenset()


def test_anonymous_has_nothing():
    assert capabilities_for(AnonymousUser()) == frozenset()
    assert capabilities_for(None) == frozenset()


def test_owner_access(member, other_member, admin_level_1, pledge):
    assert can_access_owned(member, pledge, Capability.PLEDGES_MANAGE)
    assert not can_access_owned(other_member, pledge, Capability.PLEDGES_MANAGE)
    assert can_access_owned(admin_level_1, pledge, Capability.PLEDGES_MANAGE)


def test_has_capability_permission_class(admin_level_1, admin_level_2):
    permission = HasCapability(Capability.LOANS_READ)()
    assert not permission.has_permission(FakeRequest(admin_level_1), None)
    assert permission.has_permission(FakeRequest(admin_level_2), None)


def test_has_capability_requires_all(admin_level_2):
    permission = HasCapability(Capability.LOANS_READ, Capability.SETTINGS_MANAGE)()
    assert not permission.has_permission(FakeRequest(admin_level_2), None)


def test_role_change_applies_immediately(member):
    assert not can(member, Capability.LOANS_READ)
    member.role = UserRole.ADMIN_LEVEL_2
    member.save()
    assert can(member, Capability.LOANS_READ)
