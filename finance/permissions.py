"""
Role -> capability table.

Every role check in the API goes through this table; views never compare
role names directly. Members hold no capabilities and act only on records
they own.
"""
from rest_framework.permissions import BasePermission

from .models import UserRole


class Capability:
    MEMBERS_READ = 'members.read'
    MEMBERS_WRITE = 'members.write'
    PAYMENTS_READ_ALL = 'payments.read_all'
    PAYMENTS_RECORD_FOR_MEMBERS = 'payments.record_for_members'
    PAYMENTS_APPROVE = 'payments.approve'
    DONATIONS_MANAGE = 'donations.manage'
    PLEDGES_MANAGE = 'pledges.manage'
    OBLIGATIONS_MANAGE = 'obligations.manage'
    TRANSACTIONS_MANAGE = 'transactions.manage'
    DASHBOARD_ADMIN = 'dashboard.admin'
    LOANS_READ = 'loans.read'
    LOANS_MANAGE = 'loans.manage'
    USERS_PROMOTE = 'users.promote'
    SETTINGS_MANAGE = 'settings.manage'
    UPLOADS_BULK = 'uploads.bulk'
    REPORTS_GENERATE = 'reports.generate'


ADMIN_LEVEL_1_CAPABILITIES = frozenset({
    Capability.MEMBERS_READ,
    Capability.MEMBERS_WRITE,
    Capability.PAYMENTS_READ_ALL,
    Capability.PAYMENTS_RECORD_FOR_MEMBERS,
    Capability.PAYMENTS_APPROVE,
    Capability.DONATIONS_MANAGE,
    Capability.PLEDGES_MANAGE,
    Capability.OBLIGATIONS_MANAGE,
    Capability.TRANSACTIONS_MANAGE,
    Capability.DASHBOARD_ADMIN,
})

ADMIN_LEVEL_2_CAPABILITIES = ADMIN_LEVEL_1_CAPABILITIES | {
    Capability.LOANS_READ,
    Capability.LOANS_MANAGE,
}

SUPER_ADMIN_CAPABILITIES = ADMIN_LEVEL_2_CAPABILITIES | {
    Capability.USERS_PROMOTE,
    Capability.SETTINGS_MANAGE,
    Capability.UPLOADS_BULK,
    Capability.REPORTS_GENERATE,
}

ROLE_CAPABILITIES = {
    UserRole.MEMBER: frozenset(),
    UserRole.ADMIN: ADMIN_LEVEL_1_CAPABILITIES,
    UserRole.ADMIN_LEVEL_1: ADMIN_LEVEL_1_CAPABILITIES,
    UserRole.ADMIN_LEVEL_2: ADMIN_LEVEL_2_CAPABILITIES,
    UserRole.SUPER_ADMIN: SUPER_ADMIN_CAPABILITIES,
}


def capabilities_for(user):
    """Return the capability set granted to ``user`` (empty when anonymous or inactive)"""
    if user is None or not getattr(user, 'is_authenticated', False) or not user.is_active:
        return frozenset()
    return ROLE_CAPABILITIES.get(user.role, frozenset())


def can(user, capability):
    return capability in capabilities_for(user)


def is_admin(user):
    """Any admin tier, including the legacy ``admin`` role"""
    return can(user, Capability.PAYMENTS_APPROVE)


def is_member(user):
    return not is_admin(user)


def is_owner(user, obj):
    return obj is not None and getattr(obj, 'user_id', None) == user.pk


def can_access_owned(user, obj, capability):
    """Owner access always; cross-member access needs ``capability``"""
    return is_owner(user, obj) or can(user, capability)


def HasCapability(*required):
    """
    Build a DRF permission class requiring every capability in ``required``.

    Usage: ``@permission_classes([IsAuthenticated, HasCapability(Capability.LOANS_READ)])``
    """
    class _HasCapability(BasePermission):
        message = 'Access denied. Your role does not permit this operation.'

        def has_permission(self, request, view):
            granted = capabilities_for(request.user)
            return all(capability in granted for capability in required)

    _HasCapability.__name__ = f"HasCapability({', '.join(required)})"
    return _HasCapability


def can_use_loans(user):
    """Members work with their own loans; admin tiers need ``loans.read``"""
    return is_member(user) or can(user, Capability.LOANS_READ)


class LoanAccess(BasePermission):
    message = 'Access denied. Your role does not permit loan operations.'

    def has_permission(self, request, view):
        return can_use_loans(request.user)
