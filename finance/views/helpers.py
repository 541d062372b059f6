from django.shortcuts import get_object_or_404

from finance.exceptions import Forbidden, InvalidRequest
from finance.models import User
from finance.permissions import can, can_access_owned


def get_member_or_404(user_id):
    return get_object_or_404(User, pk=parse_id(user_id, 'userId'))


def require_capability(user, capability, message=None):
    if not can(user, capability):
        raise Forbidden(message or 'Access denied. Your role does not permit this operation.')


def require_owner_or(user, obj, capability, message=None):
    """Allow the record's owner, or anyone holding ``capability``"""
    if not can_access_owned(user, obj, capability):
        raise Forbidden(message or 'Access denied. You can only access your own records.')


def require_self_or(user, target_user_id, capability, message=None):
    if parse_id(target_user_id, 'userId') != user.pk and not can(user, capability):
        raise Forbidden(message or 'Access denied. You can only access your own records.')


def validation_message(errors):
    """First readable message from a serializer's ``errors``"""
    for field, messages in errors.items():
        message = messages[0] if isinstance(messages, list) and messages else messages
        if isinstance(message, dict):
            return validation_message(message)
        if field == 'non_field_errors':
            return str(message)
        return f"{field}: {message}"
    return 'Validation failed.'


def parse_assignment_targets(data):
    """
    Read who an obligation is assigned to from a request body.

    Accepts ``members`` as ``"all"``, a list of ids or a comma separated
    string, or the older ``assignToAll``/``selectedMembers`` pair. Returns
    ``"all"``, a list of ids, or None when nothing was specified.
    """
    members = data.get('members')
    if members is None:
        if str(data.get('assignToAll', '')).lower() in ('true', '1'):
            return 'all'
        members = data.get('selectedMembers')
        if not members:
            return None
    if isinstance(members, str):
        if members.strip().lower() == 'all':
            return 'all'
        return [part.strip() for part in members.split(',') if part.strip()]
    if isinstance(members, (list, tuple)):
        return list(members)
    return [members]


def parse_id(value, field='id'):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidRequest(f"{field} must be a numeric id.")
