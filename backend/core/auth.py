"""
Request user resolution and agency-scoped access helpers.

System admins see every agency. Agency users see the agencies listed in
their profile's ``viewable_agencies`` (their own agency plus the child
agencies that registered them as a parent).
"""
from dataclasses import dataclass, field
from typing import Optional, Set

from rest_framework.permissions import BasePermission

from .constants import ROLE_AGENCY_USER, ROLE_SYSTEM_ADMIN
from .exceptions import AccessDenied
from .models import Profile


@dataclass
class AuthUser:
    id: int
    email: str
    role: str
    agency_id: Optional[int]
    viewable_agency_ids: Set[int] = field(default_factory=set)

    @property
    def is_system_admin(self):
        return self.role == ROLE_SYSTEM_ADMIN


def get_profile(user):
    """Return the user's profile, creating a default one for legacy accounts"""
    try:
        return user.profile
    except Profile.DoesNotExist:
        role = ROLE_SYSTEM_ADMIN if user.is_superuser else ROLE_AGENCY_USER
        profile, _ = Profile.objects.get_or_create(user=user, defaults={'role': role})
        return profile


def get_auth_user(request):
    """Resolve the request's user, role and agency scope (None when anonymous)"""
    user = getattr(request, 'user', None)
    if not user or not user.is_authenticated:
        return None
    profile = get_profile(user)
    return AuthUser(
        id=user.id,
        email=user.email,
        role=profile.role,
        agency_id=profile.agency_id,
        viewable_agency_ids=set(profile.viewable_agencies.values_list('id', flat=True)),
    )


def is_system_admin(user):
    if not user or not user.is_authenticated:
        return False
    return get_profile(user).role == ROLE_SYSTEM_ADMIN


def viewable_agency_ids(user):
    """
    Agency ids the user may see.
    Returns None for system admins, meaning no restriction.
    """
    profile = get_profile(user)
    if profile.role == ROLE_SYSTEM_ADMIN:
        return None
    return set(profile.viewable_agencies.values_list('id', flat=True))


def can_view_agency(user, agency_id):
    allowed = viewable_agency_ids(user)
    if allowed is None:
        return True
    return agency_id is not None and int(agency_id) in allowed


def ensure_can_view_agency(user, agency_id, message='Permission denied'):
    if not can_view_agency(user, agency_id):
        raise AccessDenied(message)


def scope_to_viewable(queryset, user, field_name='agency'):
    """Restrict a queryset to rows whose agency the user may see"""
    allowed = viewable_agency_ids(user)
    if allowed is None:
        return queryset
    return queryset.filter(**{f'{field_name}__in': allowed})


class IsSystemAdmin(BasePermission):
    message = 'Only system administrators can perform this action.'

    def has_permission(self, request, view):
        return is_system_admin(request.user)


class IsAgencyUser(BasePermission):
    message = 'Only agency users can perform this action.'

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        return get_profile(user).role == ROLE_AGENCY_USER
