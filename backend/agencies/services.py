"""
Agency provisioning, hierarchy maintenance and visibility grants
"""
import logging
import secrets

from django.contrib.auth import get_user_model
from django.db import transaction

from backend.core.auth import get_profile
from backend.core.constants import ROLE_AGENCY_USER, TEMP_PASSWORD_ALPHABET, TEMP_PASSWORD_LENGTH
from backend.core.emails import send_registration_email
from backend.core.exceptions import Conflict, EmailDeliveryError, ValidationFailed
from backend.core.models import Profile
from .models import Agency, AgencyHierarchy

logger = logging.getLogger(__name__)

User = get_user_model()


def generate_temp_password(length=TEMP_PASSWORD_LENGTH):
    return ''.join(secrets.choice(TEMP_PASSWORD_ALPHABET) for _ in range(length))


def get_ancestor_ids(agency_ids):
    """All agencies above the given ones in the hierarchy"""
    ancestors = set()
    frontier = set(agency_ids)
    while frontier:
        parents = set(
            AgencyHierarchy.objects.filter(agency_id__in=frontier).values_list('parent_agency_id', flat=True)
        )
        frontier = parents - ancestors
        ancestors |= parents
    return ancestors


def clean_parent_ids(agency_id, parent_ids):
    """
    Drop self references and duplicates, then check the parents exist and
    that linking them would not make agency_id its own ancestor.
    """
    cleaned = []
    for parent_id in parent_ids or []:
        parent_id = int(parent_id)
        if parent_id == agency_id or parent_id in cleaned:
            continue
        cleaned.append(parent_id)

    if not cleaned:
        return cleaned

    existing = set(Agency.objects.filter(pk__in=cleaned).values_list('id', flat=True))
    missing = [pid for pid in cleaned if pid not in existing]
    if missing:
        raise ValidationFailed('Parent agency not found', parent_agency_ids=missing)

    if agency_id is not None and agency_id in get_ancestor_ids(cleaned):
        raise ValidationFailed('Parent agencies would create a circular hierarchy')
    return cleaned


def _parent_owner_profiles(parent_ids):
    owner_ids = (
        Agency.objects.filter(pk__in=parent_ids, user__isnull=False).values_list('user_id', flat=True)
    )
    return Profile.objects.filter(user_id__in=list(owner_ids))


def grant_parent_visibility(agency, parent_ids):
    for profile in _parent_owner_profiles(parent_ids):
        profile.viewable_agencies.add(agency)


def revoke_parent_visibility(agency, parent_ids):
    for profile in _parent_owner_profiles(parent_ids):
        profile.viewable_agencies.remove(agency)


def set_parent_agencies(agency, parent_ids):
    AgencyHierarchy.objects.filter(agency=agency).delete()
    AgencyHierarchy.objects.bulk_create([
        AgencyHierarchy(agency=agency, parent_agency_id=parent_id) for parent_id in parent_ids
    ])


def create_agency(name, commission_rate, rank, email, parent_agency_ids=None):
    """
    Create an agency together with its login account.

    Everything up to the registration e-mail runs in one transaction, so a
    failure at any step leaves no agency, user or hierarchy rows behind.

    Returns:
        (agency, temp_password)
    """
    email = email.strip().lower()
    if User.objects.filter(email__iexact=email).exists() or User.objects.filter(username__iexact=email).exists():
        raise Conflict('A user with this email already exists')

    temp_password = generate_temp_password()

    with transaction.atomic():
        agency = Agency.objects.create(name=name, commission_rate=commission_rate, rank=rank)

        user = User.objects.create_user(username=email, email=email, password=temp_password)
        agency.user = user
        agency.save(update_fields=['user'])

        profile = get_profile(user)
        profile.role = ROLE_AGENCY_USER
        profile.agency = agency
        profile.save(update_fields=['role', 'agency'])
        profile.viewable_agencies.add(agency)

        parent_ids = clean_parent_ids(agency.id, parent_agency_ids)
        if parent_ids:
            set_parent_agencies(agency, parent_ids)
            grant_parent_visibility(agency, parent_ids)

    logger.info(f"Created agency {agency.id} ({agency.name}) with user {user.id}")

    try:
        send_registration_email(email, temp_password, agency.name)
    except EmailDeliveryError as e:
        # Account creation stands even when the notification fails
        logger.error(f"Registration email for agency {agency.id} failed: {e}")

    return agency, temp_password


def update_agency(agency, name, commission_rate, rank, parent_agency_ids=None):
    """Update the agency and move parent visibility to the new parent set"""
    with transaction.atomic():
        agency = Agency.objects.select_for_update().get(pk=agency.pk)
        new_parent_ids = clean_parent_ids(agency.id, parent_agency_ids)
        old_parent_ids = list(
            AgencyHierarchy.objects.filter(agency=agency).values_list('parent_agency_id', flat=True)
        )

        revoke_parent_visibility(agency, old_parent_ids)

        agency.name = name
        agency.commission_rate = commission_rate
        agency.rank = rank
        agency.save(update_fields=['name', 'commission_rate', 'rank', 'updated_at'])

        set_parent_agencies(agency, new_parent_ids)
        grant_parent_visibility(agency, new_parent_ids)

    return agency, old_parent_ids, new_parent_ids
