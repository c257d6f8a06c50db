"""
Application status workflow
"""
import logging

from django.db import transaction
from django.utils import timezone

from backend.core.constants import FORM_TAB_AFFILIATION_CHECK, STATUS_AUTHORIZED
from backend.core.exceptions import Conflict
from backend.livers.models import Liver
from .models import Application

logger = logging.getLogger(__name__)


def should_create_liver(application, new_status):
    """An approved affiliation check with an agency becomes a roster entry"""
    return (
        new_status == STATUS_AUTHORIZED
        and application.form_tab == FORM_TAB_AFFILIATION_CHECK
        and application.agency_id is not None
        and application.liver_id is None
    )


def create_liver_from_application(application):
    return Liver.objects.create(
        name=application.name or None,
        address=application.address or None,
        birth_date=application.birth_date,
        contact=application.contact or None,
        email=application.email or None,
        tiktok_username=application.tiktok_username or None,
        link=application.tiktok_account_link or None,
        status=STATUS_AUTHORIZED,
        agency_id=application.agency_id,
    )


def update_application_status(application, new_status, expected_status=None):
    """
    Move an application to new_status if it is still in expected_status.

    expected_status defaults to the status the caller loaded. The compare
    and the write happen in a single UPDATE, so two admins acting on the
    same application cannot both succeed.

    Returns:
        (application, liver) where liver is the roster entry created by the
        transition, or None
    """
    expected_status = expected_status or application.status

    with transaction.atomic():
        updated = Application.objects.filter(pk=application.pk, status=expected_status).update(
            status=new_status, updated_at=timezone.now()
        )
        if not updated:
            current = Application.objects.filter(pk=application.pk).values_list('status', flat=True).first()
            raise Conflict(
                'Application status was changed by someone else. Reload and try again.',
                current_status=current,
            )

        application.refresh_from_db()
        liver = None
        if should_create_liver(application, new_status):
            liver = create_liver_from_application(application)
            application.liver = liver
            application.save(update_fields=['liver', 'updated_at'])
            logger.info(f"Created liver {liver.id} from application {application.id}")

    return application, liver
