"""
Management command to backfill profiles and own-agency visibility
"""
from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction

from backend.agencies.models import Agency
from backend.core.constants import ROLE_AGENCY_USER, ROLE_SYSTEM_ADMIN
from backend.core.models import Profile

User = get_user_model()


class Command(BaseCommand):
    help = "Create missing profiles and make sure every agency user can view their own agency"

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report what would change without writing',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        created = 0
        granted = 0

        with transaction.atomic():
            for user in User.objects.filter(profile__isnull=True):
                role = ROLE_SYSTEM_ADMIN if user.is_superuser else ROLE_AGENCY_USER
                agency = Agency.objects.filter(user=user).first() if role == ROLE_AGENCY_USER else None
                self.stdout.write(f"  Missing profile: {user.email} -> {role}")
                if not dry_run:
                    Profile.objects.create(user=user, role=role, agency=agency)
                created += 1

            profiles = Profile.objects.filter(role=ROLE_AGENCY_USER, agency__isnull=False)
            for profile in profiles.select_related('user', 'agency'):
                if profile.viewable_agencies.filter(pk=profile.agency_id).exists():
                    continue
                self.stdout.write(f"  Granting {profile.user.email} access to {profile.agency.name}")
                if not dry_run:
                    profile.viewable_agencies.add(profile.agency)
                granted += 1

            if dry_run:
                transaction.set_rollback(True)

        prefix = "[dry run] " if dry_run else ""
        self.stdout.write(self.style.SUCCESS(
            f"{prefix}Profiles created: {created}, own-agency grants: {granted}"
        ))
