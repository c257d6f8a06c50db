"""
Management command to create (or promote) a system administrator
"""
from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from backend.core.auth import get_profile
from backend.core.constants import ROLE_SYSTEM_ADMIN

User = get_user_model()


class Command(BaseCommand):
    help = "Create a system administrator account, or promote an existing user"

    def add_arguments(self, parser):
        parser.add_argument('email', type=str)
        parser.add_argument(
            '--password',
            type=str,
            help='Password for a new account (required unless the user exists)',
        )
        parser.add_argument(
            '--username',
            type=str,
            help='Username for a new account (defaults to the e-mail address)',
        )

    def handle(self, *args, **options):
        email = options['email'].strip().lower()
        user = User.objects.filter(email__iexact=email).first()

        with transaction.atomic():
            if user is None:
                if not options['password']:
                    raise CommandError('--password is required to create a new user')
                user = User.objects.create_user(
                    username=options['username'] or email,
                    email=email,
                    password=options['password'],
                    is_staff=True,
                )
                self.stdout.write(self.style.SUCCESS(f'✓ Created user: {email}'))
            else:
                self.stdout.write(f'  User already exists: {email}')

            profile = get_profile(user)
            if profile.role != ROLE_SYSTEM_ADMIN:
                profile.role = ROLE_SYSTEM_ADMIN
                profile.save(update_fields=['role'])

        self.stdout.write(self.style.SUCCESS(f'{email} is a system administrator'))
