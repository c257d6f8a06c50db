"""
Management command to import a TikTok backend reward CSV as a monthly report
"""
import os
from decimal import Decimal, InvalidOperation

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

from backend.agencies.models import Agency
from backend.core.exceptions import ServiceError
from backend.reports.services import import_csv

User = get_user_model()


class Command(BaseCommand):
    help = "Imports a creator reward CSV file as a monthly report"

    def add_arguments(self, parser):
        parser.add_argument('csv_file', type=str, help='Path to the exported CSV file')
        parser.add_argument('--rate', type=str, required=True, help='Exchange rate (JPY per USD)')
        parser.add_argument(
            '--user',
            type=str,
            required=True,
            help='E-mail of the account the import is recorded under',
        )
        parser.add_argument('--revenue-task', type=str, default=None)
        parser.add_argument('--upload-agency', type=int, default=None, help='Agency id the file belongs to')
        parser.add_argument(
            '--replace',
            action='store_true',
            help='Replace reports already imported for the same data month',
        )

    def handle(self, *args, **options):
        csv_file = options['csv_file']
        if not os.path.exists(csv_file):
            raise CommandError(f"CSV file not found at {csv_file}")

        try:
            rate = Decimal(options['rate'])
        except InvalidOperation:
            raise CommandError(f"Invalid rate: {options['rate']}")

        user = User.objects.filter(email__iexact=options['user']).first()
        if user is None:
            raise CommandError(f"No user with e-mail {options['user']}")

        upload_agency = None
        if options['upload_agency'] is not None:
            upload_agency = Agency.objects.filter(pk=options['upload_agency']).first()
            if upload_agency is None:
                raise CommandError(f"Agency {options['upload_agency']} does not exist")

        with open(csv_file, 'r', encoding='utf-8-sig') as f:
            csv_text = f.read()

        self.stdout.write(f"CSV File: {csv_file}")
        try:
            result = import_csv(
                csv_text=csv_text,
                rate=rate,
                revenue_task=options['revenue_task'],
                user=user,
                upload_agency=upload_agency,
                replace_existing=options['replace'],
            )
        except ServiceError as e:
            raise CommandError(e.message)

        self.stdout.write(self.style.SUCCESS(f"✓ Imported report {result['monthly_report_id']} ({result['data_month']})"))
        self.stdout.write(f"Rows: {result['total_rows']}")
        self.stdout.write(f"Livers linked: {result['linked_liver_count']} / unlinked: {result['unlinked_liver_count']}")
        self.stdout.write(f"Agencies linked: {result['linked_agency_count']} / unlinked: {result['unlinked_agency_count']}")
        if result['replaced_report_ids']:
            self.stdout.write(self.style.WARNING(
                f"Replaced reports {result['replaced_report_ids']}, moved {result['migrated_refund_count']} refunds"
            ))
