# Generated manually

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('agencies', '0001_initial'),
        ('reports', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Invoice',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('invoice_number', models.CharField(help_text='INV-YYYYMM-NNNN', max_length=30, unique=True)),
                ('subtotal_jpy', models.DecimalField(decimal_places=2, max_digits=18)),
                ('tax_rate', models.DecimalField(decimal_places=4, max_digits=5)),
                ('tax_amount_jpy', models.DecimalField(decimal_places=2, max_digits=18)),
                ('total_jpy', models.DecimalField(decimal_places=2, max_digits=18)),
                ('is_invoice_registered', models.BooleanField(default=False)),
                ('invoice_registration_number', models.CharField(blank=True, default='', max_length=14)),
                ('deductible_rate', models.DecimalField(decimal_places=2, max_digits=3)),
                ('agency_name', models.CharField(max_length=200)),
                ('agency_address', models.TextField(blank=True, default='')),
                ('agency_representative', models.CharField(blank=True, default='', max_length=200)),
                ('bank_name', models.CharField(blank=True, default='', max_length=200)),
                ('bank_branch', models.CharField(blank=True, default='', max_length=200)),
                ('bank_account_type', models.CharField(blank=True, choices=[('futsu', '普通'), ('toza', '当座')], default='', max_length=10)),
                ('bank_account_number', models.CharField(blank=True, default='', max_length=50)),
                ('bank_account_holder', models.CharField(blank=True, default='', max_length=200)),
                ('data_month', models.CharField(blank=True, max_length=7, null=True)),
                ('exchange_rate', models.DecimalField(decimal_places=4, max_digits=10)),
                ('commission_rate', models.DecimalField(decimal_places=4, max_digits=5)),
                ('sent_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('agency', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='invoices', to='agencies.agency')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='invoices', to=settings.AUTH_USER_MODEL)),
                ('monthly_report', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='invoices', to='reports.monthlyreport')),
            ],
            options={
                'db_table': 'invoices',
                'ordering': ['-created_at'],
                'unique_together': {('agency', 'monthly_report')},
            },
        ),
    ]
