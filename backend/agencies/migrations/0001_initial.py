# Generated manually

import django.core.validators
import django.db.models.deletion
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('core', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Agency',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('commission_rate', models.DecimalField(decimal_places=4, default=Decimal('0.0000'), max_digits=5, validators=[django.core.validators.MinValueValidator(Decimal('0')), django.core.validators.MaxValueValidator(Decimal('1'))])),
                ('rank', models.CharField(blank=True, choices=[('rank_2', '2次代理店'), ('rank_3', '3次代理店'), ('rank_4', '4次代理店')], max_length=20, null=True)),
                ('company_address', models.TextField(blank=True, default='')),
                ('representative_name', models.CharField(blank=True, default='', max_length=200)),
                ('invoice_registration_number', models.CharField(blank=True, default='', max_length=14, validators=[django.core.validators.RegexValidator(message='Registration number must be T followed by 13 digits', regex='^T[0-9]{13}$')])),
                ('bank_name', models.CharField(blank=True, default='', max_length=200)),
                ('bank_branch', models.CharField(blank=True, default='', max_length=200)),
                ('bank_account_type', models.CharField(blank=True, choices=[('futsu', '普通'), ('toza', '当座')], default='', max_length=10)),
                ('bank_account_number', models.CharField(blank=True, default='', max_length=50)),
                ('bank_account_holder', models.CharField(blank=True, default='', max_length=200)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='owned_agencies', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'agencies',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='AgencyHierarchy',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('agency', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='parent_links', to='agencies.agency')),
                ('parent_agency', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='child_links', to='agencies.agency')),
            ],
            options={
                'db_table': 'agency_hierarchy',
                'unique_together': {('agency', 'parent_agency')},
            },
        ),
        migrations.AddField(
            model_name='agency',
            name='parent_agencies',
            field=models.ManyToManyField(blank=True, related_name='child_agencies', through='agencies.AgencyHierarchy', through_fields=('agency', 'parent_agency'), to='agencies.agency'),
        ),
    ]
