# Generated manually

from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('agencies', '0001_initial'),
        ('livers', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='MonthlyReport',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('rate', models.DecimalField(decimal_places=4, help_text='JPY per USD', max_digits=10)),
                ('revenue_task', models.CharField(blank=True, choices=[('task_1', 'タスク1'), ('task_2', 'タスク2'), ('task_3', 'タスク3'), ('task_4', 'タスク4'), ('task_5', 'タスク5'), ('task_6_plus', 'タスク6以上')], max_length=20, null=True)),
                ('data_month', models.CharField(blank=True, db_index=True, help_text='YYYY-MM', max_length=7, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='monthly_reports', to=settings.AUTH_USER_MODEL)),
                ('upload_agency', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='uploaded_reports', to='agencies.agency')),
            ],
            options={
                'db_table': 'monthly_reports',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='CsvDataRow',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('creator_id', models.CharField(blank=True, db_index=True, max_length=100, null=True)),
                ('creator_nickname', models.CharField(blank=True, max_length=255, null=True)),
                ('handle', models.CharField(blank=True, max_length=255, null=True)),
                ('group', models.CharField(blank=True, max_length=255, null=True)),
                ('group_manager', models.CharField(blank=True, max_length=255, null=True)),
                ('creator_network_manager', models.CharField(blank=True, max_length=255, null=True)),
                ('data_month', models.CharField(blank=True, max_length=50, null=True)),
                ('diamonds', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=18)),
                ('estimated_bonus', models.DecimalField(decimal_places=4, default=Decimal('0.0000'), max_digits=14)),
                ('bonus_rookie_half_milestone', models.DecimalField(decimal_places=4, default=Decimal('0.0000'), max_digits=14)),
                ('bonus_activeness', models.DecimalField(decimal_places=4, default=Decimal('0.0000'), max_digits=14)),
                ('bonus_revenue_scale', models.DecimalField(decimal_places=4, default=Decimal('0.0000'), max_digits=14)),
                ('bonus_rookie_milestone_1', models.DecimalField(decimal_places=4, default=Decimal('0.0000'), max_digits=14)),
                ('bonus_rookie_milestone_2', models.DecimalField(decimal_places=4, default=Decimal('0.0000'), max_digits=14)),
                ('bonus_off_platform', models.DecimalField(decimal_places=4, default=Decimal('0.0000'), max_digits=14)),
                ('bonus_rookie_retention', models.DecimalField(decimal_places=4, default=Decimal('0.0000'), max_digits=14)),
                ('valid_days', models.CharField(blank=True, max_length=50, null=True)),
                ('live_duration', models.CharField(blank=True, max_length=50, null=True)),
                ('is_violative', models.BooleanField(default=False)),
                ('was_rookie', models.BooleanField(default=False)),
                ('total_reward_jpy', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=18)),
                ('agency_reward_jpy', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=18)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('agency', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='csv_rows', to='agencies.agency')),
                ('liver', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='csv_rows', to='livers.liver')),
                ('report', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='rows', to='reports.monthlyreport')),
                ('upload_agency', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='uploaded_csv_rows', to='agencies.agency')),
            ],
            options={
                'db_table': 'csv_data',
                'ordering': ['id'],
                'indexes': [models.Index(fields=['report', 'agency'], name='csv_data_report__4f0b6e_idx')],
            },
        ),
        migrations.CreateModel(
            name='Refund',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('target_month', models.DateField()),
                ('reason', models.TextField(blank=True, null=True)),
                ('amount_usd', models.DecimalField(decimal_places=2, max_digits=14)),
                ('amount_jpy', models.DecimalField(decimal_places=2, max_digits=18)),
                ('is_deleted', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('agency', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='refunds', to='agencies.agency')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='refunds', to=settings.AUTH_USER_MODEL)),
                ('liver', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='refunds', to='livers.liver')),
                ('report', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='refunds', to='reports.monthlyreport')),
            ],
            options={
                'db_table': 'refunds',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='ExchangeRateLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('old_rate', models.DecimalField(decimal_places=4, max_digits=10)),
                ('new_rate', models.DecimalField(decimal_places=4, max_digits=10)),
                ('csv_row_count', models.IntegerField(default=0)),
                ('refund_row_count', models.IntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('changed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='rate_changes', to=settings.AUTH_USER_MODEL)),
                ('report', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='rate_logs', to='reports.monthlyreport')),
            ],
            options={
                'db_table': 'exchange_rate_logs',
                'ordering': ['-created_at'],
            },
        ),
    ]
