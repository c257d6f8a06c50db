# Generated manually

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
            name='Application',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('form_tab', models.CharField(choices=[('affiliation_check', '紐付け申請（事務所所属チェック）'), ('million_special', '100万人以上特別申請'), ('streaming_auth', '配信権限付与'), ('subscription_cancel', 'サブスク解除申請'), ('account_id_change', 'アカウントID変更'), ('event_build', 'イベント構築申請'), ('special_referral', '特別送客申請'), ('objection', '事務所用 異議申し立て')], max_length=30)),
                ('status', models.CharField(choices=[('completed', '完了'), ('released', '解除'), ('authorized', '権限付与'), ('pending', '未承諾'), ('rejected', '否認')], default='pending', max_length=20)),
                ('name', models.CharField(blank=True, max_length=200, null=True)),
                ('address', models.TextField(blank=True, null=True)),
                ('birth_date', models.DateField(blank=True, null=True)),
                ('contact', models.CharField(blank=True, max_length=200, null=True)),
                ('email', models.EmailField(blank=True, max_length=254, null=True)),
                ('additional_info', models.TextField(blank=True, null=True)),
                ('tiktok_username', models.CharField(blank=True, max_length=200, null=True)),
                ('tiktok_account_link', models.URLField(blank=True, max_length=500, null=True)),
                ('id_verified', models.BooleanField(default=False)),
                ('form_data', models.JSONField(blank=True, default=dict, help_text='Form-specific extra fields')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('agency', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='applications', to='agencies.agency')),
                ('liver', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='applications', to='livers.liver')),
                ('submitted_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='applications', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'applications',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status'], name='applications_status_0c5e1b_idx'),
                    models.Index(fields=['form_tab'], name='applications_form_ta_7d2a94_idx'),
                ],
            },
        ),
    ]
