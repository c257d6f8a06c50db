# Generated manually

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('agencies', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Liver',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(blank=True, max_length=200, null=True)),
                ('account_name', models.CharField(blank=True, max_length=200, null=True)),
                ('liver_id', models.CharField(blank=True, db_index=True, help_text='TikTok creator ID', max_length=100, null=True)),
                ('email', models.EmailField(blank=True, max_length=254, null=True)),
                ('tiktok_username', models.CharField(blank=True, max_length=200, null=True)),
                ('link', models.URLField(blank=True, max_length=500, null=True)),
                ('address', models.TextField(blank=True, null=True)),
                ('contact', models.CharField(blank=True, max_length=200, null=True)),
                ('birth_date', models.DateField(blank=True, null=True)),
                ('acquisition_date', models.DateField(blank=True, null=True)),
                ('streaming_start_date', models.DateField(blank=True, null=True)),
                ('status', models.CharField(choices=[('completed', '完了'), ('released', '解除'), ('authorized', '権限付与'), ('pending', '未承諾'), ('rejected', '否認')], default='pending', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('agency', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='livers', to='agencies.agency')),
            ],
            options={
                'db_table': 'livers',
                'ordering': ['-created_at'],
            },
        ),
    ]
