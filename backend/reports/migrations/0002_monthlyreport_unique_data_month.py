# Generated manually

from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('reports', '0001_initial'),
    ]

    operations = [
        migrations.AlterField(
            model_name='monthlyreport',
            name='data_month',
            field=models.CharField(blank=True, help_text='YYYY-MM', max_length=7, null=True, unique=True),
        ),
    ]
