"""
Partial customer returns and the locked sale number counter.
"""

from decimal import Decimal

from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('pharmstock', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='sale',
            name='returned_total',
            field=models.DecimalField(decimal_places=2, default=Decimal('0.00'), help_text='Value of items the customer brought back', max_digits=12, verbose_name='Returned'),
        ),
        migrations.AddField(
            model_name='saleline',
            name='returned_quantity',
            field=models.PositiveIntegerField(default=0, help_text='Same unit as quantity (packs or base units)', verbose_name='Returned'),
        ),
        migrations.CreateModel(
            name='SaleSequence',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('last_number', models.PositiveIntegerField(default=0, verbose_name='Last number')),
            ],
            options={
                'verbose_name': 'Sale sequence',
                'verbose_name_plural': 'Sale sequence',
            },
        ),
    ]
