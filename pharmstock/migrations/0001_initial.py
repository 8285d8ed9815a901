"""
Initial migration for Pharmstock models.
"""

from decimal import Decimal
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    """Create Pharmstock models: Product, StockBatch, StockMovement, Sale, SaleLine, CashEntry, AuditEntry."""

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Product',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('sku', models.SlugField(max_length=64, unique=True, verbose_name='SKU')),
                ('name', models.CharField(max_length=200, verbose_name='Name')),
                ('units_per_pack', models.PositiveIntegerField(default=1, help_text='Base units contained in one pack. Sales in packs are multiplied by this.', verbose_name='Units per pack')),
                ('stock', models.IntegerField(default=0, verbose_name='Stock (units)')),
                ('earliest_expiry', models.DateField(blank=True, null=True, verbose_name='Earliest expiry')),
                ('cost_price', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12, verbose_name='Cost price')),
                ('is_active', models.BooleanField(default=True, verbose_name='Active')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Product',
                'verbose_name_plural': 'Products',
                'ordering': ['name'],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(units_per_pack__gte=1), name='pharmstock_units_per_pack_gte_1'),
                ],
            },
        ),
        migrations.CreateModel(
            name='StockBatch',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quantity', models.PositiveIntegerField(default=0, verbose_name='Quantity (units)')),
                ('expiry_date', models.DateField(blank=True, db_index=True, null=True, verbose_name='Expiry date')),
                ('cost_price', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12, verbose_name='Unit cost')),
                ('source_reference', models.CharField(blank=True, default='', help_text='What created this batch. Ex: "purchase:42", "MIGRATION", "adjustment"', max_length=100, verbose_name='Source')),
                ('date_received', models.DateTimeField(default=django.utils.timezone.now, verbose_name='Received at')),
                ('batch_number', models.CharField(blank=True, default='', max_length=100, verbose_name='Lot number')),
                ('is_depleted', models.BooleanField(db_index=True, default=False, verbose_name='Depleted')),
                ('depleted_at', models.DateTimeField(blank=True, null=True, verbose_name='Depleted at')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='batches', to='pharmstock.product', verbose_name='Product')),
            ],
            options={
                'verbose_name': 'Stock batch',
                'verbose_name_plural': 'Stock batches',
                'ordering': ['expiry_date', 'pk'],
                'indexes': [
                    models.Index(fields=['product', 'is_depleted', 'expiry_date'], name='pharmstock_batch_fefo_idx'),
                    models.Index(fields=['is_depleted', 'depleted_at'], name='pharmstock_batch_gc_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='StockMovement',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('product_name', models.CharField(max_length=200, verbose_name='Product name')),
                ('movement_type', models.CharField(choices=[('initial', 'Initial stock'), ('sale', 'Sale'), ('purchase', 'Purchase'), ('return_customer', 'Customer return'), ('return_supplier', 'Return to supplier'), ('adjustment', 'Adjustment'), ('damage', 'Damaged / expired'), ('transfer_in', 'Transfer in'), ('transfer_out', 'Transfer out'), ('correction', 'Correction')], db_index=True, max_length=20, verbose_name='Type')),
                ('quantity', models.IntegerField(help_text='Signed delta in base units. Positive = in, negative = out', verbose_name='Quantity')),
                ('previous_stock', models.IntegerField(default=0, verbose_name='Stock before')),
                ('new_stock', models.IntegerField(default=0, verbose_name='Stock after')),
                ('reason', models.CharField(blank=True, default='', max_length=255, verbose_name='Reason')),
                ('notes', models.TextField(blank=True, default='', verbose_name='Notes')),
                ('reference', models.CharField(blank=True, default='', help_text='Sale, purchase or return this movement belongs to. Ex: "sale:100001"', max_length=100, verbose_name='Reference')),
                ('transaction_id', models.CharField(blank=True, db_index=True, default='', help_text='Groups movements created together', max_length=64, verbose_name='Transaction')),
                ('expiry_date', models.DateField(blank=True, null=True, verbose_name='Expiry snapshot')),
                ('performed_by_name', models.CharField(blank=True, default='', max_length=150)),
                ('timestamp', models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name='Date/time')),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('approved', 'Approved'), ('rejected', 'Rejected')], db_index=True, default='pending', max_length=20, verbose_name='Status')),
                ('reviewed_at', models.DateTimeField(blank=True, null=True, verbose_name='Reviewed at')),
                ('batch', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='movements', to='pharmstock.stockbatch', verbose_name='Batch')),
                ('performed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Performed by')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='movements', to='pharmstock.product', verbose_name='Product')),
                ('reviewed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Reviewed by')),
            ],
            options={
                'verbose_name': 'Stock movement',
                'verbose_name_plural': 'Stock movements',
                'ordering': ['-timestamp', '-pk'],
                'indexes': [
                    models.Index(fields=['product', 'timestamp'], name='pharmstock_move_product_idx'),
                    models.Index(fields=['status', 'timestamp'], name='pharmstock_move_status_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Sale',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('number', models.PositiveIntegerField(unique=True, verbose_name='Number')),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name='Date/time')),
                ('status', models.CharField(choices=[('completed', 'Completed'), ('pending', 'Pending'), ('cancelled', 'Cancelled')], db_index=True, default='completed', max_length=20, verbose_name='Status')),
                ('sale_type', models.CharField(choices=[('walk_in', 'Walk-in'), ('delivery', 'Delivery')], default='walk_in', max_length=20, verbose_name='Type')),
                ('payment_method', models.CharField(choices=[('cash', 'Cash'), ('card', 'Card')], default='cash', max_length=20, verbose_name='Payment method')),
                ('total', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12, verbose_name='Total')),
                ('customer_name', models.CharField(blank=True, default='', max_length=200, verbose_name='Customer')),
                ('cancelled_at', models.DateTimeField(blank=True, null=True, verbose_name='Cancelled at')),
                ('sold_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Sold by')),
            ],
            options={
                'verbose_name': 'Sale',
                'verbose_name_plural': 'Sales',
                'ordering': ['-number'],
            },
        ),
        migrations.CreateModel(
            name='SaleLine',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('position', models.PositiveIntegerField(default=0, verbose_name='Line')),
                ('quantity', models.PositiveIntegerField(verbose_name='Quantity')),
                ('is_base_unit', models.BooleanField(default=False, verbose_name='Sold in units')),
                ('units', models.PositiveIntegerField(verbose_name='Base units')),
                ('unit_price', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12, verbose_name='Unit price')),
                ('allocations', models.JSONField(blank=True, default=list, verbose_name='Batch allocations')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='+', to='pharmstock.product', verbose_name='Product')),
                ('sale', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='lines', to='pharmstock.sale', verbose_name='Sale')),
            ],
            options={
                'verbose_name': 'Sale line',
                'verbose_name_plural': 'Sale lines',
                'ordering': ['sale', 'position'],
            },
        ),
        migrations.CreateModel(
            name='CashEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('kind', models.CharField(choices=[('sale', 'Cash sale'), ('card_sale', 'Card sale'), ('refund', 'Refund')], max_length=20, verbose_name='Kind')),
                ('amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12, verbose_name='Amount')),
                ('reason', models.CharField(blank=True, default='', max_length=255, verbose_name='Reason')),
                ('timestamp', models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name='Date/time')),
                ('sale', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='cash_entries', to='pharmstock.sale', verbose_name='Sale')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='User')),
            ],
            options={
                'verbose_name': 'Cash entry',
                'verbose_name_plural': 'Cash entries',
                'ordering': ['-timestamp'],
            },
        ),
        migrations.CreateModel(
            name='AuditEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('action', models.CharField(db_index=True, max_length=50, verbose_name='Action')),
                ('summary', models.CharField(max_length=255, verbose_name='Summary')),
                ('details', models.JSONField(blank=True, default=dict, verbose_name='Details')),
                ('timestamp', models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name='Date/time')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='User')),
            ],
            options={
                'verbose_name': 'Audit entry',
                'verbose_name_plural': 'Audit entries',
                'ordering': ['-timestamp'],
            },
        ),
    ]
