import django.core.serializers.json
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='MonitorSetting',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('key', models.CharField(max_length=100, unique=True)),
                ('value', models.CharField(max_length=255)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.CreateModel(
            name='Product',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('item_id', models.CharField(max_length=50)),
                ('user_id', models.CharField(max_length=50)),
                ('title', models.CharField(blank=True, default='', max_length=500)),
                ('seller_sku', models.CharField(blank=True, max_length=255, null=True)),
                ('available_quantity', models.PositiveIntegerField(default=0)),
                ('price', models.FloatField(blank=True, null=True)),
                ('status', models.CharField(blank=True, default='', max_length=30)),
                ('permalink', models.CharField(blank=True, default='', max_length=500)),
                ('category_id', models.CharField(blank=True, default='', max_length=50)),
                ('condition', models.CharField(blank=True, default='', max_length=30)),
                ('listing_type_id', models.CharField(blank=True, default='', max_length=50)),
                ('health', models.FloatField(blank=True, null=True)),
                ('estimated_handling_time', models.PositiveIntegerField(blank=True, null=True)),
                ('last_api_sync', models.DateTimeField(blank=True, null=True)),
                ('last_webhook_sync', models.DateTimeField(blank=True, null=True)),
                ('webhook_source', models.CharField(blank=True, default='', max_length=30)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'indexes': [models.Index(fields=['user_id', 'available_quantity'], name='product_user_quantity_idx')],
                'constraints': [models.UniqueConstraint(fields=('item_id', 'user_id'), name='unique_product_per_user')],
            },
        ),
        migrations.CreateModel(
            name='ScanControl',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('user_id', models.CharField(max_length=50, unique=True)),
                ('total_products', models.PositiveIntegerField(default=0)),
                ('processed_products', models.PositiveIntegerField(default=0)),
                ('continuation', models.TextField(blank=True, null=True)),
                ('scan_completed', models.BooleanField(default=False)),
                ('last_completed_at', models.DateTimeField(blank=True, null=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.CreateModel(
            name='StockAlert',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('user_id', models.CharField(max_length=50)),
                ('item_id', models.CharField(max_length=50)),
                ('alert_type', models.CharField(choices=[('LOW_STOCK', 'Low Stock'), ('STOCK_DECREASE', 'Stock Decrease'), ('STOCK_INCREASE', 'Stock Increase')], max_length=20)),
                ('previous_stock', models.IntegerField()),
                ('new_stock', models.IntegerField()),
                ('threshold', models.IntegerField(blank=True, null=True)),
                ('title', models.CharField(blank=True, default='', max_length=500)),
                ('seller_sku', models.CharField(blank=True, max_length=255, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='WebhookEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('webhook_id', models.CharField(max_length=100, unique=True)),
                ('topic', models.CharField(max_length=50)),
                ('resource', models.CharField(max_length=255)),
                ('user_id', models.CharField(max_length=50)),
                ('application_id', models.CharField(blank=True, default='', max_length=50)),
                ('product_id', models.CharField(blank=True, max_length=50, null=True)),
                ('processed', models.BooleanField(default=False)),
                ('processing_status', models.CharField(choices=[('pending', 'Pending'), ('completed', 'Completed'), ('failed', 'Failed')], default='pending', max_length=20)),
                ('received_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('sent_at', models.DateTimeField(blank=True, null=True)),
                ('webhook_received_at', models.DateTimeField(blank=True, null=True)),
                ('attempts', models.PositiveIntegerField(default=1)),
                ('client_ip', models.CharField(blank=True, default='', max_length=64)),
                ('request_headers', models.JSONField(blank=True, default=dict)),
                ('processing_result', models.JSONField(blank=True, encoder=django.core.serializers.json.DjangoJSONEncoder, null=True)),
                ('processed_at', models.DateTimeField(blank=True, null=True)),
            ],
            options={
                'indexes': [models.Index(fields=['processed', 'received_at'], name='webhook_processed_recv_idx')],
            },
        ),
    ]
