from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.utils import timezone


class Product(models.Model):
    class Status(models.TextChoices):
        ACTIVE = 'active'
        PAUSED = 'paused'
        CLOSED = 'closed'
        UNDER_REVIEW = 'under_review'

    item_id = models.CharField(max_length=50)
    user_id = models.CharField(max_length=50)
    title = models.CharField(max_length=500, blank=True, default='')
    seller_sku = models.CharField(max_length=255, null=True, blank=True)
    available_quantity = models.PositiveIntegerField(default=0)
    price = models.FloatField(null=True, blank=True)
    status = models.CharField(max_length=30, blank=True, default='')
    permalink = models.CharField(max_length=500, blank=True, default='')
    category_id = models.CharField(max_length=50, blank=True, default='')
    condition = models.CharField(max_length=30, blank=True, default='')
    listing_type_id = models.CharField(max_length=50, blank=True, default='')
    health = models.FloatField(null=True, blank=True)
    estimated_handling_time = models.PositiveIntegerField(null=True, blank=True)
    last_api_sync = models.DateTimeField(null=True, blank=True)
    last_webhook_sync = models.DateTimeField(null=True, blank=True)
    webhook_source = models.CharField(max_length=30, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['item_id', 'user_id'], name='unique_product_per_user'),
        ]
        indexes = [
            models.Index(fields=['user_id', 'available_quantity'], name='product_user_quantity_idx'),
        ]

    def __str__(self):
        return f"{self.item_id} ({self.available_quantity} in stock)"


class WebhookEvent(models.Model):
    class ProcessingStatus(models.TextChoices):
        PENDING = 'pending'
        PROCESSING = 'processing'
        COMPLETED = 'completed'
        FAILED = 'failed'

    webhook_id = models.CharField(max_length=100, unique=True)
    topic = models.CharField(max_length=50)
    resource = models.CharField(max_length=255)
    user_id = models.CharField(max_length=50)
    application_id = models.CharField(max_length=50, blank=True, default='')
    product_id = models.CharField(max_length=50, null=True, blank=True)
    processed = models.BooleanField(default=False)
    processing_status = models.CharField(
        max_length=20, choices=ProcessingStatus.choices, default=ProcessingStatus.PENDING,
    )
    received_at = models.DateTimeField(default=timezone.now)
    sent_at = models.DateTimeField(null=True, blank=True)
    webhook_received_at = models.DateTimeField(null=True, blank=True)
    attempts = models.PositiveIntegerField(default=1)
    client_ip = models.CharField(max_length=64, blank=True, default='')
    request_headers = models.JSONField(default=dict, blank=True)
    claimed_at = models.DateTimeField(null=True, blank=True)
    processing_result = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    processed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        indexes = [
            models.Index(fields=['processed', 'received_at'], name='webhook_processed_recv_idx'),
        ]

    def __str__(self):
        return f"{self.webhook_id} [{self.topic}] {self.processing_status}"


class ScanControl(models.Model):
    user_id = models.CharField(max_length=50, unique=True)
    total_products = models.PositiveIntegerField(default=0)
    processed_products = models.PositiveIntegerField(default=0)
    continuation = models.TextField(null=True, blank=True)
    scan_completed = models.BooleanField(default=False)
    last_completed_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        state = 'completed' if self.scan_completed else 'in progress'
        return f"scan {self.user_id} ({state}, {self.total_products} products)"


class StockAlert(models.Model):
    class AlertType(models.TextChoices):
        LOW_STOCK = 'LOW_STOCK'
        STOCK_DECREASE = 'STOCK_DECREASE'
        STOCK_INCREASE = 'STOCK_INCREASE'

    user_id = models.CharField(max_length=50)
    item_id = models.CharField(max_length=50)
    alert_type = models.CharField(max_length=20, choices=AlertType.choices)
    previous_stock = models.IntegerField()
    new_stock = models.IntegerField()
    threshold = models.IntegerField(null=True, blank=True)
    title = models.CharField(max_length=500, blank=True, default='')
    seller_sku = models.CharField(max_length=255, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.alert_type} {self.item_id}: {self.previous_stock} -> {self.new_stock}"


class MonitorSetting(models.Model):
    key = models.CharField(max_length=100, unique=True)
    value = models.CharField(max_length=255)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.key}={self.value}"
