from django.urls import path

from listings import views

urlpatterns = [
    path('webhooks/marketplace/', views.marketplace_webhook, name='marketplace-webhook'),
    path('webhooks/marketplace/status/', views.marketplace_webhook_status, name='marketplace-webhook-status'),
    path('alerts/', views.stock_alerts, name='stock-alerts'),
    path('products/low-stock/', views.low_stock_products, name='low-stock-products'),
]
