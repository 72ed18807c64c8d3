from django.contrib import admin
from .models import Order, OrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ['product', 'product_name', 'price', 'quantity', 'size', 'color']


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['id', 'customer_email', 'status', 'payment_status', 'total_amount', 'created_at']
    list_filter = ['status', 'payment_status', 'created_at']
    search_fields = ['id', 'customer_email', 'customer_name', 'stripe_session_id']
    ordering = ['-created_at']
    readonly_fields = ['stripe_session_id', 'stripe_payment_intent_id', 'created_at', 'updated_at']
    inlines = [OrderItemInline]
