from rest_framework import serializers
from .models import Order, OrderItem


class OrderItemSerializer(serializers.ModelSerializer):
    line_total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    image = serializers.SerializerMethodField()

    class Meta:
        model = OrderItem
        fields = ['id', 'product', 'product_name', 'price', 'quantity', 'size', 'color', 'line_total', 'image']

    def get_image(self, obj):
        return obj.product.primary_image if obj.product else ''


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = ['id', 'customer', 'customer_name', 'customer_email', 'customer_phone',
                  'status', 'payment_status', 'subtotal_amount', 'shipping_amount', 'total_amount',
                  'currency', 'shipping_address', 'billing_address', 'stripe_session_id',
                  'stripe_payment_intent_id', 'items', 'created_at', 'updated_at']
        read_only_fields = fields


class AdminOrderUpdateSerializer(serializers.ModelSerializer):
    """Only the order and payment status are editable from the back-office"""
    class Meta:
        model = Order
        fields = ['status', 'payment_status']
