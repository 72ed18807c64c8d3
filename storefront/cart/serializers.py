from rest_framework import serializers

from storefront.catalog.serializers import ProductSummarySerializer
from .models import Cart, CartItem


class CartItemSerializer(serializers.ModelSerializer):
    product = ProductSummarySerializer(read_only=True)
    unit_price = serializers.DecimalField(source='current_unit_price', max_digits=10, decimal_places=2, read_only=True)
    line_total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = CartItem
        fields = ['id', 'product', 'quantity', 'size', 'color', 'unit_price', 'line_total']


class CartSerializer(serializers.ModelSerializer):
    items = CartItemSerializer(many=True, read_only=True)
    total_items = serializers.IntegerField(read_only=True)
    total_price = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = Cart
        fields = ['token', 'items', 'total_items', 'total_price']


class AddCartItemSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    quantity = serializers.IntegerField(default=1)
    size = serializers.CharField(required=False, allow_blank=True, allow_null=True, default='')
    color = serializers.CharField(required=False, allow_blank=True, allow_null=True, default='')

    def validate_size(self, value):
        return (value or '').strip()

    def validate_color(self, value):
        return (value or '').strip()


class UpdateCartItemSerializer(serializers.Serializer):
    quantity = serializers.IntegerField()
