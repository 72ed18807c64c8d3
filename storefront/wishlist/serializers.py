from rest_framework import serializers

from storefront.catalog.serializers import ProductSummarySerializer
from .models import WishlistItem


class WishlistItemSerializer(serializers.ModelSerializer):
    product = ProductSummarySerializer(read_only=True)

    class Meta:
        model = WishlistItem
        fields = ['id', 'product', 'added_at']


class WishlistAddSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
