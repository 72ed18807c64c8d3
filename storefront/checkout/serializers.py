from rest_framework import serializers


class CheckoutItemSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1, default=1)
    size = serializers.CharField(required=False, allow_blank=True, allow_null=True, default='')
    color = serializers.CharField(required=False, allow_blank=True, allow_null=True, default='')


class CustomerDetailsSerializer(serializers.Serializer):
    name = serializers.CharField(required=False, allow_blank=True, default='')
    email = serializers.EmailField(required=False, allow_blank=True, default='')
    phone = serializers.CharField(required=False, allow_blank=True, default='')


class CheckoutSerializer(serializers.Serializer):
    items = CheckoutItemSerializer(many=True, required=False)
    customer_details = CustomerDetailsSerializer(required=False)
