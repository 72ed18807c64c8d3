from rest_framework import serializers
from .models import Category, Product, ProductImage
from .utils import normalize_option_list


class CategorySerializer(serializers.ModelSerializer):
    product_count = serializers.IntegerField(read_only=True, required=False)

    class Meta:
        model = Category
        fields = ['id', 'name', 'slug', 'description', 'is_active', 'product_count', 'created_at', 'updated_at']
        read_only_fields = ['slug', 'created_at', 'updated_at']


class CategorySummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = ['id', 'name', 'slug']


class ProductImageSerializer(serializers.ModelSerializer):
    url = serializers.CharField(source='public_url', read_only=True)

    class Meta:
        model = ProductImage
        fields = ['id', 'url', 'position', 'created_at']


class ProductSummarySerializer(serializers.ModelSerializer):
    """Compact product shape used for related products, wishlist and cart lines"""
    images = serializers.ListField(source='image_urls', child=serializers.CharField(), read_only=True)
    category = serializers.CharField(source='category.name', read_only=True, default=None)

    class Meta:
        model = Product
        fields = ['id', 'name', 'slug', 'price', 'images', 'sizes', 'colors', 'stock_quantity', 'category', 'tags']


class ProductSerializer(serializers.ModelSerializer):
    images = serializers.ListField(source='image_urls', child=serializers.CharField(), read_only=True)
    category = CategorySummarySerializer(read_only=True)
    in_stock = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = ['id', 'name', 'slug', 'description', 'price', 'images', 'sizes', 'colors', 'tags',
                  'stock_quantity', 'in_stock', 'category', 'created_at', 'updated_at']

    def get_in_stock(self, obj):
        return obj.stock_quantity > 0


class AdminProductSerializer(serializers.ModelSerializer):
    """Back-office product shape: writable fields plus image records"""
    name = serializers.CharField(max_length=200, required=False, allow_blank=True)
    price = serializers.DecimalField(max_digits=10, decimal_places=2, required=False)
    sizes = serializers.ListField(child=serializers.CharField(allow_blank=True), required=False)
    colors = serializers.ListField(child=serializers.CharField(allow_blank=True), required=False)
    tags = serializers.ListField(child=serializers.CharField(allow_blank=True), required=False)
    category = CategorySummarySerializer(read_only=True)
    category_id = serializers.PrimaryKeyRelatedField(
        queryset=Category.objects.all(),
        source='category',
        write_only=True,
        required=False,
        allow_null=True
    )
    images = ProductImageSerializer(many=True, read_only=True)

    class Meta:
        model = Product
        fields = ['id', 'name', 'slug', 'description', 'price', 'sizes', 'colors', 'tags', 'stock_quantity',
                  'category', 'category_id', 'is_active', 'images', 'created_at', 'updated_at']
        read_only_fields = ['slug', 'created_at', 'updated_at']

    def validate(self, attrs):
        name = attrs.get('name', self.instance.name if self.instance else '')
        if not (name or '').strip():
            raise serializers.ValidationError({'name': 'Product name is required'})
        if 'name' in attrs:
            attrs['name'] = attrs['name'].strip()

        price = attrs.get('price', self.instance.price if self.instance else None)
        if price is None or price <= 0:
            raise serializers.ValidationError({'price': 'Price must be greater than 0'})

        for field in ('sizes', 'colors', 'tags'):
            if field in attrs:
                attrs[field] = normalize_option_list(attrs[field])
        return attrs
