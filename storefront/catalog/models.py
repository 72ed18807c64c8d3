from django.core.validators import MinValueValidator
from django.db import models
from decimal import Decimal

from .utils import product_image_upload_to


class Category(models.Model):
    """Product categories (collections)"""
    name = models.CharField(max_length=200, db_index=True)
    slug = models.SlugField(max_length=220, unique=True)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'categories'
        verbose_name_plural = 'categories'
        ordering = ['name']


class Product(models.Model):
    """Storefront product. sizes/colors/tags are plain string lists."""
    name = models.CharField(max_length=200, db_index=True)
    slug = models.SlugField(max_length=220, unique=True)
    description = models.TextField(blank=True)
    price = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(Decimal('0.01'))])
    sizes = models.JSONField(default=list, blank=True)   # e.g. ["S", "M", "L"]
    colors = models.JSONField(default=list, blank=True)  # e.g. ["Black", "Ivory"]
    tags = models.JSONField(default=list, blank=True)
    stock_quantity = models.PositiveIntegerField(default=0)
    category = models.ForeignKey(Category, on_delete=models.SET_NULL, null=True, blank=True, related_name='products')
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    @property
    def image_urls(self):
        return [image.public_url for image in self.images.all() if image.public_url]

    @property
    def primary_image(self):
        urls = self.image_urls
        return urls[0] if urls else ''

    def has_option(self, options, value):
        """A product without declared options accepts any value (including none)"""
        if not options:
            return True
        return value in options

    class Meta:
        db_table = 'products'
        ordering = ['-created_at']


class ProductImage(models.Model):
    """Product images: an uploaded file or an externally hosted URL"""
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='images')
    image = models.FileField(upload_to=product_image_upload_to, blank=True)
    url = models.URLField(max_length=500, blank=True)
    position = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.product.name} #{self.position}"

    @property
    def public_url(self):
        if self.url:
            return self.url
        if self.image:
            return self.image.url
        return ''

    class Meta:
        db_table = 'product_images'
        ordering = ['position', 'id']
