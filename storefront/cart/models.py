import uuid
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models

from storefront.catalog.models import Product


class Cart(models.Model):
    """Shopping carts. Anonymous carts are addressed by token, customer carts by user."""
    token = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, null=True, blank=True, related_name='cart'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Cart {self.token}"

    @property
    def total_items(self):
        return sum(item.quantity for item in self.items.all())

    @property
    def total_price(self):
        return sum((item.line_total for item in self.items.all()), Decimal('0.00'))

    class Meta:
        db_table = 'carts'


class CartItem(models.Model):
    """Cart lines, one per (product, size, color)"""
    cart = models.ForeignKey(Cart, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='cart_items')
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    size = models.CharField(max_length=50, blank=True)
    color = models.CharField(max_length=50, blank=True)
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.product.name} x {self.quantity}"

    @property
    def current_unit_price(self):
        return self.product.price

    @property
    def line_total(self):
        return self.current_unit_price * self.quantity

    class Meta:
        db_table = 'cart_items'
        ordering = ['created_at', 'id']
        constraints = [
            models.UniqueConstraint(fields=['cart', 'product', 'size', 'color'], name='uniq_cart_line'),
        ]
