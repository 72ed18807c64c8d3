from django.conf import settings
from django.db import models

from storefront.catalog.models import Product


class WishlistItem(models.Model):
    """Products a customer saved for later"""
    customer = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='wishlist_items')
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='wishlist_items')
    added_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.customer} - {self.product}"

    class Meta:
        db_table = 'wishlist_items'
        ordering = ['-added_at', '-id']
        constraints = [
            models.UniqueConstraint(fields=['customer', 'product'], name='uniq_wishlist_customer_product'),
        ]
