from django.contrib import admin
from .models import WishlistItem


@admin.register(WishlistItem)
class WishlistItemAdmin(admin.ModelAdmin):
    list_display = ['customer', 'product', 'added_at']
    search_fields = ['customer__email', 'product__name']
    ordering = ['-added_at']
