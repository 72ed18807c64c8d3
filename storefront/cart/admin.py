from django.contrib import admin
from .models import Cart, CartItem


class CartItemInline(admin.TabularInline):
    model = CartItem
    extra = 0
    readonly_fields = ['unit_price', 'created_at']


@admin.register(Cart)
class CartAdmin(admin.ModelAdmin):
    list_display = ['token', 'user', 'created_at', 'updated_at']
    search_fields = ['token', 'user__email']
    ordering = ['-updated_at']
    readonly_fields = ['token', 'created_at', 'updated_at']
    inlines = [CartItemInline]
