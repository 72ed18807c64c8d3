import logging

from django.db import transaction
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from storefront.catalog.models import Product
from .models import Cart, CartItem
from .serializers import CartSerializer, AddCartItemSerializer, UpdateCartItemSerializer
from .services import get_or_create_cart, find_cart

logger = logging.getLogger(__name__)


def cart_response(cart, status_code=status.HTTP_200_OK):
    cart = Cart.objects.prefetch_related(
        'items__product__images', 'items__product__category'
    ).get(pk=cart.pk)
    return Response(CartSerializer(cart).data, status=status_code)


def stock_error(product):
    return Response(
        {'error': f'Only {product.stock_quantity} left in stock'},
        status=status.HTTP_400_BAD_REQUEST
    )


@api_view(['GET', 'DELETE'])
@permission_classes([AllowAny])
def cart_detail(request):
    """Get the current cart (creating it if needed) or clear it"""
    cart = get_or_create_cart(request)
    if request.method == 'DELETE':
        cart.items.all().delete()
        logger.info(f"Cleared cart {cart.token}")
    return cart_response(cart)


@api_view(['POST'])
@permission_classes([AllowAny])
def cart_item_add(request):
    """Add a product line, or increase the quantity of the matching (product, size, color) line"""
    serializer = AddCartItemSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    if data['quantity'] < 1:
        return Response({'error': 'Quantity must be at least 1'}, status=status.HTTP_400_BAD_REQUEST)

    product = Product.objects.filter(pk=data['product_id'], is_active=True).first()
    if product is None:
        return Response({'error': 'Product not found'}, status=status.HTTP_404_NOT_FOUND)

    size, color = data['size'], data['color']
    if not product.has_option(product.sizes, size):
        return Response({'error': f"Size '{size}' is not available for this product"}, status=status.HTTP_400_BAD_REQUEST)
    if not product.has_option(product.colors, color):
        return Response({'error': f"Color '{color}' is not available for this product"}, status=status.HTTP_400_BAD_REQUEST)

    cart = get_or_create_cart(request)
    with transaction.atomic():
        item = CartItem.objects.select_for_update().filter(
            cart=cart, product=product, size=size, color=color
        ).first()
        quantity = data['quantity'] + (item.quantity if item else 0)
        if quantity > product.stock_quantity:
            return stock_error(product)

        if item:
            item.quantity = quantity
            item.unit_price = product.price
            item.save(update_fields=['quantity', 'unit_price', 'updated_at'])
        else:
            CartItem.objects.create(
                cart=cart, product=product, quantity=quantity,
                size=size, color=color, unit_price=product.price
            )

    return cart_response(cart, status.HTTP_201_CREATED)


@api_view(['PATCH', 'DELETE'])
@permission_classes([AllowAny])
def cart_item_detail(request, pk):
    """Change a line's quantity (0 or less removes it) or remove the line"""
    cart = find_cart(request)
    if cart is None:
        return Response({'error': 'Cart item not found'}, status=status.HTTP_404_NOT_FOUND)
    item = get_object_or_404(CartItem.objects.select_related('product'), pk=pk, cart=cart)

    if request.method == 'DELETE':
        item.delete()
        return cart_response(cart)

    serializer = UpdateCartItemSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    quantity = serializer.validated_data['quantity']
    if quantity <= 0:
        item.delete()
        return cart_response(cart)

    if not item.product.is_active:
        return Response(
            {'error': f"{item.product.name} is no longer available"},
            status=status.HTTP_400_BAD_REQUEST
        )
    if quantity > item.product.stock_quantity:
        return stock_error(item.product)

    item.quantity = quantity
    item.unit_price = item.product.price
    item.save(update_fields=['quantity', 'unit_price', 'updated_at'])
    return cart_response(cart)
