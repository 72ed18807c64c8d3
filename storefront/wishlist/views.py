import logging

from django.db import IntegrityError, transaction
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from storefront.catalog.models import Product
from .models import WishlistItem
from .serializers import WishlistItemSerializer, WishlistAddSerializer

logger = logging.getLogger(__name__)

DUPLICATE_MESSAGE = 'Item already exists in wishlist.'


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def wishlist_list_create(request):
    """List the customer's wishlist or add a product to it"""
    if request.method == 'GET':
        items = WishlistItem.objects.filter(customer=request.user).select_related(
            'product__category'
        ).prefetch_related('product__images').order_by('-added_at', '-id')
        return Response(WishlistItemSerializer(items, many=True).data)

    serializer = WishlistAddSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    product = get_object_or_404(Product, pk=serializer.validated_data['product_id'])
    if WishlistItem.objects.filter(customer=request.user, product=product).exists():
        return Response({'success': True, 'error': DUPLICATE_MESSAGE})

    try:
        with transaction.atomic():
            item = WishlistItem.objects.create(customer=request.user, product=product)
    except IntegrityError:
        return Response({'success': True, 'error': DUPLICATE_MESSAGE})

    logger.info(f"{request.user.email} added product {product.id} to wishlist")
    return Response(
        {'success': True, 'item': WishlistItemSerializer(item).data},
        status=status.HTTP_201_CREATED
    )


@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def wishlist_item_delete(request, pk):
    """Remove one of the customer's wishlist items"""
    item = get_object_or_404(WishlistItem, pk=pk, customer=request.user)
    item.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)
