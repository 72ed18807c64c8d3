"""
Cart lookup for the current request

Customers own exactly one cart. Anonymous clients carry their cart token in
the X-Cart-Token header; the first authenticated request that still sends
an anonymous token folds that cart into the customer's cart.
"""
import logging
import uuid

from django.db import transaction

from .models import Cart, CartItem

logger = logging.getLogger(__name__)

CART_TOKEN_HEADER = 'HTTP_X_CART_TOKEN'


def get_request_cart_token(request):
    raw = request.META.get(CART_TOKEN_HEADER)
    if not raw:
        return None
    try:
        return uuid.UUID(str(raw).strip())
    except (TypeError, ValueError):
        return None


def merge_carts(source, target):
    """Move source lines into target, capping merged quantities at available stock"""
    with transaction.atomic():
        for item in source.items.select_related('product'):
            product = item.product
            if not product.is_active or product.stock_quantity == 0:
                continue
            existing = target.items.filter(product=product, size=item.size, color=item.color).first()
            if existing:
                existing.quantity = min(existing.quantity + item.quantity, product.stock_quantity)
                existing.unit_price = product.price
                existing.save(update_fields=['quantity', 'unit_price', 'updated_at'])
            else:
                CartItem.objects.create(
                    cart=target,
                    product=product,
                    quantity=min(item.quantity, product.stock_quantity),
                    size=item.size,
                    color=item.color,
                    unit_price=product.price,
                )
        source.delete()
    logger.info(f"Merged anonymous cart {source.token} into cart {target.token}")
    return target


def find_cart(request):
    """The requester's existing cart (merging an anonymous one on login), or None"""
    token = get_request_cart_token(request)
    user = request.user if request.user and request.user.is_authenticated else None

    if user is None:
        if token is None:
            return None
        return Cart.objects.filter(token=token, user__isnull=True).first()

    cart = Cart.objects.filter(user=user).first()
    anonymous = None
    if token is not None:
        anonymous = Cart.objects.filter(token=token, user__isnull=True).first()

    if anonymous is None:
        return cart
    if cart is None:
        anonymous.user = user
        anonymous.save(update_fields=['user', 'updated_at'])
        logger.info(f"Claimed anonymous cart {anonymous.token} for {user.email}")
        return anonymous
    return merge_carts(anonymous, cart)


def get_or_create_cart(request):
    cart = find_cart(request)
    if cart is not None:
        return cart
    user = request.user if request.user and request.user.is_authenticated else None
    if user is not None:
        cart, _ = Cart.objects.get_or_create(user=user)
        return cart
    return Cart.objects.create()


def clear_cart(request):
    cart = find_cart(request)
    if cart is not None:
        cart.items.all().delete()
    return cart
