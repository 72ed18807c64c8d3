"""
Checkout-to-order reconciliation

A paid Checkout Session is materialized into exactly one Order: the
session id is unique on Order, so re-verifying a session (success page
reloads, webhook retries) returns the order that already exists.
"""
import logging
import re

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import F
from django.db.models.functions import Greatest

from storefront.catalog.models import Product
from storefront.core.cache_utils import invalidate_products_cache
from storefront.core.utils import create_audit_log
from storefront.orders.models import Order, OrderItem
from .payments import from_minor_units

logger = logging.getLogger(__name__)

User = get_user_model()

SIZE_PATTERN = re.compile(r'Size: ([^,]+)')
COLOR_PATTERN = re.compile(r'Color: ([^,]+)$')
EMPTY_OPTIONS = ('', 'N/A')


class CheckoutError(Exception):
    def __init__(self, message, status_code=400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _get(obj, key, default=None):
    """Read a key from a Stripe object, a plain dict or None"""
    if obj is None or not hasattr(obj, 'get'):
        return default
    value = obj.get(key)
    return default if value is None else value


def _clean_option(value):
    value = (value or '').strip()
    return '' if value in EMPTY_OPTIONS else value


def extract_shipping_details(session):
    details = _get(session, 'shipping_details')
    if not details:
        details = _get(_get(session, 'collected_information'), 'shipping_details')
    return details or None


def build_address(shipping_details):
    address = _get(shipping_details, 'address')
    if not address:
        return None
    street = ', '.join(part for part in (_get(address, 'line1'), _get(address, 'line2')) if part)
    return {
        'street': street,
        'city': _get(address, 'city', ''),
        'state': _get(address, 'state', ''),
        'postal_code': _get(address, 'postal_code', ''),
        'country': _get(address, 'country', ''),
    }


def parse_line_item(line_item):
    """
    Turn a Stripe line item into order item fields.

    Product name, size and colour come from the expanded product's metadata;
    older sessions without metadata fall back to the "Size: X, Color: Y" description.
    """
    price = _get(line_item, 'price')
    product = _get(price, 'product')
    metadata = _get(product, 'metadata', {})
    quantity = _get(line_item, 'quantity', 1)

    description = _get(product, 'description') or _get(line_item, 'description', '')
    size_match = SIZE_PATTERN.search(description)
    color_match = COLOR_PATTERN.search(description)
    size = _get(metadata, 'size') or (size_match.group(1) if size_match else '')
    color = _get(metadata, 'color') or (color_match.group(1) if color_match else '')

    name = _get(product, 'name') or _get(line_item, 'description', '').split(',')[0]

    unit_amount = _get(price, 'unit_amount')
    if unit_amount is None:
        unit_amount = _get(line_item, 'amount_total', 0) / max(quantity, 1)

    product_id = _get(metadata, 'product_id')
    return {
        'product_id': int(product_id) if str(product_id or '').isdigit() else None,
        'product_name': name[:200],
        'price': from_minor_units(unit_amount),
        'quantity': quantity,
        'size': _clean_option(size),
        'color': _clean_option(color),
    }


def resolve_customer(user, metadata):
    if user is not None and user.is_authenticated:
        return user
    customer_id = _get(metadata, 'customerId')
    if customer_id and str(customer_id).isdigit():
        return User.objects.filter(pk=int(customer_id)).first()
    return None


def _payment_intent_id(session):
    payment_intent = _get(session, 'payment_intent')
    if isinstance(payment_intent, str):
        return payment_intent
    return _get(payment_intent, 'id', '')


def reconcile_checkout_session(session, user=None, request=None):
    """
    Materialize the order for a paid Checkout Session.
    Returns (order, created); raises CheckoutError when the session can't become an order.
    """
    session_id = _get(session, 'id')
    existing = Order.objects.filter(stripe_session_id=session_id).first()
    if existing:
        logger.info(f"Checkout session {session_id} already reconciled as order {existing.id}")
        return existing, False

    if _get(session, 'payment_status') != 'paid':
        raise CheckoutError('Payment not completed')

    shipping_address = build_address(extract_shipping_details(session))
    if not shipping_address:
        raise CheckoutError('Missing shipping information')

    metadata = _get(session, 'metadata', {})
    customer = resolve_customer(user, metadata)
    line_items = _get(_get(session, 'line_items'), 'data', [])
    parsed_items = [parse_line_item(line_item) for line_item in line_items]

    total_details = _get(session, 'total_details')
    shipping_minor = _get(total_details, 'amount_shipping')
    if shipping_minor is None:
        shipping_minor = _get(_get(session, 'shipping_cost'), 'amount_total', 0)

    try:
        with transaction.atomic():
            order = Order.objects.create(
                customer=customer,
                customer_name=_get(metadata, 'customerName', ''),
                customer_email=_get(session, 'customer_email') or _get(metadata, 'customerEmail', ''),
                customer_phone=_get(metadata, 'customerPhone', ''),
                status='Pending',
                payment_status='Paid',
                subtotal_amount=from_minor_units(_get(session, 'amount_subtotal', 0)),
                shipping_amount=from_minor_units(shipping_minor),
                total_amount=from_minor_units(_get(session, 'amount_total', 0)),
                currency=(_get(session, 'currency') or 'gbp').lower(),
                shipping_address=shipping_address,
                billing_address=dict(shipping_address),
                stripe_session_id=session_id,
                stripe_payment_intent_id=_payment_intent_id(session) or '',
            )

            product_ids = {item['product_id'] for item in parsed_items if item['product_id']}
            products = Product.objects.in_bulk(product_ids)
            for item in parsed_items:
                product = products.get(item['product_id'])
                OrderItem.objects.create(
                    order=order,
                    product=product,
                    product_name=item['product_name'] or (product.name if product else ''),
                    price=item['price'],
                    quantity=item['quantity'],
                    size=item['size'],
                    color=item['color'],
                )
                if product:
                    Product.objects.filter(pk=product.pk).update(
                        stock_quantity=Greatest(F('stock_quantity') - item['quantity'], 0)
                    )
    except IntegrityError:
        # Another request reconciled the same session first
        order = Order.objects.filter(stripe_session_id=session_id).first()
        if order is None:
            raise
        return order, False

    invalidate_products_cache()
    create_audit_log(
        request=request,
        user=customer,
        action='order_create',
        model_name='Order',
        object_id=str(order.id),
        object_name=f"Order #{order.id}",
        object_reference=session_id,
        changes={
            'total_amount': str(order.total_amount),
            'items': len(parsed_items),
            'customer_email': order.customer_email,
        },
    )
    logger.info(f"Checkout session {session_id} reconciled as order {order.id} ({len(parsed_items)} item(s))")
    return order, True


def mark_session_failed(session_id, request=None):
    """Flag the order for a session whose asynchronous payment failed"""
    order = Order.objects.filter(stripe_session_id=session_id).first()
    if order is None:
        logger.info(f"Payment failed for session {session_id} with no order on record")
        return None
    old_payment_status = order.payment_status
    order.payment_status = 'Failed'
    order.save(update_fields=['payment_status', 'updated_at'])
    create_audit_log(
        request=request,
        user=order.customer,
        action='payment_status_change',
        model_name='Order',
        object_id=str(order.id),
        object_name=f"Order #{order.id}",
        object_reference=session_id,
        changes={'payment_status': {'old': old_payment_status, 'new': 'Failed'}},
    )
    logger.warning(f"Order {order.id} marked Failed after async payment failure")
    return order


def order_summary(order):
    return {
        'id': order.id,
        'total': str(order.total_amount),
        'items': [
            {
                'product_id': item.product_id,
                'product_name': item.product_name,
                'price': str(item.price),
                'quantity': item.quantity,
                'size': item.size,
                'color': item.color,
            }
            for item in order.items.all()
        ],
        'shipping': {
            'name': order.customer_name,
            'address': order.shipping_address,
        },
    }
