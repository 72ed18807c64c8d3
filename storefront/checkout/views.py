import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, authentication_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from storefront.cart.services import find_cart, clear_cart
from storefront.catalog.models import Product
from . import payments
from .serializers import CheckoutSerializer
from .services import CheckoutError, reconcile_checkout_session, mark_session_failed, order_summary

logger = logging.getLogger(__name__)

RECONCILE_EVENTS = ('checkout.session.completed', 'checkout.session.async_payment_succeeded')


def _requested_lines(request, validated_data):
    """Lines from the request body, or from the requester's cart when no items were sent"""
    if 'items' in validated_data:
        return [
            {
                'product_id': item['product_id'],
                'quantity': item['quantity'],
                'size': (item.get('size') or '').strip(),
                'color': (item.get('color') or '').strip(),
            }
            for item in validated_data['items']
        ]
    cart = find_cart(request)
    if cart is None:
        return []
    return [
        {'product_id': item.product_id, 'quantity': item.quantity, 'size': item.size, 'color': item.color}
        for item in cart.items.all()
    ]


@api_view(['POST'])
@permission_classes([AllowAny])
def create_checkout(request):
    """Price the requested lines from the catalog and open a hosted Checkout Session"""
    serializer = CheckoutSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    lines = _requested_lines(request, serializer.validated_data)
    if not lines:
        return Response({'error': 'Cart is empty'}, status=status.HTTP_400_BAD_REQUEST)

    products = Product.objects.prefetch_related('images').filter(
        pk__in={line['product_id'] for line in lines}, is_active=True
    ).in_bulk()

    requested = {}
    for line in lines:
        product = products.get(line['product_id'])
        if product is None:
            return Response(
                {'error': f"Product {line['product_id']} is not available"},
                status=status.HTTP_400_BAD_REQUEST
            )
        requested[product.pk] = requested.get(product.pk, 0) + line['quantity']
        if requested[product.pk] > product.stock_quantity:
            return Response(
                {'error': f'Only {product.stock_quantity} left in stock for {product.name}'},
                status=status.HTTP_400_BAD_REQUEST
            )

    line_items = [
        payments.build_line_item(products[line['product_id']], line['quantity'], line['size'], line['color'])
        for line in lines
    ]
    customer_details = dict(serializer.validated_data.get('customer_details') or {})
    customer_id = None
    if request.user and request.user.is_authenticated:
        customer_id = request.user.pk
        customer_details['email'] = customer_details.get('email') or request.user.email
        customer_details['name'] = customer_details.get('name') or request.user.name

    try:
        session = payments.create_checkout_session(line_items, customer_details, customer_id)
    except payments.PaymentProcessorError as e:
        return Response({'error': e.message}, status=e.status_code)

    return Response({'session_id': session.id, 'url': session.url})


@api_view(['GET'])
@permission_classes([AllowAny])
def checkout_session(request):
    """Verify a returned Checkout Session and materialize its order (idempotent)"""
    session_id = request.query_params.get('session_id')
    if not session_id:
        return Response({'error': 'Missing session ID'}, status=status.HTTP_400_BAD_REQUEST)

    try:
        session = payments.retrieve_session(session_id)
    except payments.PaymentProcessorError as e:
        return Response({'error': e.message}, status=e.status_code)

    try:
        order, created = reconcile_checkout_session(session, user=request.user, request=request)
    except CheckoutError as e:
        logger.info(f"Checkout session {session_id} not reconciled: {e.message}")
        return Response({'error': e.message}, status=e.status_code)

    clear_cart(request)
    return Response({'success': True, 'order': order_summary(order), 'created': created})


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def stripe_webhook(request):
    """Stripe event receiver. The signature is verified before anything is read."""
    payload = request.body
    signature = request.META.get('HTTP_STRIPE_SIGNATURE', '')
    try:
        event = payments.construct_event(payload, signature)
    except payments.InvalidWebhookError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    event_type = event['type']
    session = event['data']['object']
    session_id = session.get('id')
    logger.info(f"Stripe webhook received: {event_type} ({session_id})")

    if event_type in RECONCILE_EVENTS and session.get('payment_status') == 'paid':
        try:
            full_session = payments.retrieve_session(session_id)
            order, created = reconcile_checkout_session(full_session)
        except payments.PaymentProcessorError as e:
            return Response({'error': e.message}, status=e.status_code)
        except CheckoutError as e:
            logger.error(f"Webhook could not reconcile session {session_id}: {e.message}")
            return Response({'received': True, 'error': e.message})
        return Response({'received': True, 'order_id': order.id, 'created': created})

    if event_type == 'checkout.session.async_payment_failed':
        mark_session_failed(session_id, request=request)

    return Response({'received': True})
