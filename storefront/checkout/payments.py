"""
Thin wrapper over the Stripe SDK

Everything that talks to Stripe goes through this module so views and
services stay processor-agnostic and tests can patch a single place.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP

import stripe
from django.conf import settings

logger = logging.getLogger(__name__)

SESSION_EXPAND = ['line_items', 'line_items.data.price.product', 'payment_intent', 'customer']


class PaymentProcessorError(Exception):
    """A Stripe call failed; status_code is the processor's HTTP status, or 502"""

    def __init__(self, message, status_code=502):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class InvalidWebhookError(Exception):
    pass


def _configure():
    stripe.api_key = settings.STRIPE_SECRET_KEY
    stripe.api_version = settings.STRIPE_API_VERSION


def _processor_error(exc):
    status_code = getattr(exc, 'http_status', None) or 502
    message = getattr(exc, 'user_message', None) or str(exc)
    return PaymentProcessorError(f"Payment processor error: {message}", status_code=status_code)


def to_minor_units(amount):
    return int((Decimal(str(amount)) * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def from_minor_units(value):
    return (Decimal(value or 0) / 100).quantize(Decimal('0.01'))


def describe_options(size, color):
    return f"Size: {size or 'N/A'}, Color: {color or 'N/A'}"


def build_line_item(product, quantity, size='', color=''):
    """One Checkout line priced from the catalog product"""
    product_data = {
        'name': product.name,
        'description': describe_options(size, color),
        'metadata': {
            'product_id': str(product.id),
            'size': size or '',
            'color': color or '',
        },
    }
    image = product.primary_image
    if image and image.startswith('http'):
        product_data['images'] = [image]

    return {
        'price_data': {
            'currency': settings.STORE_CURRENCY,
            'unit_amount': to_minor_units(product.price),
            'product_data': product_data,
        },
        'quantity': quantity,
    }


def build_shipping_options():
    options = []
    for option in settings.STORE_SHIPPING_OPTIONS:
        options.append({
            'shipping_rate_data': {
                'type': 'fixed_amount',
                'fixed_amount': {
                    'amount': option['amount'],
                    'currency': settings.STORE_CURRENCY,
                },
                'display_name': option['display_name'],
                'delivery_estimate': {
                    'minimum': {'unit': 'business_day', 'value': option['min_days']},
                    'maximum': {'unit': 'business_day', 'value': option['max_days']},
                },
            },
        })
    return options


def create_checkout_session(line_items, customer_details=None, customer_id=None):
    """Create a hosted Checkout Session in payment mode"""
    _configure()
    customer_details = customer_details or {}
    params = {
        'payment_method_types': ['card'],
        'mode': 'payment',
        'line_items': line_items,
        'success_url': f"{settings.FRONTEND_URL}/checkout/success?session_id={{CHECKOUT_SESSION_ID}}",
        'cancel_url': f"{settings.FRONTEND_URL}/cart",
        'shipping_address_collection': {'allowed_countries': list(settings.STORE_SHIPPING_COUNTRIES)},
        'shipping_options': build_shipping_options(),
        'metadata': {
            'customerName': customer_details.get('name') or '',
            'customerEmail': customer_details.get('email') or '',
            'customerPhone': customer_details.get('phone') or '',
            'customerId': str(customer_id) if customer_id else '',
        },
    }
    if customer_details.get('email'):
        params['customer_email'] = customer_details['email']

    try:
        session = stripe.checkout.Session.create(**params)
    except stripe.StripeError as e:
        logger.exception("Stripe checkout session create failed")
        raise _processor_error(e)
    logger.info(f"Created checkout session {session.id} with {len(line_items)} line item(s)")
    return session


def retrieve_session(session_id):
    """Retrieve a Checkout Session with line items, line products and payment intent expanded"""
    _configure()
    try:
        return stripe.checkout.Session.retrieve(session_id, expand=SESSION_EXPAND)
    except stripe.StripeError as e:
        logger.error(f"Stripe session retrieve failed for {session_id}: {str(e)}")
        raise _processor_error(e)


def construct_event(payload, signature):
    """Verify a webhook payload against STRIPE_WEBHOOK_SECRET"""
    _configure()
    try:
        return stripe.Webhook.construct_event(payload, signature, settings.STRIPE_WEBHOOK_SECRET)
    except ValueError as e:
        logger.warning(f"Stripe webhook payload invalid: {e}")
        raise InvalidWebhookError('Invalid payload')
    except stripe.SignatureVerificationError as e:
        logger.warning(f"Stripe webhook signature failure: {e}")
        raise InvalidWebhookError('Invalid signature')
