"""
Test suite for checkout: session creation, order reconciliation and webhooks
Stripe is never called; the payments module is patched.
"""
from decimal import Decimal
from unittest.mock import patch, MagicMock

import stripe
from django.test import TestCase, override_settings
from rest_framework import status
from storefront.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from storefront.core.models import AuditLog
from storefront.cart.models import CartItem
from storefront.orders.models import Order
from storefront.checkout import payments
from storefront.checkout.services import (
    CheckoutError, parse_line_item, reconcile_checkout_session, build_address,
)


def make_session(product=None, session_id='cs_test_123', payment_status='paid', with_shipping=True,
                 metadata=None, line_items=None):
    """A Checkout Session shaped like Stripe's expanded retrieve response"""
    if line_items is None:
        line_items = [{
            'description': product.name,
            'quantity': 2,
            'amount_total': 8000,
            'price': {
                'unit_amount': 4000,
                'product': {
                    'name': product.name,
                    'description': 'Size: M, Color: Black',
                    'metadata': {'product_id': str(product.id), 'size': 'M', 'color': 'Black'},
                },
            },
        }]
    return {
        'id': session_id,
        'payment_status': payment_status,
        'amount_subtotal': 8000,
        'amount_total': 8500,
        'currency': 'gbp',
        'customer_email': 'buyer@example.com',
        'metadata': metadata if metadata is not None else {
            'customerName': 'Bea Buyer',
            'customerEmail': 'buyer@example.com',
            'customerPhone': '07700900000',
            'customerId': '',
        },
        'payment_intent': {'id': 'pi_test_456'},
        'total_details': {'amount_shipping': 500},
        'shipping_details': {
            'name': 'Bea Buyer',
            'address': {
                'line1': '10 Downing Street',
                'line2': 'Flat 2',
                'city': 'London',
                'state': '',
                'postal_code': 'SW1A 2AA',
                'country': 'GB',
            },
        } if with_shipping else None,
        'line_items': {'data': line_items},
    }


class PaymentsHelperTests(TestCase):
    """Test Stripe payload builders"""

    def test_minor_unit_conversion(self):
        self.assertEqual(payments.to_minor_units(Decimal('19.99')), 1999)
        self.assertEqual(payments.to_minor_units(Decimal('0.005')), 1)
        self.assertEqual(payments.from_minor_units(8500), Decimal('85.00'))

    @override_settings(STORE_CURRENCY='gbp')
    def test_build_line_item(self):
        product = TestDataFactory.create_product(
            name='Silk Dress', price=Decimal('40.00'), image_url='https://cdn.example.com/silk.jpg'
        )
        line = payments.build_line_item(product, 2, 'M', '')
        self.assertEqual(line['quantity'], 2)
        self.assertEqual(line['price_data']['currency'], 'gbp')
        self.assertEqual(line['price_data']['unit_amount'], 4000)
        product_data = line['price_data']['product_data']
        self.assertEqual(product_data['description'], 'Size: M, Color: N/A')
        self.assertEqual(product_data['images'], ['https://cdn.example.com/silk.jpg'])
        self.assertEqual(product_data['metadata']['product_id'], str(product.id))

    def test_build_shipping_options(self):
        options = payments.build_shipping_options()
        self.assertEqual(len(options), 2)
        self.assertEqual(options[0]['shipping_rate_data']['fixed_amount']['amount'], 500)
        self.assertEqual(options[1]['shipping_rate_data']['delivery_estimate']['maximum']['value'], 2)

    @patch('storefront.checkout.payments.stripe.checkout.Session.create')
    def test_create_session_maps_processor_errors(self, mock_create):
        mock_create.side_effect = stripe.StripeError('card network down')
        with self.assertRaises(payments.PaymentProcessorError) as ctx:
            payments.create_checkout_session([])
        self.assertEqual(ctx.exception.status_code, 502)
        self.assertIn('card network down', ctx.exception.message)

    @patch('storefront.checkout.payments.stripe.Webhook.construct_event')
    def test_construct_event_bad_signature(self, mock_construct):
        mock_construct.side_effect = stripe.SignatureVerificationError('bad signature', 'sig_header')
        with self.assertRaises(payments.InvalidWebhookError):
            payments.construct_event(b'{}', 'sig_header')


class ReconciliationServiceTests(TestCase):
    """Test materializing orders from checkout sessions"""

    def setUp(self):
        self.product = TestDataFactory.create_product(name='Silk Dress', price=Decimal('40.00'), stock_quantity=5)

    def test_parse_line_item_from_metadata(self):
        item = parse_line_item(make_session(self.product)['line_items']['data'][0])
        self.assertEqual(item['product_id'], self.product.id)
        self.assertEqual(item['price'], Decimal('40.00'))
        self.assertEqual((item['size'], item['color']), ('M', 'Black'))

    def test_parse_line_item_falls_back_to_description(self):
        item = parse_line_item({
            'description': 'Linen Dress',
            'quantity': 1,
            'amount_total': 3000,
            'price': {'unit_amount': 3000, 'product': {'name': 'Linen Dress', 'description': 'Size: L, Color: N/A'}},
        })
        self.assertIsNone(item['product_id'])
        self.assertEqual(item['product_name'], 'Linen Dress')
        self.assertEqual(item['size'], 'L')
        self.assertEqual(item['color'], '')

    def test_build_address_joins_street_lines(self):
        address = build_address(make_session(self.product)['shipping_details'])
        self.assertEqual(address['street'], '10 Downing Street, Flat 2')
        self.assertEqual(address['postal_code'], 'SW1A 2AA')

    def test_reconcile_creates_order(self):
        order, created = reconcile_checkout_session(make_session(self.product))
        self.assertTrue(created)
        self.assertEqual(order.status, 'Pending')
        self.assertEqual(order.payment_status, 'Paid')
        self.assertEqual(order.total_amount, Decimal('85.00'))
        self.assertEqual(order.shipping_amount, Decimal('5.00'))
        self.assertEqual(order.billing_address, order.shipping_address)
        self.assertEqual(order.stripe_payment_intent_id, 'pi_test_456')
        self.assertEqual(order.items.get().line_total, Decimal('80.00'))
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 3)
        self.assertTrue(AuditLog.objects.filter(action='order_create', object_reference='cs_test_123').exists())

    def test_reconcile_is_idempotent(self):
        first, created = reconcile_checkout_session(make_session(self.product))
        second, created_again = reconcile_checkout_session(make_session(self.product))
        self.assertTrue(created)
        self.assertFalse(created_again)
        self.assertEqual(first.pk, second.pk)
        self.assertEqual(Order.objects.count(), 1)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 3)

    def test_stock_never_goes_negative(self):
        self.product.stock_quantity = 1
        self.product.save()
        reconcile_checkout_session(make_session(self.product))
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 0)

    def test_unpaid_session_rejected(self):
        with self.assertRaises(CheckoutError) as ctx:
            reconcile_checkout_session(make_session(self.product, payment_status='unpaid'))
        self.assertEqual(ctx.exception.message, 'Payment not completed')
        self.assertFalse(Order.objects.exists())

    def test_missing_shipping_rejected(self):
        with self.assertRaises(CheckoutError) as ctx:
            reconcile_checkout_session(make_session(self.product, with_shipping=False))
        self.assertEqual(ctx.exception.message, 'Missing shipping information')

    def test_shipping_from_collected_information(self):
        session = make_session(self.product)
        session['collected_information'] = {'shipping_details': session.pop('shipping_details')}
        order, _ = reconcile_checkout_session(session)
        self.assertEqual(order.shipping_address['city'], 'London')

    def test_customer_from_metadata(self):
        customer = TestDataFactory.create_user()
        session = make_session(self.product, metadata={'customerId': str(customer.id), 'customerName': 'Bea'})
        order, _ = reconcile_checkout_session(session)
        self.assertEqual(order.customer, customer)


class CreateCheckoutAPITests(TestCase):
    """Test POST /checkout/"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.product = TestDataFactory.create_product(name='Silk Dress', price=Decimal('40.00'), stock_quantity=3)
        self.session = MagicMock(id='cs_test_new', url='https://checkout.stripe.com/c/pay/cs_test_new')

    @patch('storefront.checkout.payments.stripe.checkout.Session.create')
    def test_checkout_prices_from_catalog(self, mock_create):
        mock_create.return_value = self.session
        response = self.client.post('/api/v1/checkout/', {
            'items': [{'product_id': self.product.id, 'quantity': 2, 'size': 'M', 'color': 'Black', 'price': '0.01'}],
            'customer_details': {'name': 'Bea Buyer', 'email': 'buyer@example.com', 'phone': '07700900000'},
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'session_id': 'cs_test_new', 'url': 'https://checkout.stripe.com/c/pay/cs_test_new'})

        params = mock_create.call_args.kwargs
        self.assertEqual(params['mode'], 'payment')
        self.assertEqual(params['line_items'][0]['price_data']['unit_amount'], 4000)
        self.assertEqual(params['line_items'][0]['price_data']['product_data']['description'], 'Size: M, Color: Black')
        self.assertEqual(params['customer_email'], 'buyer@example.com')
        self.assertEqual(params['metadata']['customerName'], 'Bea Buyer')
        self.assertEqual(params['shipping_address_collection'], {'allowed_countries': ['GB']})
        self.assertTrue(params['success_url'].endswith('/checkout/success?session_id={CHECKOUT_SESSION_ID}'))
        self.assertTrue(params['cancel_url'].endswith('/cart'))

    @patch('storefront.checkout.payments.stripe.checkout.Session.create')
    def test_checkout_from_customer_cart(self, mock_create):
        mock_create.return_value = self.session
        customer = TestDataFactory.create_user(email='cart.owner@example.com')
        cart = TestDataFactory.create_cart(user=customer)
        TestDataFactory.create_cart_item(cart, self.product, quantity=1, size='S', color='White')
        self.client.authenticate_user(customer)

        response = self.client.post('/api/v1/checkout/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        params = mock_create.call_args.kwargs
        self.assertEqual(len(params['line_items']), 1)
        self.assertEqual(params['metadata']['customerId'], str(customer.id))
        self.assertEqual(params['customer_email'], 'cart.owner@example.com')

    def test_empty_cart(self):
        response = self.client.post('/api/v1/checkout/', {'items': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Cart is empty')

    def test_no_items_and_no_cart(self):
        response = self.client.post('/api/v1/checkout/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Cart is empty')

    def test_inactive_product_rejected(self):
        hidden = TestDataFactory.create_product(is_active=False)
        response = self.client.post('/api/v1/checkout/', {'items': [{'product_id': hidden.id}]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_quantity_above_stock_rejected(self):
        response = self.client.post('/api/v1/checkout/', {
            'items': [
                {'product_id': self.product.id, 'quantity': 2, 'size': 'S'},
                {'product_id': self.product.id, 'quantity': 2, 'size': 'M'},
            ],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Only 3 left in stock', response.data['error'])

    @patch('storefront.checkout.payments.stripe.checkout.Session.create')
    def test_processor_error_status(self, mock_create):
        mock_create.side_effect = stripe.InvalidRequestError('Invalid currency', 'currency', http_status=400)
        response = self.client.post('/api/v1/checkout/', {'items': [{'product_id': self.product.id}]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(response.data['error'].startswith('Payment processor error'))


class CheckoutSessionAPITests(TestCase):
    """Test GET /checkout/session/"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.customer = TestDataFactory.create_user()
        self.product = TestDataFactory.create_product(name='Silk Dress', price=Decimal('40.00'), stock_quantity=5)

    def test_missing_session_id(self):
        response = self.client.get('/api/v1/checkout/session/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Missing session ID')

    @patch('storefront.checkout.payments.retrieve_session')
    def test_verify_creates_order_for_customer_and_clears_cart(self, mock_retrieve):
        mock_retrieve.return_value = make_session(self.product)
        cart = TestDataFactory.create_cart(user=self.customer)
        TestDataFactory.create_cart_item(cart, self.product, quantity=2, size='M', color='Black')
        self.client.authenticate_user(self.customer)

        response = self.client.get('/api/v1/checkout/session/', {'session_id': 'cs_test_123'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertTrue(response.data['created'])
        self.assertEqual(response.data['order']['total'], '85.00')
        self.assertEqual(response.data['order']['items'][0]['size'], 'M')
        self.assertEqual(response.data['order']['shipping']['address']['city'], 'London')

        order = Order.objects.get()
        self.assertEqual(order.customer, self.customer)
        self.assertFalse(CartItem.objects.filter(cart=cart).exists())
        mock_retrieve.assert_called_once_with('cs_test_123')

    @patch('storefront.checkout.payments.retrieve_session')
    def test_verify_twice_returns_same_order(self, mock_retrieve):
        mock_retrieve.return_value = make_session(self.product)
        first = self.client.get('/api/v1/checkout/session/', {'session_id': 'cs_test_123'})
        second = self.client.get('/api/v1/checkout/session/', {'session_id': 'cs_test_123'})
        self.assertEqual(first.data['order']['id'], second.data['order']['id'])
        self.assertFalse(second.data['created'])
        self.assertEqual(Order.objects.count(), 1)

    @patch('storefront.checkout.payments.retrieve_session')
    def test_unpaid_session(self, mock_retrieve):
        mock_retrieve.return_value = make_session(self.product, payment_status='unpaid')
        response = self.client.get('/api/v1/checkout/session/', {'session_id': 'cs_test_123'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Payment not completed')

    @patch('storefront.checkout.payments.retrieve_session')
    def test_missing_shipping(self, mock_retrieve):
        mock_retrieve.return_value = make_session(self.product, with_shipping=False)
        response = self.client.get('/api/v1/checkout/session/', {'session_id': 'cs_test_123'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Missing shipping information')

    @patch('storefront.checkout.payments.retrieve_session')
    def test_processor_error(self, mock_retrieve):
        mock_retrieve.side_effect = payments.PaymentProcessorError('Payment processor error: No such session', 404)
        response = self.client.get('/api/v1/checkout/session/', {'session_id': 'cs_missing'})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class StripeWebhookAPITests(TestCase):
    """Test POST /checkout/webhook/"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.product = TestDataFactory.create_product(name='Silk Dress', price=Decimal('40.00'), stock_quantity=5)

    def _post(self):
        return self.client.post(
            '/api/v1/checkout/webhook/', data=b'{}', content_type='application/json',
            HTTP_STRIPE_SIGNATURE='t=1,v1=abc'
        )

    @patch('storefront.checkout.payments.construct_event')
    def test_bad_signature(self, mock_construct):
        mock_construct.side_effect = payments.InvalidWebhookError('Invalid signature')
        response = self._post()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @patch('storefront.checkout.payments.retrieve_session')
    @patch('storefront.checkout.payments.construct_event')
    def test_completed_event_reconciles(self, mock_construct, mock_retrieve):
        mock_construct.return_value = {
            'type': 'checkout.session.completed',
            'data': {'object': {'id': 'cs_test_123', 'payment_status': 'paid'}},
        }
        mock_retrieve.return_value = make_session(self.product)
        response = self._post()
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['created'])

        response = self._post()
        self.assertFalse(response.data['created'])
        self.assertEqual(Order.objects.count(), 1)

    @patch('storefront.checkout.payments.retrieve_session')
    @patch('storefront.checkout.payments.construct_event')
    def test_async_payment_succeeded_reconciles(self, mock_construct, mock_retrieve):
        mock_construct.return_value = {
            'type': 'checkout.session.async_payment_succeeded',
            'data': {'object': {'id': 'cs_test_async', 'payment_status': 'paid'}},
        }
        mock_retrieve.return_value = make_session(self.product, session_id='cs_test_async')
        response = self._post()
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['created'])
        mock_retrieve.assert_called_once_with('cs_test_async')
        order = Order.objects.get(stripe_session_id='cs_test_async')
        self.assertEqual(order.payment_status, 'Paid')

    @patch('storefront.checkout.payments.construct_event')
    def test_async_payment_failed_marks_order(self, mock_construct):
        order = TestDataFactory.create_order(stripe_session_id='cs_test_failed', payment_status='Pending')
        mock_construct.return_value = {
            'type': 'checkout.session.async_payment_failed',
            'data': {'object': {'id': 'cs_test_failed', 'payment_status': 'unpaid'}},
        }
        response = self._post()
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        order.refresh_from_db()
        self.assertEqual(order.payment_status, 'Failed')

    @patch('storefront.checkout.payments.construct_event')
    def test_other_events_acknowledged(self, mock_construct):
        mock_construct.return_value = {
            'type': 'customer.created',
            'data': {'object': {'id': 'cus_123'}},
        }
        response = self._post()
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'received': True})
        self.assertFalse(Order.objects.exists())
