"""
Test suite for the cart: anonymous tokens, line identity, stock checks and merge on login
"""
from decimal import Decimal
from django.test import TestCase
from rest_framework import status
from storefront.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from storefront.cart.models import Cart, CartItem


class CartModelTests(TestCase):
    """Test cart totals"""

    def test_totals_use_current_product_price(self):
        cart = TestDataFactory.create_cart()
        dress = TestDataFactory.create_product(price=Decimal('30.00'))
        scarf = TestDataFactory.create_product(price=Decimal('12.50'))
        TestDataFactory.create_cart_item(cart, dress, quantity=2, size='S', color='Black')
        TestDataFactory.create_cart_item(cart, scarf, quantity=1, size='M', color='White')

        dress.price = Decimal('35.00')
        dress.save()

        cart = Cart.objects.get(pk=cart.pk)
        self.assertEqual(cart.total_items, 3)
        self.assertEqual(cart.total_price, Decimal('82.50'))


class AnonymousCartAPITests(TestCase):
    """Test cart endpoints for clients identified by X-Cart-Token"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.product = TestDataFactory.create_product(
            price=Decimal('40.00'), stock_quantity=5, sizes=['S', 'M'], colors=['Black']
        )

    def _add(self, token=None, **data):
        payload = {'product_id': self.product.id, 'quantity': 1, 'size': 'S', 'color': 'Black'}
        payload.update(data)
        headers = {'HTTP_X_CART_TOKEN': token} if token else {}
        return self.client.post('/api/v1/cart/items/', payload, format='json', **headers)

    def test_get_creates_cart_with_token(self):
        response = self.client.get('/api/v1/cart/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['token'])
        self.assertEqual(response.data['items'], [])
        self.assertEqual(response.data['total_items'], 0)

    def test_token_identifies_cart(self):
        token = self._add().data['token']
        response = self.client.get('/api/v1/cart/', HTTP_X_CART_TOKEN=token)
        self.assertEqual(response.data['token'], token)
        self.assertEqual(response.data['total_items'], 1)

    def test_add_same_line_increases_quantity(self):
        token = self._add(quantity=2).data['token']
        response = self._add(token=token, quantity=1)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(len(response.data['items']), 1)
        self.assertEqual(response.data['items'][0]['quantity'], 3)
        self.assertEqual(Decimal(response.data['total_price']), Decimal('120.00'))

    def test_different_size_is_separate_line(self):
        token = self._add(size='S').data['token']
        response = self._add(token=token, size='M')
        self.assertEqual(len(response.data['items']), 2)

    def test_add_rejects_quantity_below_one(self):
        response = self._add(quantity=0)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_add_rejects_unknown_size(self):
        response = self._add(size='XXL')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_add_accepts_any_option_when_none_declared(self):
        plain = TestDataFactory.create_product(sizes=[], colors=[])
        response = self._add(product_id=plain.id, size='', color='')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_add_inactive_product_not_found(self):
        hidden = TestDataFactory.create_product(is_active=False)
        response = self._add(product_id=hidden.id)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_add_over_stock(self):
        token = self._add(quantity=4).data['token']
        response = self._add(token=token, quantity=2)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Only 5 left in stock')
        self.assertEqual(CartItem.objects.get().quantity, 4)

    def test_update_quantity(self):
        data = self._add().data
        item_id = data['items'][0]['id']
        response = self.client.patch(
            f'/api/v1/cart/items/{item_id}/', {'quantity': 3}, format='json', HTTP_X_CART_TOKEN=data['token']
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['items'][0]['quantity'], 3)

    def test_update_over_stock(self):
        data = self._add().data
        item_id = data['items'][0]['id']
        response = self.client.patch(
            f'/api/v1/cart/items/{item_id}/', {'quantity': 6}, format='json', HTTP_X_CART_TOKEN=data['token']
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Only 5 left in stock')

    def test_update_rejects_deactivated_product(self):
        data = self._add().data
        item_id = data['items'][0]['id']
        self.product.is_active = False
        self.product.save()
        response = self.client.patch(
            f'/api/v1/cart/items/{item_id}/', {'quantity': 3}, format='json', HTTP_X_CART_TOKEN=data['token']
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(CartItem.objects.get(pk=item_id).quantity, 1)

    def test_deactivated_product_line_can_be_removed(self):
        data = self._add().data
        item_id = data['items'][0]['id']
        self.product.is_active = False
        self.product.save()
        response = self.client.patch(
            f'/api/v1/cart/items/{item_id}/', {'quantity': 0}, format='json', HTTP_X_CART_TOKEN=data['token']
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(CartItem.objects.filter(pk=item_id).exists())

    def test_update_to_zero_removes_line(self):
        data = self._add().data
        item_id = data['items'][0]['id']
        response = self.client.patch(
            f'/api/v1/cart/items/{item_id}/', {'quantity': 0}, format='json', HTTP_X_CART_TOKEN=data['token']
        )
        self.assertEqual(response.data['items'], [])
        self.assertFalse(CartItem.objects.filter(pk=item_id).exists())

    def test_delete_line(self):
        data = self._add().data
        item_id = data['items'][0]['id']
        response = self.client.delete(f'/api/v1/cart/items/{item_id}/', HTTP_X_CART_TOKEN=data['token'])
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_items'], 0)

    def test_cannot_touch_other_cart_lines(self):
        data = self._add().data
        item_id = data['items'][0]['id']
        other_token = self.client.get('/api/v1/cart/').data['token']
        response = self.client.delete(f'/api/v1/cart/items/{item_id}/', HTTP_X_CART_TOKEN=other_token)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertTrue(CartItem.objects.filter(pk=item_id).exists())

    def test_clear_cart(self):
        token = self._add().data['token']
        response = self.client.delete('/api/v1/cart/', HTTP_X_CART_TOKEN=token)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['items'], [])
        self.assertEqual(response.data['token'], token)


class CustomerCartAPITests(TestCase):
    """Test carts owned by signed-in customers"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.user = TestDataFactory.create_user()
        self.product = TestDataFactory.create_product(stock_quantity=5, sizes=['S'], colors=['Black'])

    def test_customer_has_single_cart(self):
        self.client.authenticate_user(self.user)
        first = self.client.get('/api/v1/cart/').data['token']
        second = self.client.get('/api/v1/cart/').data['token']
        self.assertEqual(first, second)
        self.assertEqual(Cart.objects.filter(user=self.user).count(), 1)

    def test_anonymous_cart_claimed_on_login(self):
        anonymous = TestDataFactory.create_cart()
        TestDataFactory.create_cart_item(anonymous, self.product, quantity=2, size='S', color='Black')

        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/cart/', HTTP_X_CART_TOKEN=str(anonymous.token))
        self.assertEqual(response.data['total_items'], 2)
        anonymous.refresh_from_db()
        self.assertEqual(anonymous.user, self.user)

    def test_anonymous_cart_merged_into_existing_cart(self):
        own = TestDataFactory.create_cart(user=self.user)
        TestDataFactory.create_cart_item(own, self.product, quantity=2, size='S', color='Black')
        anonymous = TestDataFactory.create_cart()
        TestDataFactory.create_cart_item(anonymous, self.product, quantity=4, size='S', color='Black')

        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/cart/', HTTP_X_CART_TOKEN=str(anonymous.token))
        self.assertEqual(response.data['token'], str(own.token))
        self.assertEqual(len(response.data['items']), 1)
        self.assertEqual(response.data['items'][0]['quantity'], 5)
        self.assertFalse(Cart.objects.filter(pk=anonymous.pk).exists())

    def test_anonymous_token_cannot_read_customer_cart(self):
        own = TestDataFactory.create_cart(user=self.user)
        TestDataFactory.create_cart_item(own, self.product, quantity=1, size='S', color='Black')
        response = self.client.get('/api/v1/cart/', HTTP_X_CART_TOKEN=str(own.token))
        self.assertNotEqual(response.data['token'], str(own.token))
        self.assertEqual(response.data['items'], [])
