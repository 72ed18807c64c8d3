"""
Test suite for the customer wishlist
"""
from django.test import TestCase
from rest_framework import status
from storefront.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from storefront.wishlist.models import WishlistItem


class WishlistAPITests(TestCase):
    """Test wishlist listing, adding and removing"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.customer = TestDataFactory.create_user()
        self.other = TestDataFactory.create_user()
        self.dress = TestDataFactory.create_product(name='Silk Dress', image_url='https://cdn.example.com/silk.jpg')
        self.coat = TestDataFactory.create_product(name='Wool Coat')
        self.client.authenticate_user(self.customer)

    def test_requires_authentication(self):
        self.client.logout()
        response = self.client.get('/api/v1/wishlist/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_list_own_items_newest_first(self):
        TestDataFactory.create_wishlist_item(self.customer, self.dress)
        TestDataFactory.create_wishlist_item(self.customer, self.coat)
        TestDataFactory.create_wishlist_item(self.other, self.dress)
        response = self.client.get('/api/v1/wishlist/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([item['product']['name'] for item in response.data], ['Wool Coat', 'Silk Dress'])
        self.assertEqual(response.data[1]['product']['images'], ['https://cdn.example.com/silk.jpg'])

    def test_add_item(self):
        response = self.client.post('/api/v1/wishlist/', {'product_id': self.dress.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['item']['product']['id'], self.dress.id)
        self.assertTrue(WishlistItem.objects.filter(customer=self.customer, product=self.dress).exists())

    def test_add_duplicate_item(self):
        TestDataFactory.create_wishlist_item(self.customer, self.dress)
        response = self.client.post('/api/v1/wishlist/', {'product_id': self.dress.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'success': True, 'error': 'Item already exists in wishlist.'})
        self.assertEqual(WishlistItem.objects.filter(customer=self.customer).count(), 1)

    def test_add_unknown_product(self):
        response = self.client.post('/api/v1/wishlist/', {'product_id': 999999}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_remove_item(self):
        item = TestDataFactory.create_wishlist_item(self.customer, self.dress)
        response = self.client.delete(f'/api/v1/wishlist/{item.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(WishlistItem.objects.filter(pk=item.pk).exists())

    def test_cannot_remove_other_customers_item(self):
        item = TestDataFactory.create_wishlist_item(self.other, self.dress)
        response = self.client.delete(f'/api/v1/wishlist/{item.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertTrue(WishlistItem.objects.filter(pk=item.pk).exists())
