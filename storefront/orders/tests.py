"""
Test suite for Orders: customer history scoping and admin status management
"""
from datetime import timedelta
from decimal import Decimal
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from storefront.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from storefront.core.models import AuditLog
from storefront.orders.models import Order


class OrderModelTests(TestCase):
    """Test order and order item helpers"""

    def test_order_str(self):
        order = TestDataFactory.create_order()
        self.assertEqual(str(order), f"Order #{order.id}")

    def test_order_item_line_total(self):
        order = TestDataFactory.create_order()
        item = TestDataFactory.create_order_item(order, price=Decimal('19.99'), quantity=3)
        self.assertEqual(item.line_total, Decimal('59.97'))

    def test_order_item_survives_product_delete(self):
        product = TestDataFactory.create_product(name='Silk Dress')
        order = TestDataFactory.create_order()
        item = TestDataFactory.create_order_item(order, product=product)
        product.delete()
        item.refresh_from_db()
        self.assertIsNone(item.product)
        self.assertEqual(item.product_name, 'Silk Dress')


class CustomerOrderAPITests(TestCase):
    """Test that customers see only their own orders"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.customer = TestDataFactory.create_user()
        self.other = TestDataFactory.create_user()
        self.product = TestDataFactory.create_product()
        self.first = TestDataFactory.create_order(customer=self.customer)
        self.second = TestDataFactory.create_order(customer=self.customer)
        TestDataFactory.create_order_item(self.second, product=self.product, quantity=2)
        self.foreign = TestDataFactory.create_order(customer=self.other)
        self.client.authenticate_user(self.customer)

    def test_requires_authentication(self):
        self.client.logout()
        response = self.client.get('/api/v1/orders/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_list_own_orders_newest_first(self):
        response = self.client.get('/api/v1/orders/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        self.assertEqual([order['id'] for order in response.data['results']], [self.second.id, self.first.id])

    def test_detail_includes_items(self):
        response = self.client.get(f'/api/v1/orders/{self.second.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['items']), 1)
        self.assertEqual(response.data['items'][0]['quantity'], 2)
        self.assertEqual(response.data['shipping_address']['city'], 'London')

    def test_other_customers_order_not_found(self):
        response = self.client.get(f'/api/v1/orders/{self.foreign.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_customer_cannot_use_admin_endpoints(self):
        response = self.client.get('/api/v1/admin/orders/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class AdminOrderAPITests(TestCase):
    """Test back-office order listing and status updates"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.admin = TestDataFactory.create_admin()
        self.client.authenticate_user(self.admin)
        self.pending = TestDataFactory.create_order(
            status='Pending', payment_status='Paid',
            customer_email='ada@example.com', customer_name='Ada Lovelace'
        )
        self.shipped = TestDataFactory.create_order(
            status='Shipped', payment_status='Paid',
            customer_email='grace@example.com', customer_name='Grace Hopper'
        )
        self.failed = TestDataFactory.create_order(
            status='Cancelled', payment_status='Failed',
            customer_email='alan@example.com', customer_name='Alan Turing'
        )

    def _ids(self, response):
        return {order['id'] for order in response.data['results']}

    def test_list_all_orders(self):
        response = self.client.get('/api/v1/admin/orders/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 3)
        self.assertEqual(response.data['results'][0]['id'], self.failed.id)

    def test_filter_by_status(self):
        response = self.client.get('/api/v1/admin/orders/', {'status': 'Shipped'})
        self.assertEqual(self._ids(response), {self.shipped.id})

    def test_filter_by_payment_status(self):
        response = self.client.get('/api/v1/admin/orders/', {'payment_status': 'Failed'})
        self.assertEqual(self._ids(response), {self.failed.id})

    def test_filter_rejects_unknown_status(self):
        response = self.client.get('/api/v1/admin/orders/', {'status': 'Lost'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_filter_from_date(self):
        Order.objects.filter(pk=self.pending.pk).update(created_at=timezone.now() - timedelta(days=10))
        from_date = (timezone.now() - timedelta(days=2)).date().isoformat()
        response = self.client.get('/api/v1/admin/orders/', {'from_date': from_date})
        self.assertEqual(self._ids(response), {self.shipped.id, self.failed.id})

    def test_search_by_numeric_id(self):
        response = self.client.get('/api/v1/admin/orders/', {'search': str(self.shipped.id)})
        self.assertEqual(self._ids(response), {self.shipped.id})

    def test_search_by_customer_name_or_email(self):
        by_name = self.client.get('/api/v1/admin/orders/', {'search': 'lovelace'})
        by_email = self.client.get('/api/v1/admin/orders/', {'search': 'GRACE@'})
        self.assertEqual(self._ids(by_name), {self.pending.id})
        self.assertEqual(self._ids(by_email), {self.shipped.id})

    def test_update_status_writes_audit_log(self):
        response = self.client.patch(f'/api/v1/admin/orders/{self.pending.id}/', {'status': 'Processing'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'Processing')
        log = AuditLog.objects.get(action='order_status_change')
        self.assertEqual(log.changes['status'], {'old': 'Pending', 'new': 'Processing'})
        self.assertEqual(log.user, self.admin)

    def test_update_payment_status(self):
        response = self.client.patch(f'/api/v1/admin/orders/{self.pending.id}/', {'payment_status': 'Refunded'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.pending.refresh_from_db()
        self.assertEqual(self.pending.payment_status, 'Refunded')
        self.assertTrue(AuditLog.objects.filter(action='payment_status_change').exists())

    def test_update_rejects_invalid_status(self):
        response = self.client.patch(f'/api/v1/admin/orders/{self.pending.id}/', {'status': 'Lost'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_other_fields_are_read_only(self):
        self.client.patch(f'/api/v1/admin/orders/{self.pending.id}/', {'total_amount': '1.00'}, format='json')
        self.pending.refresh_from_db()
        self.assertEqual(self.pending.total_amount, Decimal('55.00'))

    def test_unchanged_status_writes_no_audit_log(self):
        self.client.patch(f'/api/v1/admin/orders/{self.pending.id}/', {'status': 'Pending'}, format='json')
        self.assertFalse(AuditLog.objects.exists())
