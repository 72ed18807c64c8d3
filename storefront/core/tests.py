"""
Test suite for accounts, auth, audit logging and shared helpers
"""
from django.core import mail
from django.conf import settings
from django.core.cache import cache
from django.contrib.auth.tokens import default_token_generator
from django.test import TestCase, RequestFactory, override_settings
from django.utils.encoding import force_bytes
from django.utils.http import urlsafe_base64_encode
from rest_framework import status
from rest_framework.request import Request
from rest_framework_simplejwt.tokens import RefreshToken
from storefront.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from storefront.core.models import User, AuditLog
from storefront.core.utils import create_audit_log, get_client_ip, paginate
from storefront.core.serializers import AuditLogSerializer
from storefront.core.cache_utils import get_cached_products_list, cache_products_list, invalidate_products_cache


STRONG_PASSWORD = 'Velvet-Harbour-2931'


class UserModelTests(TestCase):
    """Test the email-keyed user model"""

    def test_create_user_normalizes_email(self):
        user = User.objects.create_user(email='Jane.Doe@Example.COM', password=STRONG_PASSWORD, name='Jane')
        self.assertEqual(user.email, 'jane.doe@example.com')
        self.assertTrue(user.check_password(STRONG_PASSWORD))
        self.assertFalse(user.is_staff)

    def test_create_user_requires_email(self):
        with self.assertRaises(ValueError):
            User.objects.create_user(email='', password=STRONG_PASSWORD)

    def test_create_superuser(self):
        user = User.objects.create_superuser(email='root@example.com', password=STRONG_PASSWORD)
        self.assertTrue(user.is_staff)
        self.assertTrue(user.is_superuser)

    def test_is_store_admin_for_staff(self):
        self.assertTrue(TestDataFactory.create_admin().is_store_admin)

    @override_settings(STORE_ADMIN_EMAILS=['owner@rashakin.com'])
    def test_is_store_admin_for_listed_email(self):
        user = TestDataFactory.create_user(email='owner@rashakin.com')
        self.assertTrue(user.is_store_admin)

    def test_regular_customer_is_not_admin(self):
        self.assertFalse(TestDataFactory.create_user().is_store_admin)

    def test_inactive_staff_is_not_admin(self):
        user = TestDataFactory.create_admin()
        user.is_active = False
        self.assertFalse(user.is_store_admin)


class SignupAPITests(TestCase):
    """Test account creation"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()

    def test_signup_success(self):
        response = self.client.post('/api/v1/auth/signup/', {
            'email': 'new.customer@example.com',
            'password': STRONG_PASSWORD,
            'name': 'New Customer',
            'phone': '07700900000',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['message'], 'User created successfully')
        self.assertEqual(response.data['user']['email'], 'new.customer@example.com')
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)
        self.assertTrue(User.objects.filter(email='new.customer@example.com').exists())

    def test_signup_missing_fields(self):
        response = self.client.post('/api/v1/auth/signup/', {'email': 'x@example.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Email, password, and name are required')

    def test_signup_duplicate_email(self):
        TestDataFactory.create_user(email='taken@example.com')
        response = self.client.post('/api/v1/auth/signup/', {
            'email': 'TAKEN@example.com',
            'password': STRONG_PASSWORD,
            'name': 'Someone',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data)

    def test_signup_weak_password(self):
        response = self.client.post('/api/v1/auth/signup/', {
            'email': 'weak@example.com',
            'password': '123',
            'name': 'Weak',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(User.objects.filter(email='weak@example.com').exists())


class AuthAPITests(TestCase):
    """Test login, refresh and profile endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.user = TestDataFactory.create_user(email='shopper@example.com', password=STRONG_PASSWORD, name='Shopper')

    def test_login_returns_tokens_and_user(self):
        response = self.client.post('/api/v1/auth/login/', {
            'email': 'shopper@example.com',
            'password': STRONG_PASSWORD,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertEqual(response.data['user']['name'], 'Shopper')
        self.assertFalse(response.data['user']['is_store_admin'])

    def test_login_wrong_password(self):
        response = self.client.post('/api/v1/auth/login/', {
            'email': 'shopper@example.com',
            'password': 'not-the-password',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_login_inactive_user(self):
        self.user.is_active = False
        self.user.save()
        response = self.client.post('/api/v1/auth/login/', {
            'email': 'shopper@example.com',
            'password': STRONG_PASSWORD,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh_token(self):
        refresh = RefreshToken.for_user(self.user)
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': str(refresh)}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

    def test_refresh_token_for_deleted_user(self):
        refresh = RefreshToken.for_user(self.user)
        self.user.delete()
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': str(refresh)}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_requires_authentication(self):
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_get(self):
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['email'], 'shopper@example.com')
        self.assertIn('is_store_admin', response.data)

    def test_me_patch_profile_and_address(self):
        self.client.authenticate_user(self.user)
        response = self.client.patch('/api/v1/auth/me/', {
            'name': 'Renamed Shopper',
            'phone': '07700900123',
            'address': {'street': '2 Market Row', 'city': 'Leeds', 'postal_code': 'LS1 6DT', 'country': 'GB'},
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertEqual(self.user.name, 'Renamed Shopper')
        self.assertEqual(self.user.address['city'], 'Leeds')
        self.assertEqual(self.user.address['state'], '')

    def test_me_cannot_change_email(self):
        self.client.authenticate_user(self.user)
        self.client.patch('/api/v1/auth/me/', {'email': 'other@example.com'}, format='json')
        self.user.refresh_from_db()
        self.assertEqual(self.user.email, 'shopper@example.com')


class PasswordResetAPITests(TestCase):
    """Test the forgot / reset password flow"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.user = TestDataFactory.create_user(email='forgetful@example.com')

    def test_forgot_password_sends_email(self):
        response = self.client.post('/api/v1/auth/forgot-password/', {'email': 'forgetful@example.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn('/reset-password?uid=', mail.outbox[0].body)

    def test_forgot_password_unknown_email_same_answer(self):
        response = self.client.post('/api/v1/auth/forgot-password/', {'email': 'nobody@example.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(mail.outbox), 0)

    def test_reset_password_success(self):
        uid = urlsafe_base64_encode(force_bytes(self.user.pk))
        token = default_token_generator.make_token(self.user)
        response = self.client.post('/api/v1/auth/reset-password/', {
            'uid': uid,
            'token': token,
            'password': STRONG_PASSWORD,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password(STRONG_PASSWORD))

    def test_reset_password_invalid_token(self):
        uid = urlsafe_base64_encode(force_bytes(self.user.pk))
        response = self.client.post('/api/v1/auth/reset-password/', {
            'uid': uid,
            'token': 'bad-token',
            'password': STRONG_PASSWORD,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Reset link is invalid or has expired')

    def test_reset_password_rejects_weak_password(self):
        uid = urlsafe_base64_encode(force_bytes(self.user.pk))
        token = default_token_generator.make_token(self.user)
        response = self.client.post('/api/v1/auth/reset-password/', {
            'uid': uid,
            'token': token,
            'password': '1234',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('password', response.data)


class AuditLogTests(TestCase):
    """Test audit log helpers and endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.admin = TestDataFactory.create_admin()
        self.customer = TestDataFactory.create_user()
        self.factory = RequestFactory()

    def test_create_audit_log_with_user(self):
        log = create_audit_log(user=self.admin, action='create', model_name='Product', object_id=5, changes={'a': 1})
        self.assertIsNotNone(log)
        self.assertEqual(log.object_id, '5')
        self.assertEqual(log.user, self.admin)

    def test_create_audit_log_skips_missing_fields(self):
        self.assertIsNone(create_audit_log(user=self.admin, action='create', model_name='Product'))
        self.assertEqual(AuditLog.objects.count(), 0)

    def test_get_client_ip_prefers_forwarded_header(self):
        request = self.factory.get('/', HTTP_X_FORWARDED_FOR='203.0.113.7, 10.0.0.1')
        self.assertEqual(get_client_ip(request), '203.0.113.7')

    def test_audit_log_list_admin_only(self):
        self.client.authenticate_user(self.customer)
        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_audit_log_list_filters(self):
        create_audit_log(user=self.admin, action='create', model_name='Product', object_id='1')
        create_audit_log(user=self.admin, action='order_status_change', model_name='Order', object_id='2')
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/audit-logs/', {'model_name': 'Order'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['action'], 'order_status_change')

    def test_audit_log_detail(self):
        log = create_audit_log(user=self.admin, action='delete', model_name='Product', object_id='9')
        self.client.authenticate_user(self.admin)
        response = self.client.get(f'/api/v1/audit-logs/{log.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user_email'], self.admin.email)


class PaginateTests(TestCase):
    """Test the shared paginate helper"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        for i in range(5):
            create_audit_log(user=self.admin, action='create', model_name='Product', object_id=str(i))
        self.factory = RequestFactory()

    def _paginate(self, params, default_limit=2):
        request = Request(self.factory.get('/', params))
        return paginate(AuditLog.objects.order_by('id'), request, AuditLogSerializer, default_limit=default_limit)

    def test_first_page(self):
        data = self._paginate({})
        self.assertEqual(data['count'], 5)
        self.assertEqual(data['total_pages'], 3)
        self.assertEqual(len(data['results']), 2)
        self.assertEqual(data['next'], 2)
        self.assertIsNone(data['previous'])

    def test_last_page(self):
        data = self._paginate({'page': 3})
        self.assertEqual(len(data['results']), 1)
        self.assertIsNone(data['next'])
        self.assertEqual(data['previous'], 2)

    def test_invalid_values_fall_back_to_defaults(self):
        data = self._paginate({'page': 'abc', 'limit': '-4'})
        self.assertEqual(data['page'], 1)
        self.assertEqual(data['page_size'], 2)

    def test_page_past_end_is_empty(self):
        data = self._paginate({'page': 10})
        self.assertEqual(data['results'], [])

    def test_limit_is_capped(self):
        data = self._paginate({'limit': 1000})
        self.assertEqual(data['page_size'], 100)


class ProductsCacheTests(TestCase):
    """Test the generation-based product list cache"""

    def setUp(self):
        cache.clear()

    def test_cache_round_trip_and_invalidation(self):
        data, key = get_cached_products_list({'category': 'dresses'})
        self.assertIsNone(data)
        cache_products_list(key, {'results': []})
        cached, same_key = get_cached_products_list({'category': 'dresses'})
        self.assertEqual(cached, {'results': []})
        self.assertEqual(key, same_key)

        invalidate_products_cache()
        cached, new_key = get_cached_products_list({'category': 'dresses'})
        self.assertIsNone(cached)
        self.assertNotEqual(key, new_key)

    def test_filter_named_prefix_builds_key(self):
        data, key = get_cached_products_list({'prefix': 'x', '_scope': ''})
        self.assertIsNone(data)
        self.assertTrue(key.startswith('products_list:'))


class LoggingSettingsTests(TestCase):
    """Test the logging configuration"""

    def test_storefront_logger_follows_django_log_level(self):
        loggers = settings.LOGGING['loggers']
        self.assertIn('storefront', loggers)
        self.assertEqual(loggers['storefront']['level'], loggers['django']['level'])
