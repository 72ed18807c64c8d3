"""
Test suite for the catalog: storefront browsing and admin product management
"""
import shutil
from io import StringIO
import tempfile
from decimal import Decimal

from django.core.cache import cache
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import call_command
from django.test import TestCase, override_settings
from rest_framework import status
from storefront.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from storefront.core.models import AuditLog
from storefront.catalog.models import Category, Product, ProductImage
from storefront.catalog.utils import generate_unique_slug, normalize_option_list, product_image_upload_to


class CatalogUtilsTests(TestCase):
    """Test slug, option list and upload path helpers"""

    def test_generate_unique_slug(self):
        TestDataFactory.create_product(name='Silk Dress')
        self.assertEqual(generate_unique_slug(Product, 'Silk Dress'), 'silk-dress-2')
        self.assertEqual(generate_unique_slug(Product, 'Wool Coat'), 'wool-coat')

    def test_generate_unique_slug_ignores_own_instance(self):
        product = TestDataFactory.create_product(name='Silk Dress')
        self.assertEqual(generate_unique_slug(Product, 'Silk Dress', instance_pk=product.pk), 'silk-dress')

    def test_normalize_option_list(self):
        self.assertEqual(normalize_option_list([' S', 'M ', '', 'S', 'L']), ['S', 'M', 'L'])
        self.assertEqual(normalize_option_list('Black, Ivory,,Black'), ['Black', 'Ivory'])
        self.assertEqual(normalize_option_list(None), [])

    def test_product_image_upload_to(self):
        path = product_image_upload_to(None, 'Photo.JPEG')
        self.assertTrue(path.startswith('product-images/'))
        self.assertTrue(path.endswith('.jpeg'))

    def test_has_option(self):
        product = TestDataFactory.create_product(sizes=['S', 'M'], colors=[])
        self.assertTrue(product.has_option(product.sizes, 'S'))
        self.assertFalse(product.has_option(product.sizes, 'XL'))
        self.assertTrue(product.has_option(product.colors, ''))


class StorefrontProductAPITests(TestCase):
    """Test public product browsing"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.dresses = TestDataFactory.create_category(name='Dresses')
        self.tops = TestDataFactory.create_category(name='Tops')
        self.silk = TestDataFactory.create_product(
            name='Silk Dress', price=Decimal('120.00'), category=self.dresses,
            sizes=['S', 'M'], colors=['Black'], tags=['new'], image_url='https://cdn.example.com/silk.jpg'
        )
        self.linen = TestDataFactory.create_product(
            name='Linen Dress', price=Decimal('80.00'), category=self.dresses,
            sizes=['M', 'L'], colors=['Ivory'], stock_quantity=0
        )
        self.shirt = TestDataFactory.create_product(
            name='Poplin Shirt', price=Decimal('40.00'), category=self.tops,
            sizes=['S'], colors=['White', 'Black']
        )
        self.hidden = TestDataFactory.create_product(name='Hidden Dress', category=self.dresses, is_active=False)

    def _names(self, response):
        return {item['name'] for item in response.data['results']}

    def test_list_only_active_products(self):
        response = self.client.get('/api/v1/products/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 3)
        self.assertNotIn('Hidden Dress', self._names(response))
        self.assertEqual(response.data['page_size'], 12)

    def test_list_is_cached(self):
        first = self.client.get('/api/v1/products/', {'category': 'dresses'})
        second = self.client.get('/api/v1/products/', {'category': 'dresses'})
        self.assertEqual(first['X-Cache'], 'MISS')
        self.assertEqual(second['X-Cache'], 'HIT')
        self.assertEqual(first.data, second.data)

    def test_cache_invalidated_on_product_change(self):
        self.client.get('/api/v1/products/')
        TestDataFactory.create_product(name='Fresh Arrival')
        response = self.client.get('/api/v1/products/')
        self.assertEqual(response['X-Cache'], 'MISS')
        self.assertIn('Fresh Arrival', self._names(response))

    def test_filter_by_category_slug_or_name(self):
        by_slug = self.client.get('/api/v1/products/', {'category': 'dresses'})
        by_name = self.client.get('/api/v1/products/', {'category': 'TOPS'})
        self.assertEqual(self._names(by_slug), {'Silk Dress', 'Linen Dress'})
        self.assertEqual(self._names(by_name), {'Poplin Shirt'})

    def test_filter_by_search(self):
        response = self.client.get('/api/v1/products/', {'search': 'silk'})
        self.assertEqual(self._names(response), {'Silk Dress'})

    def test_filter_by_price_range(self):
        response = self.client.get('/api/v1/products/', {'min_price': '50', 'max_price': '100'})
        self.assertEqual(self._names(response), {'Linen Dress'})

    def test_filter_by_size_color_and_tag(self):
        self.assertEqual(self._names(self.client.get('/api/v1/products/', {'size': 'L'})), {'Linen Dress'})
        self.assertEqual(
            self._names(self.client.get('/api/v1/products/', {'color': 'Black'})),
            {'Silk Dress', 'Poplin Shirt'}
        )
        self.assertEqual(self._names(self.client.get('/api/v1/products/', {'tag': 'new'})), {'Silk Dress'})

    def test_filter_in_stock(self):
        response = self.client.get('/api/v1/products/', {'in_stock': 'true'})
        self.assertNotIn('Linen Dress', self._names(response))

    def test_filter_in_stock_accepts_numeric_flag(self):
        in_stock = self.client.get('/api/v1/products/', {'in_stock': '1'})
        sold_out = self.client.get('/api/v1/products/', {'in_stock': '0'})
        self.assertEqual(self._names(in_stock), {'Silk Dress', 'Poplin Shirt'})
        self.assertEqual(self._names(sold_out), {'Linen Dress'})

    def test_query_param_named_prefix_is_cached(self):
        first = self.client.get('/api/v1/products/', {'prefix': 'x'})
        second = self.client.get('/api/v1/products/', {'prefix': 'x'})
        self.assertEqual(first['X-Cache'], 'MISS')
        self.assertEqual(second['X-Cache'], 'HIT')

    def test_sort_by_price_ascending(self):
        response = self.client.get('/api/v1/products/', {'sort_by': 'price', 'sort_order': 'asc'})
        prices = [Decimal(item['price']) for item in response.data['results']]
        self.assertEqual(prices, sorted(prices))

    def test_unknown_sort_falls_back_to_newest(self):
        response = self.client.get('/api/v1/products/', {'sort_by': 'stock_quantity'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['results'][0]['name'], 'Poplin Shirt')

    def test_pagination(self):
        response = self.client.get('/api/v1/products/', {'limit': 2, 'page': 2})
        self.assertEqual(len(response.data['results']), 1)
        self.assertEqual(response.data['total_pages'], 2)
        self.assertEqual(response.data['previous'], 1)

    def test_product_payload(self):
        response = self.client.get('/api/v1/products/', {'search': 'silk'})
        product = response.data['results'][0]
        self.assertEqual(product['images'], ['https://cdn.example.com/silk.jpg'])
        self.assertEqual(product['category']['slug'], 'dresses')
        self.assertTrue(product['in_stock'])

    def test_product_detail_with_related(self):
        response = self.client.get(f'/api/v1/products/{self.silk.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['product']['name'], 'Silk Dress')
        related = [item['name'] for item in response.data['related_products']]
        self.assertEqual(related, ['Linen Dress'])

    def test_related_products_limited_to_four(self):
        for i in range(6):
            TestDataFactory.create_product(name=f'Extra Dress {i}', category=self.dresses)
        response = self.client.get(f'/api/v1/products/{self.silk.id}/')
        self.assertEqual(len(response.data['related_products']), 4)

    def test_inactive_product_detail_not_found(self):
        response = self.client.get(f'/api/v1/products/{self.hidden.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_new_arrivals(self):
        response = self.client.get('/api/v1/products/new-arrivals/', {'limit': 2})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([item['name'] for item in response.data], ['Poplin Shirt', 'Linen Dress'])

    def test_category_list_counts_active_products(self):
        TestDataFactory.create_category(name='Archived', is_active=False)
        response = self.client.get('/api/v1/categories/')
        counts = {item['name']: item['product_count'] for item in response.data}
        self.assertEqual(counts, {'Dresses': 2, 'Tops': 1})

    def test_category_products(self):
        response = self.client.get('/api/v1/categories/tops/products/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self._names(response), {'Poplin Shirt'})

    def test_unknown_category_products_not_found(self):
        response = self.client.get('/api/v1/categories/nope/products/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class AdminProductAPITests(TestCase):
    """Test back-office product management"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.admin = TestDataFactory.create_admin()
        self.customer = TestDataFactory.create_user()
        self.category = TestDataFactory.create_category(name='Outerwear')
        self.client.authenticate_user(self.admin)

    def test_customer_forbidden(self):
        self.client.authenticate_user(self.customer)
        response = self.client.get('/api/v1/admin/products/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_anonymous_unauthorized(self):
        self.client.logout()
        response = self.client.get('/api/v1/admin/products/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_create_product(self):
        response = self.client.post('/api/v1/admin/products/', {
            'name': 'Wool Coat',
            'description': 'Warm',
            'price': '199.00',
            'sizes': [' S', 'M', 'M', ''],
            'colors': ['Navy'],
            'stock_quantity': 5,
            'category_id': self.category.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['slug'], 'wool-coat')
        self.assertEqual(response.data['sizes'], ['S', 'M'])
        self.assertEqual(response.data['category']['name'], 'Outerwear')
        self.assertTrue(AuditLog.objects.filter(action='create', model_name='Product').exists())

    def test_create_product_duplicate_name_gets_unique_slug(self):
        TestDataFactory.create_product(name='Wool Coat')
        response = self.client.post('/api/v1/admin/products/', {'name': 'Wool Coat', 'price': '10.00'}, format='json')
        self.assertEqual(response.data['slug'], 'wool-coat-2')

    def test_create_product_requires_name(self):
        response = self.client.post('/api/v1/admin/products/', {'name': '  ', 'price': '10.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Product name is required', str(response.data['name']))

    def test_create_product_requires_positive_price(self):
        response = self.client.post('/api/v1/admin/products/', {'name': 'Free Coat', 'price': '0'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Price must be greater than 0', str(response.data['price']))

    def test_admin_list_includes_inactive(self):
        TestDataFactory.create_product(name='Draft Coat', is_active=False)
        response = self.client.get('/api/v1/admin/products/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['page_size'], 10)

    def test_admin_list_low_stock(self):
        TestDataFactory.create_product(name='Plenty', stock_quantity=50)
        TestDataFactory.create_product(name='Few', stock_quantity=3)
        TestDataFactory.create_product(name='None Left', stock_quantity=0)
        response = self.client.get('/api/v1/admin/products/', {'low_stock': 'true'})
        self.assertEqual([item['name'] for item in response.data['results']], ['None Left', 'Few'])

    def test_admin_list_low_stock_accepts_numeric_flag(self):
        TestDataFactory.create_product(name='Plenty', stock_quantity=50)
        TestDataFactory.create_product(name='Few', stock_quantity=3)
        response = self.client.get('/api/v1/admin/products/', {'low_stock': '1'})
        self.assertEqual([item['name'] for item in response.data['results']], ['Few'])

    def test_update_product_writes_audit_changes(self):
        product = TestDataFactory.create_product(name='Wool Coat', price=Decimal('100.00'))
        response = self.client.patch(f'/api/v1/admin/products/{product.id}/', {'price': '120.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        log = AuditLog.objects.get(action='update', object_id=str(product.id))
        self.assertEqual(log.changes['price'], {'old': '100.00', 'new': '120.00'})

    def test_update_product_rejects_zero_price(self):
        product = TestDataFactory.create_product()
        response = self.client.patch(f'/api/v1/admin/products/{product.id}/', {'price': '0.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_product(self):
        product = TestDataFactory.create_product()
        response = self.client.delete(f'/api/v1/admin/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Product.objects.filter(pk=product.pk).exists())
        self.assertTrue(AuditLog.objects.filter(action='delete', object_id=str(product.id)).exists())


class AdminProductImageAPITests(TestCase):
    """Test product image upload and removal"""

    def setUp(self):
        self.media_root = tempfile.mkdtemp()
        self.settings_override = override_settings(MEDIA_ROOT=self.media_root)
        self.settings_override.enable()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_admin())
        self.product = TestDataFactory.create_product(image_url='https://cdn.example.com/first.jpg')

    def tearDown(self):
        self.settings_override.disable()
        shutil.rmtree(self.media_root, ignore_errors=True)

    def _upload(self, *names):
        files = [SimpleUploadedFile(name, b'fake-image-bytes', content_type='image/png') for name in names]
        return self.client.post(
            f'/api/v1/admin/products/{self.product.id}/images/',
            {'images': files},
            format='multipart'
        )

    def test_upload_appends_after_existing(self):
        response = self._upload('front.png', 'back.webp')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        positions = list(self.product.images.order_by('position').values_list('position', flat=True))
        self.assertEqual(positions, [1, 2, 3])
        self.assertEqual(len(response.data['images']), 3)
        self.assertEqual(response.data['images'][0]['url'], 'https://cdn.example.com/first.jpg')
        self.assertTrue(AuditLog.objects.filter(action='image_upload').exists())

    def test_upload_rejects_unsupported_extension(self):
        response = self._upload('notes.pdf')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self.product.images.count(), 1)

    def test_upload_requires_files(self):
        response = self.client.post(f'/api/v1/admin/products/{self.product.id}/images/', {}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_image(self):
        self._upload('front.png')
        image = self.product.images.exclude(image='').get()
        response = self.client.delete(f'/api/v1/admin/products/{self.product.id}/images/{image.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(ProductImage.objects.filter(pk=image.pk).exists())

    def test_delete_image_of_other_product_not_found(self):
        other = TestDataFactory.create_product(image_url='https://cdn.example.com/other.jpg')
        image = other.images.get()
        response = self.client.delete(f'/api/v1/admin/products/{self.product.id}/images/{image.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class AdminCategoryAPITests(TestCase):
    """Test back-office category management"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_admin())

    def test_create_category_generates_slug(self):
        response = self.client.post('/api/v1/admin/categories/', {'name': 'Knitwear'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['slug'], 'knitwear')

    def test_admin_category_list_includes_inactive(self):
        TestDataFactory.create_category(name='Archived', is_active=False)
        response = self.client.get('/api/v1/admin/categories/')
        self.assertEqual([item['name'] for item in response.data], ['Archived'])

    def test_update_and_delete_category(self):
        category = TestDataFactory.create_category(name='Knitwear')
        product = TestDataFactory.create_product(category=category)
        response = self.client.patch(f'/api/v1/admin/categories/{category.id}/', {'is_active': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_active'])

        response = self.client.delete(f'/api/v1/admin/categories/{category.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        product.refresh_from_db()
        self.assertIsNone(product.category)


class SeedCatalogCommandTests(TestCase):
    """Test the seed_catalog management command"""

    def test_seed_is_idempotent(self):
        call_command('seed_catalog', stdout=StringIO())
        first_count = Product.objects.count()
        call_command('seed_catalog', stdout=StringIO())
        self.assertGreater(first_count, 0)
        self.assertEqual(Product.objects.count(), first_count)
        self.assertTrue(Category.objects.filter(slug='dresses').exists())
