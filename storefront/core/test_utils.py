"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from storefront.catalog.models import Category, Product, ProductImage
from storefront.cart.models import Cart, CartItem
from storefront.orders.models import Order, OrderItem
from storefront.wishlist.models import WishlistItem
from storefront.catalog.utils import generate_unique_slug
from decimal import Decimal
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(email=None, password='testpass123', name=None, is_staff=False, is_superuser=False):
        """Create a test customer"""
        if not email:
            email = f'testuser_{TestDataFactory.random_string(6).lower()}@test.com'
        return User.objects.create_user(
            email=email,
            password=password,
            name=name or 'Test Customer',
            is_staff=is_staff,
            is_superuser=is_superuser
        )

    @staticmethod
    def create_admin(email=None, password='testpass123'):
        """Create a back-office (staff) user"""
        return TestDataFactory.create_user(email=email, password=password, name='Store Admin', is_staff=True)

    @staticmethod
    def create_category(name=None, description=None, is_active=True):
        """Create a test category"""
        if not name:
            name = f'Category {TestDataFactory.random_string(6)}'
        return Category.objects.create(
            name=name,
            slug=generate_unique_slug(Category, name),
            description=description or f'Test category {name}',
            is_active=is_active
        )

    @staticmethod
    def create_product(name=None, price=None, category=None, stock_quantity=20, sizes=None, colors=None,
                       tags=None, is_active=True, image_url=None):
        """Create a test product"""
        if not name:
            name = f'Product {TestDataFactory.random_string(6)}'
        if price is None:
            price = Decimal('50.00')
        product = Product.objects.create(
            name=name,
            slug=generate_unique_slug(Product, name),
            description=f'Test product {name}',
            price=price,
            category=category,
            stock_quantity=stock_quantity,
            sizes=sizes if sizes is not None else ['S', 'M', 'L'],
            colors=colors if colors is not None else ['Black', 'White'],
            tags=tags or [],
            is_active=is_active
        )
        if image_url:
            ProductImage.objects.create(product=product, url=image_url, position=1)
        return product

    @staticmethod
    def create_cart(user=None):
        """Create a test cart (anonymous when no user is given)"""
        return Cart.objects.create(user=user)

    @staticmethod
    def create_cart_item(cart, product, quantity=1, size='', color=''):
        """Create a test cart line"""
        return CartItem.objects.create(
            cart=cart,
            product=product,
            quantity=quantity,
            size=size,
            color=color,
            unit_price=product.price
        )

    @staticmethod
    def create_order(customer=None, status='Pending', payment_status='Paid', total_amount=None,
                     stripe_session_id=None, customer_email=None, customer_name=None):
        """Create a test order"""
        if total_amount is None:
            total_amount = Decimal('55.00')
        address = {
            'street': '1 Test Street',
            'city': 'London',
            'state': '',
            'postal_code': 'E1 6AN',
            'country': 'GB',
        }
        return Order.objects.create(
            customer=customer,
            customer_name=customer_name or (customer.name if customer else 'Guest Customer'),
            customer_email=customer_email or (customer.email if customer else 'guest@test.com'),
            status=status,
            payment_status=payment_status,
            subtotal_amount=total_amount - Decimal('5.00'),
            shipping_amount=Decimal('5.00'),
            total_amount=total_amount,
            shipping_address=address,
            billing_address=dict(address),
            stripe_session_id=stripe_session_id
        )

    @staticmethod
    def create_order_item(order, product=None, quantity=1, price=None, size='M', color='Black'):
        """Create a test order line"""
        if price is None:
            price = product.price if product else Decimal('50.00')
        return OrderItem.objects.create(
            order=order,
            product=product,
            product_name=product.name if product else 'Archived product',
            price=price,
            quantity=quantity,
            size=size,
            color=color
        )

    @staticmethod
    def create_wishlist_item(customer, product):
        """Create a test wishlist entry"""
        return WishlistItem.objects.create(customer=customer, product=product)


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
