"""
Management command to add demo categories and fashion products
Usage: python manage.py seed_catalog [--clear]
"""
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction

from storefront.catalog.models import Category, Product, ProductImage
from storefront.catalog.utils import generate_unique_slug
from storefront.core.cache_signals import suspend_cache_signals
from storefront.core.cache_utils import invalidate_products_cache


CATEGORIES = [
    ('Dresses', 'Occasion and everyday dresses'),
    ('Tops', 'Blouses, shirts and knitwear'),
    ('Outerwear', 'Coats and jackets'),
    ('Accessories', 'Scarves, bags and jewellery'),
]

PRODUCTS = [
    {
        'name': 'Silk Wrap Dress',
        'category': 'Dresses',
        'price': '129.00',
        'sizes': ['XS', 'S', 'M', 'L'],
        'colors': ['Black', 'Emerald'],
        'tags': ['new', 'silk'],
        'stock_quantity': 25,
        'image': 'https://images.unsplash.com/photo-1595777457583-95e059d581b8',
    },
    {
        'name': 'Linen Midi Dress',
        'category': 'Dresses',
        'price': '89.00',
        'sizes': ['S', 'M', 'L'],
        'colors': ['Ivory', 'Sand'],
        'tags': ['summer'],
        'stock_quantity': 40,
        'image': 'https://images.unsplash.com/photo-1572804013309-59a88b7e92f1',
    },
    {
        'name': 'Cashmere Crew Jumper',
        'category': 'Tops',
        'price': '149.00',
        'sizes': ['S', 'M', 'L', 'XL'],
        'colors': ['Camel', 'Grey'],
        'tags': ['bestseller'],
        'stock_quantity': 8,
        'image': 'https://images.unsplash.com/photo-1434389677669-e08b4cac3105',
    },
    {
        'name': 'Poplin Shirt',
        'category': 'Tops',
        'price': '59.00',
        'sizes': ['XS', 'S', 'M', 'L'],
        'colors': ['White', 'Blue'],
        'tags': [],
        'stock_quantity': 60,
        'image': 'https://images.unsplash.com/photo-1598554747436-c9293d6a588f',
    },
    {
        'name': 'Wool Tailored Coat',
        'category': 'Outerwear',
        'price': '249.00',
        'sizes': ['S', 'M', 'L'],
        'colors': ['Navy', 'Camel'],
        'tags': ['new'],
        'stock_quantity': 12,
        'image': 'https://images.unsplash.com/photo-1539533018447-63fcce2678e3',
    },
    {
        'name': 'Printed Silk Scarf',
        'category': 'Accessories',
        'price': '45.00',
        'sizes': [],
        'colors': ['Rose', 'Indigo'],
        'tags': ['gift'],
        'stock_quantity': 0,
        'image': 'https://images.unsplash.com/photo-1601924994987-69e26d50dc26',
    },
]


class Command(BaseCommand):
    help = "Adds demo categories and products to the catalog"

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Delete all existing products and categories first',
        )

    def handle(self, *args, **options):
        with suspend_cache_signals(), transaction.atomic():
            if options['clear']:
                self.stdout.write(self.style.WARNING("Clearing existing catalog..."))
                Product.objects.all().delete()
                Category.objects.all().delete()

            categories = {}
            for name, description in CATEGORIES:
                category = Category.objects.filter(name__iexact=name).first()
                if category is None:
                    category = Category.objects.create(
                        name=name,
                        slug=generate_unique_slug(Category, name),
                        description=description,
                    )
                    self.stdout.write(f"  + category {name}")
                categories[name] = category

            created_count = 0
            skipped_count = 0
            for data in PRODUCTS:
                if Product.objects.filter(name__iexact=data['name']).exists():
                    skipped_count += 1
                    continue
                product = Product.objects.create(
                    name=data['name'],
                    slug=generate_unique_slug(Product, data['name']),
                    description=f"{data['name']} from the Rashakin collection.",
                    price=Decimal(data['price']),
                    sizes=data['sizes'],
                    colors=data['colors'],
                    tags=data['tags'],
                    stock_quantity=data['stock_quantity'],
                    category=categories[data['category']],
                )
                ProductImage.objects.create(product=product, url=data['image'], position=1)
                created_count += 1

        invalidate_products_cache()
        self.stdout.write(self.style.SUCCESS(
            f"Seeded catalog: {created_count} product(s) created, {skipped_count} already present"
        ))
