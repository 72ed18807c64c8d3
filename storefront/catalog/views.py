import logging
import os

from django.conf import settings
from django.db.models import Count, Q, Max
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from storefront.core.cache_utils import get_cached_products_list, cache_products_list
from storefront.core.permissions import IsStoreAdmin
from storefront.core.utils import create_audit_log, paginate, parse_positive_int
from .filters import ProductFilter
from .models import Category, Product, ProductImage
from .serializers import (
    CategorySerializer, ProductSerializer, ProductSummarySerializer, AdminProductSerializer,
)
from .utils import generate_unique_slug

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = ('created_at', 'price', 'name')
STOREFRONT_PAGE_SIZE = 12
ADMIN_PAGE_SIZE = 10
RELATED_PRODUCTS_LIMIT = 4


def storefront_products():
    return Product.objects.filter(is_active=True).select_related('category').prefetch_related('images')


def apply_sorting(queryset, request):
    """sort_by in SORTABLE_FIELDS with sort_order asc|desc; anything else falls back to newest first"""
    sort_by = request.query_params.get('sort_by', 'created_at')
    sort_order = request.query_params.get('sort_order', 'desc')
    if sort_by not in SORTABLE_FIELDS:
        sort_by, sort_order = 'created_at', 'desc'
    prefix = '' if sort_order == 'asc' else '-'
    return queryset.order_by(f'{prefix}{sort_by}', f'{prefix}id')


def _cached_product_listing(request, queryset, scope=''):
    """Filter, sort and paginate a storefront listing, caching the page per query string"""
    filters_dict = {key: value for key, value in request.query_params.items()}
    filters_dict['_scope'] = scope

    cache_key = None
    try:
        cached_data, cache_key = get_cached_products_list(filters_dict)
        if cached_data is not None:
            logger.info(f"Products list cache HIT ({scope or 'all'})")
            response = Response(cached_data)
            response['X-Cache'] = 'HIT'
            return response
        logger.info(f"Products list cache MISS ({scope or 'all'})")
    except Exception as e:
        logger.warning(f"Cache unavailable, proceeding without cache: {e}")

    filterset = ProductFilter(request.query_params, queryset=queryset)
    if not filterset.is_valid():
        return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
    queryset = apply_sorting(filterset.qs, request)

    response_data = paginate(queryset, request, ProductSerializer, default_limit=STOREFRONT_PAGE_SIZE)

    if cache_key:
        try:
            cache_products_list(cache_key, response_data)
        except Exception as e:
            logger.warning(f"Unable to cache response: {e}")

    response = Response(response_data)
    response['X-Cache'] = 'MISS'
    return response


# Storefront views
@api_view(['GET'])
@permission_classes([AllowAny])
def product_list(request):
    """Browse active products with filters, sorting and pagination"""
    return _cached_product_listing(request, storefront_products())


@api_view(['GET'])
@permission_classes([AllowAny])
def product_detail(request, pk):
    """A single active product plus up to four related products from the same category"""
    product = get_object_or_404(storefront_products(), pk=pk)

    related = Product.objects.none()
    if product.category_id:
        related = storefront_products().filter(
            category_id=product.category_id
        ).exclude(pk=product.pk).order_by('-created_at')[:RELATED_PRODUCTS_LIMIT]

    return Response({
        'product': ProductSerializer(product).data,
        'related_products': ProductSummarySerializer(related, many=True).data,
    })


@api_view(['GET'])
@permission_classes([AllowAny])
def new_arrivals(request):
    """Newest active products"""
    limit = min(parse_positive_int(request.query_params.get('limit'), 4), 50)
    products = storefront_products().order_by('-created_at', '-id')[:limit]
    return Response(ProductSerializer(products, many=True).data)


@api_view(['GET'])
@permission_classes([AllowAny])
def category_list(request):
    """Active categories with their active product counts"""
    categories = Category.objects.filter(is_active=True).annotate(
        product_count=Count('products', filter=Q(products__is_active=True))
    ).order_by('name')
    return Response(CategorySerializer(categories, many=True).data)


@api_view(['GET'])
@permission_classes([AllowAny])
def category_products(request, slug):
    """Product listing scoped to one active category"""
    category = get_object_or_404(Category, slug=slug, is_active=True)
    return _cached_product_listing(
        request,
        storefront_products().filter(category=category),
        scope=f'category:{category.slug}'
    )


# Admin product views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStoreAdmin])
def admin_product_list_create(request):
    """List all products (including inactive) or create a new product"""
    if request.method == 'GET':
        queryset = Product.objects.select_related('category').prefetch_related('images')
        filterset = ProductFilter(request.query_params, queryset=queryset)
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        low_stock = filterset.form.cleaned_data.get('low_stock')
        ordering = ('stock_quantity', 'id') if low_stock else ('id',)
        queryset = filterset.qs.order_by(*ordering)
        return Response(paginate(queryset, request, AdminProductSerializer, default_limit=ADMIN_PAGE_SIZE))

    serializer = AdminProductSerializer(data=request.data)
    if serializer.is_valid():
        slug = generate_unique_slug(Product, serializer.validated_data['name'])
        product = serializer.save(slug=slug)

        create_audit_log(
            request=request,
            action='create',
            model_name='Product',
            object_id=str(product.id),
            object_name=product.name,
            changes={
                'name': product.name,
                'price': str(product.price),
                'stock_quantity': product.stock_quantity,
                'category': product.category.name if product.category else None,
            }
        )
        return Response(AdminProductSerializer(product).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsStoreAdmin])
def admin_product_detail(request, pk):
    """Retrieve, update or delete a product"""
    product = get_object_or_404(Product.objects.prefetch_related('images'), pk=pk)

    if request.method == 'GET':
        return Response(AdminProductSerializer(product).data)

    if request.method == 'DELETE':
        product_id, product_name = product.id, product.name
        product.delete()
        create_audit_log(
            request=request,
            action='delete',
            model_name='Product',
            object_id=str(product_id),
            object_name=product_name,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)

    before = {
        'name': product.name,
        'price': str(product.price),
        'stock_quantity': product.stock_quantity,
        'is_active': product.is_active,
    }
    serializer = AdminProductSerializer(product, data=request.data, partial=request.method == 'PATCH')
    if serializer.is_valid():
        product = serializer.save()
        after = {
            'name': product.name,
            'price': str(product.price),
            'stock_quantity': product.stock_quantity,
            'is_active': product.is_active,
        }
        changes = {key: {'old': before[key], 'new': after[key]} for key in after if before[key] != after[key]}
        create_audit_log(
            request=request,
            action='update',
            model_name='Product',
            object_id=str(product.id),
            object_name=product.name,
            changes=changes,
        )
        return Response(AdminProductSerializer(product).data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStoreAdmin])
def admin_product_images(request, pk):
    """Upload one or more images (multipart field 'images'), appended after existing ones"""
    product = get_object_or_404(Product, pk=pk)
    files = request.FILES.getlist('images')
    if not files:
        return Response({'error': 'No images provided'}, status=status.HTTP_400_BAD_REQUEST)

    allowed = settings.PRODUCT_IMAGE_EXTENSIONS
    for upload in files:
        ext = os.path.splitext(upload.name)[1].lower().lstrip('.')
        if ext not in allowed:
            return Response(
                {'error': f"Unsupported image type '{upload.name}'. Allowed: {', '.join(allowed)}"},
                status=status.HTTP_400_BAD_REQUEST
            )

    next_position = (product.images.aggregate(max_position=Max('position'))['max_position'] or 0) + 1
    uploaded = []
    for offset, upload in enumerate(files):
        image = ProductImage.objects.create(product=product, image=upload, position=next_position + offset)
        uploaded.append(image.public_url)

    create_audit_log(
        request=request,
        action='image_upload',
        model_name='Product',
        object_id=str(product.id),
        object_name=product.name,
        changes={'uploaded': uploaded},
    )
    logger.info(f"Uploaded {len(uploaded)} image(s) for product {product.id}")

    product = Product.objects.prefetch_related('images').get(pk=product.pk)
    return Response(AdminProductSerializer(product).data, status=status.HTTP_201_CREATED)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, IsStoreAdmin])
def admin_product_image_delete(request, pk, image_id):
    """Remove one image from a product (and its stored file)"""
    image = get_object_or_404(ProductImage, pk=image_id, product_id=pk)
    removed_url = image.public_url
    if image.image:
        image.image.delete(save=False)
    image.delete()

    create_audit_log(
        request=request,
        action='image_delete',
        model_name='Product',
        object_id=str(pk),
        changes={'removed': removed_url},
    )
    return Response(status=status.HTTP_204_NO_CONTENT)


# Admin category views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStoreAdmin])
def admin_category_list_create(request):
    """List all categories or create a new category"""
    if request.method == 'GET':
        categories = Category.objects.annotate(product_count=Count('products')).order_by('name')
        return Response(CategorySerializer(categories, many=True).data)

    serializer = CategorySerializer(data=request.data)
    if serializer.is_valid():
        category = serializer.save(slug=generate_unique_slug(Category, serializer.validated_data['name']))
        return Response(CategorySerializer(category).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsStoreAdmin])
def admin_category_detail(request, pk):
    """Retrieve, update or delete a category"""
    category = get_object_or_404(Category, pk=pk)

    if request.method == 'GET':
        return Response(CategorySerializer(category).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = CategorySerializer(category, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        category.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)
