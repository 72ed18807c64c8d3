from django.urls import path
from .views import (
    product_list, product_detail, new_arrivals,
    category_list, category_products,
    admin_product_list_create, admin_product_detail,
    admin_product_images, admin_product_image_delete,
    admin_category_list_create, admin_category_detail,
)

urlpatterns = [
    # Storefront endpoints
    path('products/', product_list, name='product-list'),
    path('products/new-arrivals/', new_arrivals, name='product-new-arrivals'),
    path('products/<int:pk>/', product_detail, name='product-detail'),
    path('categories/', category_list, name='category-list'),
    path('categories/<slug:slug>/products/', category_products, name='category-products'),

    # Admin product endpoints
    path('admin/products/', admin_product_list_create, name='admin-product-list-create'),
    path('admin/products/<int:pk>/', admin_product_detail, name='admin-product-detail'),
    path('admin/products/<int:pk>/images/', admin_product_images, name='admin-product-images'),
    path('admin/products/<int:pk>/images/<int:image_id>/', admin_product_image_delete, name='admin-product-image-delete'),

    # Admin category endpoints
    path('admin/categories/', admin_category_list_create, name='admin-category-list-create'),
    path('admin/categories/<int:pk>/', admin_category_detail, name='admin-category-detail'),
]
