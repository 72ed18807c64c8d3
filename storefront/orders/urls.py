from django.urls import path
from .views import order_list, order_detail, admin_order_list, admin_order_detail

urlpatterns = [
    path('orders/', order_list, name='order-list'),
    path('orders/<int:pk>/', order_detail, name='order-detail'),
    path('admin/orders/', admin_order_list, name='admin-order-list'),
    path('admin/orders/<int:pk>/', admin_order_detail, name='admin-order-detail'),
]
