from django.urls import path
from .views import wishlist_list_create, wishlist_item_delete

urlpatterns = [
    path('wishlist/', wishlist_list_create, name='wishlist-list-create'),
    path('wishlist/<int:pk>/', wishlist_item_delete, name='wishlist-item-delete'),
]
