"""
URL configuration for the storefront project.

Every app is mounted under /api/v1/. The Django admin site doubles as a
back-office fallback next to the JSON admin endpoints.
"""
from django.contrib import admin
from django.urls import path, include, re_path
from django.conf import settings
from django.views.static import serve

admin.site.site_header = "Rashakin Back-Office"
admin.site.site_title = "Rashakin Admin Portal"
admin.site.index_title = "Welcome to the Rashakin store admin"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('storefront.core.urls')),
    path('api/v1/', include('storefront.catalog.urls')),
    path('api/v1/', include('storefront.cart.urls')),
    path('api/v1/', include('storefront.orders.urls')),
    path('api/v1/', include('storefront.checkout.urls')),
    path('api/v1/', include('storefront.wishlist.urls')),
    re_path(r'^media/(?P<path>.*)$', serve, {'document_root': settings.MEDIA_ROOT}),
]
