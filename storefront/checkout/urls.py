from django.urls import path
from .views import create_checkout, checkout_session, stripe_webhook

urlpatterns = [
    path('checkout/', create_checkout, name='checkout'),
    path('checkout/session/', checkout_session, name='checkout-session'),
    path('checkout/webhook/', stripe_webhook, name='checkout-webhook'),
]
