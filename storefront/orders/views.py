import logging

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from storefront.core.permissions import IsStoreAdmin
from storefront.core.utils import create_audit_log, paginate
from .filters import OrderFilter
from .models import Order
from .serializers import OrderSerializer, AdminOrderUpdateSerializer

logger = logging.getLogger(__name__)


def orders_with_items():
    return Order.objects.prefetch_related('items__product__images')


# Customer views
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def order_list(request):
    """The current customer's orders, newest first"""
    queryset = orders_with_items().filter(customer=request.user).order_by('-created_at', '-id')
    return Response(paginate(queryset, request, OrderSerializer, default_limit=10))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def order_detail(request, pk):
    order = get_object_or_404(orders_with_items(), pk=pk, customer=request.user)
    return Response(OrderSerializer(order).data)


# Admin views
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStoreAdmin])
def admin_order_list(request):
    """All orders with status, payment status, date and customer search filters"""
    filterset = OrderFilter(request.query_params, queryset=orders_with_items())
    if not filterset.is_valid():
        return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
    queryset = filterset.qs.order_by('-created_at', '-id')
    return Response(paginate(queryset, request, OrderSerializer, default_limit=10))


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated, IsStoreAdmin])
def admin_order_detail(request, pk):
    """Retrieve an order or update its status / payment status"""
    order = get_object_or_404(orders_with_items(), pk=pk)

    if request.method == 'GET':
        return Response(OrderSerializer(order).data)

    old_status, old_payment_status = order.status, order.payment_status
    serializer = AdminOrderUpdateSerializer(order, data=request.data, partial=True)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    order = serializer.save()

    if order.status != old_status:
        create_audit_log(
            request=request,
            action='order_status_change',
            model_name='Order',
            object_id=str(order.id),
            object_name=f"Order #{order.id}",
            object_reference=order.stripe_session_id,
            changes={'status': {'old': old_status, 'new': order.status}},
        )
    if order.payment_status != old_payment_status:
        create_audit_log(
            request=request,
            action='payment_status_change',
            model_name='Order',
            object_id=str(order.id),
            object_name=f"Order #{order.id}",
            object_reference=order.stripe_session_id,
            changes={'payment_status': {'old': old_payment_status, 'new': order.payment_status}},
        )
    logger.info(f"Order {order.id} updated: status={order.status}, payment_status={order.payment_status}")
    return Response(OrderSerializer(order).data)
