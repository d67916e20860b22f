"""Orders API views.

Includes checkout creation, role-scoped listings, payment landing pages,
admin status transitions and public order tracking.
"""

from rest_framework import mixins, viewsets, permissions, filters, status
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response
from django.utils.dateparse import parse_date

from core.exceptions import OrderNotFound
from finance.gateways import EsewaGateway, OnlinePaymentGateway
from finance.reconciliation import PaymentReconciler
from products.views import StandardResultsSetPagination
from .models import PaymentMethod
from .pricing import PricingEngine
from .serializers import (
    OrderSerializer, OrderCreateSerializer, OrderStatusUpdateSerializer, PromoCheckSerializer,
)
from .services import OrderService


def _require(params, *names):
    """Fetch required query parameters or fail with a validation error."""
    missing = [name for name in names if not params.get(name)]
    if missing:
        raise ValidationError({name: ['This query parameter is required.'] for name in missing})
    return [params.get(name) for name in names]


def _order_id(value):
    if not str(value).isdigit():
        raise OrderNotFound()
    return int(value)


def _result_payload(result):
    data = {
        'success': True,
        'order': OrderSerializer(result.order).data,
        'vendorIds': result.vendor_ids,
    }
    if result.payment is not None:
        data['payment'] = result.payment.as_dict()
        data['redirectUrl'] = result.payment.url
    return data


class OrderViewSet(mixins.CreateModelMixin, mixins.ListModelMixin, mixins.RetrieveModelMixin,
                   viewsets.GenericViewSet):
    """Order API endpoints for customers, vendors and admins.

    Customers create and list their own orders, vendors list non-pending
    orders that contain their lines, admins see and manage everything.
    """

    permission_classes = [permissions.IsAuthenticated]
    serializer_class = OrderSerializer
    pagination_class = StandardResultsSetPagination
    filter_backends = [filters.OrderingFilter]
    ordering_fields = ['created_at', 'total_price']
    ordering = ['-created_at']

    def get_service(self):
        return OrderService()

    def get_permissions(self):
        if self.action in ('update_status', 'bulk_delete'):
            return [permissions.IsAdminUser()]
        if self.action in ('track', 'payment_success', 'esewa_success'):
            return [permissions.AllowAny()]
        return super().get_permissions()

    def get_queryset(self):
        """Role-scoped base queryset.

        - Staff: every order.
        - Sellers: non-pending orders containing their lines (only those lines shown).
        - Customers: their own orders.
        """
        service = OrderService(gateways={})
        user = self.request.user
        if user.is_staff:
            qs = service.all_orders()
        elif getattr(user, 'user_type', None) == 'seller':
            qs = service.vendor_orders(user)
        else:
            qs = service.customer_orders(user)
        return self._apply_filters(qs)

    def _apply_filters(self, orders):
        params = self.request.query_params

        status_value = params.get('status')
        if status_value:
            orders = orders.filter(status=status_value.upper())

        payment_status = params.get('payment_status')
        if payment_status:
            orders = orders.filter(payment_status=payment_status.upper())

        date_from = parse_date(params.get('date_from') or '')
        if date_from:
            orders = orders.filter(created_at__date__gte=date_from)

        date_to = parse_date(params.get('date_to') or '')
        if date_to:
            orders = orders.filter(created_at__date__lte=date_to)
        return orders

    def create(self, request, *args, **kwargs):
        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = self.get_service().create_order(request.user.id, serializer.to_request())
        return Response(_result_payload(result), status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], url_path='retry-payment')
    def retry_payment(self, request, pk=None):
        """Re-initiate the gateway for a pending, unpaid online order."""
        result = self.get_service().retry_payment(request.user, _order_id(pk))
        return Response(_result_payload(result))

    @action(detail=True, methods=['patch'], url_path='status')
    def update_status(self, request, pk=None):
        """Admin-only: move an order along PENDING -> CONFIRMED -> DELIVERED, or cancel it."""
        serializer = OrderStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = self.get_service().update_status(_order_id(pk), serializer.validated_data['status'])
        return Response({'success': True, 'order': OrderSerializer(order).data})

    @action(detail=True, methods=['get'], url_path='track')
    def track(self, request, pk=None):
        """Public: order status by id + customer email."""
        (email,) = _require(request.query_params, 'email')
        order_status = OrderService(gateways={}).track_order(_order_id(pk), email)
        return Response({'success': True, 'orderStatus': order_status})

    @action(detail=False, methods=['post'], url_path='check-promo')
    def check_promo(self, request):
        serializer = PromoCheckSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        promo = PricingEngine().find_promo(serializer.validated_data['code'], customer=request.user)
        return Response({
            'success': True,
            'code': promo.code,
            'discountPercentage': str(promo.discount_percentage),
        })

    @action(detail=False, methods=['delete'], url_path='bulk-delete')
    def bulk_delete(self, request):
        """Admin-only: delete every order and its lines."""
        deleted = OrderService(gateways={}).delete_all_orders()
        return Response({'success': True, 'deleted': deleted})

    # Payment landing pages
    @action(detail=False, methods=['get'], url_path='payment/success')
    def payment_success(self, request):
        """Signed return from the generic online gateway."""
        params = request.query_params
        order_id, transaction_id = _require(params, 'orderId', 'transactionId')
        OnlinePaymentGateway().verify(transaction_id, order_id, params)
        result = PaymentReconciler().reconcile(
            transaction_id, params.get('status'), PaymentMethod.ONLINE_PAYMENT,
            order_id=_order_id(order_id), payload=params.dict(),
        )
        return Response({'success': True, 'outcome': result.outcome, 'order': OrderSerializer(result.order).data})

    @action(detail=False, methods=['get'], url_path='payment/cancel')
    def payment_cancel(self, request):
        (order_id,) = _require(request.query_params, 'orderId')
        result = PaymentReconciler().cancel(_order_id(order_id), PaymentMethod.ONLINE_PAYMENT, customer=request.user)
        return Response({'success': True, 'outcome': result.outcome, 'order': OrderSerializer(result.order).data})

    @action(detail=False, methods=['get'], url_path='payment/esewa/success')
    def esewa_success(self, request):
        """eSewa appends a signed base64 JSON token as ``data``."""
        order_id, token = _require(request.query_params, 'oid', 'data')
        decoded = EsewaGateway().decode(token)
        result = PaymentReconciler().reconcile(
            decoded.get('transaction_uuid'), decoded.get('status'), PaymentMethod.ESEWA,
            order_id=_order_id(order_id), payload=decoded,
        )
        return Response({'success': True, 'outcome': result.outcome, 'order': OrderSerializer(result.order).data})

    @action(detail=False, methods=['get'], url_path='payment/esewa/failure')
    def esewa_failure(self, request):
        (order_id,) = _require(request.query_params, 'oid')
        result = PaymentReconciler().cancel(_order_id(order_id), PaymentMethod.ESEWA, customer=request.user)
        return Response({'success': True, 'outcome': result.outcome, 'order': OrderSerializer(result.order).data})
