"""Order orchestration: creation, status transitions, payment retries and cleanup.

``OrderService`` is the single entry point for anything that changes an order.
Its collaborators (inventory, pricing, shipping, address resolution and
payment gateways) are passed in at construction so tests can swap them.
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from typing import Dict, List, Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Prefetch
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from accounts.addresses import AddressResolver
from accounts.models import District
from cart.models import ShoppingCart
from core.exceptions import (
    UserNotFound, ProductNotFound, VariantNotFound, OrderNotFound,
    CartEmpty, InvalidDistrict, InvalidStatusTransition, PaymentGatewayError,
)
from finance.gateways import CashOnDelivery, PaymentRedirect, default_gateways, payment_variant
from finance.models import Transaction
from products.inventory import InventoryLedger, LineItem
from products.models import Product
from .models import Order, OrderItem, OrderStatus, PaymentMethod, PaymentStatus, GATEWAY_METHODS
from .pricing import PricingEngine, quantize
from .shipping import ShippingCalculator

logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS: Dict[str, set] = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: {OrderStatus.CANCELLED},
    OrderStatus.CANCELLED: set(),
}


def transition_allowed(current: str, target: str) -> bool:
    if current == target:
        return True
    return target in ALLOWED_TRANSITIONS.get(current, set())


@dataclass
class OrderRequest:
    """Validated input for :meth:`OrderService.create_order`."""

    shipping_address: dict
    payment_method: str
    phone_number: str = ''
    service_charge: Decimal = Decimal('0.00')
    promo_code: Optional[str] = None
    is_buy_now: bool = False
    product_id: Optional[int] = None
    variant_id: Optional[int] = None
    quantity: int = 1
    instrument_code: Optional[str] = None


@dataclass
class OrderResult:
    order: Order
    payment: Optional[PaymentRedirect] = None
    vendor_ids: List[int] = field(default_factory=list)
    customer_email: str = ''


class OrderService:
    def __init__(self, inventory=None, pricing=None, shipping=None, addresses=None, gateways=None):
        self.inventory = inventory if inventory is not None else InventoryLedger()
        self.pricing = pricing if pricing is not None else PricingEngine()
        self.shipping = shipping if shipping is not None else ShippingCalculator()
        self.addresses = addresses if addresses is not None else AddressResolver()
        self.gateways = gateways if gateways is not None else default_gateways()

    # 1. Creation
    def create_order(self, user_id, req: OrderRequest) -> OrderResult:
        user = get_user_model().objects.filter(pk=user_id).first()
        if user is None:
            raise UserNotFound()

        requested_address = dict(req.shipping_address or {})
        district = District.objects.filter(name__iexact=str(requested_address.get('district') or '').strip()).first()
        if district is None:
            raise InvalidDistrict()
        requested_address['district'] = district.name

        items = self._resolve_items(user, req)
        self.inventory.check_availability(items)

        payment = payment_variant(req.payment_method, req.instrument_code)
        is_cod = isinstance(payment, CashOnDelivery)

        with transaction.atomic():
            address = self.addresses.resolve(user, requested_address)
            if req.phone_number and user.phone_number != req.phone_number:
                user.phone_number = req.phone_number
                user.save(update_fields=['phone_number'])

            quote = self.shipping.quote(district.name, items)

            subtotal = self.pricing.order_subtotal(items)
            promo_discount, promo_code = self.pricing.apply_promo(subtotal, req.promo_code, customer=user)
            service_charge = req.service_charge or Decimal('0.00')
            total = self.pricing.order_total(subtotal, promo_discount, quote.fee, service_charge)

            order = Order.objects.create(
                customer=user,
                total_price=total,
                shipping_fee=quantize(quote.fee),
                service_charge=quantize(service_charge),
                promo_discount=quantize(promo_discount),
                payment_method=payment.method,
                payment_status=PaymentStatus.UNPAID,
                status=OrderStatus.CONFIRMED if is_cod else OrderStatus.PENDING,
                applied_promo_code=promo_code,
                instrument_code=getattr(payment, 'instrument_code', None) or None,
                phone_number=req.phone_number or user.phone_number or '',
                is_buy_now=req.is_buy_now,
                shipping_address=address,
            )
            OrderItem.objects.bulk_create([
                OrderItem(
                    order=order,
                    product=item.product,
                    variant=item.variant,
                    vendor_id=item.product.seller_id,
                    quantity=item.quantity,
                    price=quantize(self.pricing.unit_price(item)),
                )
                for item in items
            ])

            if is_cod:
                self.inventory.deduct(items, exclude_user_id=user.id)
                order.inventory_committed = True
                order.save(update_fields=['inventory_committed'])
                if not req.is_buy_now:
                    self._clear_cart(user)

        logger.info(
            f'Order {order.id} created for user {user.id}: {payment.method}, '
            f'total {order.total_price}, shipping {order.shipping_fee}, vendors {quote.vendor_ids}'
        )

        redirect = None
        if not is_cod:
            redirect = self._initiate_payment(order, payment)

        return OrderResult(order=order, payment=redirect, vendor_ids=quote.vendor_ids, customer_email=user.email)

    def _resolve_items(self, user, req: OrderRequest) -> List[LineItem]:
        if req.is_buy_now:
            product = Product.objects.filter(pk=req.product_id, is_published=True).first()
            if product is None:
                raise ProductNotFound()
            variant = None
            if req.variant_id:
                variant = product.variants.filter(pk=req.variant_id).first()
                if variant is None:
                    raise VariantNotFound()
            elif product.variants.exists():
                raise ValidationError({'variant_id': ['This product has variants; choose one.']})
            return [LineItem(product=product, variant=variant, quantity=req.quantity)]

        cart = ShoppingCart.objects.filter(user=user).first()
        cart_items = list(cart.items.select_related('product', 'variant').all()) if cart else []
        if not cart_items:
            raise CartEmpty()
        return [LineItem(product=ci.product, variant=ci.variant, quantity=ci.qty) for ci in cart_items]

    def _clear_cart(self, user):
        cart = ShoppingCart.objects.filter(user=user).first()
        if cart is not None:
            cart.clear()

    def _initiate_payment(self, order: Order, payment) -> PaymentRedirect:
        """Call the gateway outside any transaction and record the outcome."""
        gateway = self.gateways[order.payment_method]
        try:
            redirect = gateway.initiate(order, payment)
        except PaymentGatewayError as exc:
            exc.order_id = order.id
            Transaction.objects.create(
                order=order, gateway=order.payment_method, kind=Transaction.KIND_INITIATE,
                amount=order.total_price, status='ERROR', outcome='FAILED',
                payload={'message': str(exc.detail)},
            )
            logger.error(f'Payment initiation failed for order {order.id}; order left {order.status}/{order.payment_status}')
            raise

        order.m_transaction_id = redirect.transaction_id
        order.save(update_fields=['m_transaction_id', 'updated_at'])
        Transaction.objects.create(
            order=order, gateway=order.payment_method, kind=Transaction.KIND_INITIATE,
            merchant_txn_id=redirect.transaction_id, amount=order.total_price,
            status='INITIATED', outcome='REDIRECT', payload={'redirectUrl': redirect.url},
        )
        return redirect

    # 2. Status transitions
    def update_status(self, order_id, status: str) -> Order:
        if status not in ALLOWED_TRANSITIONS:
            raise ValidationError({'status': [f'Unknown status "{status}".']})

        with transaction.atomic():
            order = Order.objects.select_for_update().filter(pk=order_id).first()
            if order is None:
                raise OrderNotFound()
            current = order.status
            if current == status:
                return order
            if not transition_allowed(current, status):
                raise InvalidStatusTransition(f'Cannot change order status from {current} to {status}.')

            fields = ['status', 'updated_at']
            lines = list(order.items.all())

            if status == OrderStatus.CANCELLED and order.inventory_committed:
                self.inventory.restock(lines)
                order.inventory_committed = False
                fields.append('inventory_committed')
            elif status in (OrderStatus.CONFIRMED, OrderStatus.DELIVERED) and not order.inventory_committed:
                self.inventory.deduct(lines, exclude_user_id=order.customer_id)
                order.inventory_committed = True
                fields.append('inventory_committed')

            if status == OrderStatus.DELIVERED:
                order.delivered_at = timezone.now()
                fields.append('delivered_at')
                if order.payment_method == PaymentMethod.CASH_ON_DELIVERY:
                    order.payment_status = PaymentStatus.PAID
                    fields.append('payment_status')

            order.status = status
            order.save(update_fields=fields)

        logger.info(f'Order {order.id} status {current} -> {status}')
        return order

    # 3. Lookups
    def track_order(self, order_id, email: str) -> str:
        order = Order.objects.filter(pk=order_id, customer__email__iexact=(email or '').strip()).first()
        if order is None or not email:
            raise OrderNotFound()
        return order.status

    def get_order(self, order_id, user=None) -> Order:
        qs = Order.objects.select_related('customer', 'shipping_address').prefetch_related('items__product', 'items__variant')
        if user is not None and not user.is_staff:
            qs = qs.filter(customer=user)
        order = qs.filter(pk=order_id).first()
        if order is None:
            raise OrderNotFound()
        return order

    def customer_orders(self, user):
        return (
            Order.objects.filter(customer=user)
            .select_related('shipping_address')
            .prefetch_related('items__product', 'items__variant')
        )

    def vendor_orders(self, vendor):
        """Non-pending orders containing the vendor's lines, showing only those lines."""
        own_items = OrderItem.objects.filter(vendor=vendor).select_related('product', 'variant')
        return (
            Order.objects.filter(items__vendor=vendor)
            .exclude(status=OrderStatus.PENDING)
            .distinct()
            .select_related('customer', 'shipping_address')
            .prefetch_related(Prefetch('items', queryset=own_items))
        )

    def all_orders(self):
        return (
            Order.objects.all()
            .select_related('customer', 'shipping_address')
            .prefetch_related('items__product', 'items__variant')
        )

    # 4. Payment retry
    def retry_payment(self, user, order_id) -> OrderResult:
        order = Order.objects.select_related('customer').filter(pk=order_id, customer=user).first()
        if order is None:
            raise OrderNotFound()
        if order.payment_method not in GATEWAY_METHODS:
            raise ValidationError({'payment_method': ['Only online payment orders can be retried.']})
        if order.status != OrderStatus.PENDING or order.payment_status != PaymentStatus.UNPAID:
            raise InvalidStatusTransition('Only pending, unpaid orders can be retried.')

        lines = list(order.items.select_related('product', 'variant').all())
        self.inventory.check_availability(lines)

        redirect = self._initiate_payment(order, payment_variant(order.payment_method, order.instrument_code))
        vendor_ids = sorted({line.vendor_id for line in lines})
        return OrderResult(order=order, payment=redirect, vendor_ids=vendor_ids, customer_email=user.email)

    # 5. Administrative
    def cancel_stale_orders(self, older_than: Optional[timedelta] = None) -> int:
        """Cancel gateway orders left pending and unpaid past the cutoff."""
        if older_than is None:
            older_than = timedelta(minutes=settings.STALE_ORDER_MINUTES)
        cutoff = timezone.now() - older_than
        stale_ids = list(
            Order.objects.filter(
                status=OrderStatus.PENDING,
                payment_status=PaymentStatus.UNPAID,
                payment_method__in=GATEWAY_METHODS,
                created_at__lt=cutoff,
            ).values_list('id', flat=True)
        )

        cancelled = 0
        for order_id in stale_ids:
            with transaction.atomic():
                # A callback may have settled the order since it was listed.
                still_stale = Order.objects.select_for_update().filter(
                    pk=order_id, status=OrderStatus.PENDING, payment_status=PaymentStatus.UNPAID,
                ).exists()
                if not still_stale:
                    continue
                self.update_status(order_id, OrderStatus.CANCELLED)
                cancelled += 1
        if cancelled:
            logger.info(f'Cancelled {cancelled} stale unpaid order(s) older than {cutoff.isoformat()}')
        return cancelled

    def delete_all_orders(self) -> int:
        """Delete every order; lines are removed first, then the orders."""
        with transaction.atomic():
            items_deleted, _ = OrderItem.objects.all().delete()
            _, per_model = Order.objects.all().delete()
        orders_deleted = per_model.get(Order._meta.label, 0)
        logger.warning(f'Bulk deleted {orders_deleted} order(s) and {items_deleted} line(s)')
        return orders_deleted
