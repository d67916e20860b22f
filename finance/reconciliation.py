"""Apply gateway callbacks to order, payment and inventory state."""

import logging
from dataclasses import dataclass

from django.db import transaction

from cart.models import ShoppingCart
from core.exceptions import OrderNotFound
from orders.models import Order, OrderStatus, PaymentStatus, GATEWAY_METHODS
from products.inventory import InventoryLedger
from .models import Transaction

logger = logging.getLogger(__name__)

SUCCESS_STATUSES = frozenset({'SUCCESS', 'COMPLETE'})
FAILURE_STATUSES = frozenset({'FAILED', 'FAIL', 'FAILURE', 'CANCELLED', 'CANCELED'})

OUTCOME_PAID = 'PAID'
OUTCOME_CANCELLED = 'CANCELLED'
OUTCOME_NOOP = 'NOOP'
OUTCOME_IGNORED = 'IGNORED'


@dataclass
class Reconciliation:
    order: Order
    outcome: str


class PaymentReconciler:
    """Drive order state from gateway callbacks keyed by merchant transaction id.

    Every call locks the order row, so concurrent redeliveries of the same
    notification serialize and all but the first become no-ops.
    """

    def __init__(self, inventory=None, orders=None, carts=None):
        self.inventory = inventory if inventory is not None else InventoryLedger()
        self.orders = orders if orders is not None else Order.objects
        self.carts = carts if carts is not None else ShoppingCart.objects

    def reconcile(self, merchant_txn_id: str, status: str, gateway: str, order_id=None, payload=None) -> Reconciliation:
        status_key = str(status or '').strip().upper()

        with transaction.atomic():
            order = self._locate(merchant_txn_id, order_id)
            if order is None:
                logger.warning(f'{gateway} callback for unknown transaction {merchant_txn_id!r}')
                raise OrderNotFound()

            if status_key in SUCCESS_STATUSES:
                outcome = self._mark_paid(order)
            elif status_key in FAILURE_STATUSES and order.m_transaction_id != merchant_txn_id:
                logger.warning(f'{gateway} failure for superseded transaction {merchant_txn_id!r} on order {order.id}; left unchanged')
                outcome = OUTCOME_IGNORED
            elif status_key in FAILURE_STATUSES:
                outcome = self._mark_failed(order)
            else:
                logger.warning(f'Unrecognized {gateway} status {status!r} for order {order.id}; left unchanged')
                outcome = OUTCOME_IGNORED

            self._record(order, gateway, merchant_txn_id, status, outcome, payload)

        logger.info(f'{gateway} callback {merchant_txn_id}: order {order.id} -> {outcome}')
        return Reconciliation(order=order, outcome=outcome)

    def cancel(self, order_id, gateway: str, customer=None, payload=None) -> Reconciliation:
        """Customer returned from the gateway's cancel/failure page."""
        with transaction.atomic():
            qs = self.orders.select_for_update().filter(pk=order_id)
            if customer is not None:
                qs = qs.filter(customer=customer)
            order = qs.first()
            if order is None:
                raise OrderNotFound()
            if order.payment_method not in GATEWAY_METHODS or order.status != OrderStatus.PENDING:
                logger.warning(f'Cancel page ignored for order {order.id} ({order.payment_method}, {order.status})')
                outcome = OUTCOME_NOOP
            else:
                outcome = self._mark_failed(order)
            self._record(order, gateway, order.m_transaction_id or '', 'CANCELLED', outcome, payload)

        logger.info(f'{gateway} payment cancelled for order {order.id} -> {outcome}')
        return Reconciliation(order=order, outcome=outcome)

    def _locate(self, merchant_txn_id, order_id):
        """Find the order by its current transaction id, or by any earlier initiation of it."""
        if not merchant_txn_id:
            return None
        qs = self.orders.select_for_update()
        if order_id is not None:
            qs = qs.filter(pk=order_id)
        order = qs.filter(m_transaction_id=merchant_txn_id).first()
        if order is not None:
            return order
        # A retried payment re-keys the order; late callbacks still carry the old id.
        earlier = (
            Transaction.objects.filter(kind=Transaction.KIND_INITIATE, merchant_txn_id=merchant_txn_id)
            .exclude(order__isnull=True)
            .values_list('order_id', flat=True)
            .first()
        )
        if earlier is None:
            return None
        return qs.filter(pk=earlier).first()

    def _mark_paid(self, order: Order) -> str:
        if order.payment_status == PaymentStatus.PAID:
            return OUTCOME_NOOP
        if order.status == OrderStatus.CANCELLED:
            logger.error(f'Payment received for cancelled order {order.id}; needs manual review')
            return OUTCOME_NOOP

        if not order.inventory_committed:
            try:
                self.inventory.deduct(order.items.all(), exclude_user_id=order.customer_id)
            except Exception:
                logger.error(f'Stock deduction failed for paid order {order.id}')
                raise
            order.inventory_committed = True

        order.payment_status = PaymentStatus.PAID
        if order.status == OrderStatus.PENDING:
            order.status = OrderStatus.CONFIRMED
        order.save(update_fields=['payment_status', 'status', 'inventory_committed', 'updated_at'])

        if not order.is_buy_now:
            cart = self.carts.filter(user_id=order.customer_id).first()
            if cart is not None:
                cart.clear()
        return OUTCOME_PAID

    def _mark_failed(self, order: Order) -> str:
        if order.payment_status == PaymentStatus.PAID or order.status == OrderStatus.CANCELLED:
            return OUTCOME_NOOP

        if order.inventory_committed:
            self.inventory.restock(order.items.all())
            order.inventory_committed = False

        order.payment_status = PaymentStatus.UNPAID
        order.status = OrderStatus.CANCELLED
        order.save(update_fields=['payment_status', 'status', 'inventory_committed', 'updated_at'])
        return OUTCOME_CANCELLED

    def _record(self, order, gateway, merchant_txn_id, status, outcome, payload):
        Transaction.objects.create(
            order=order,
            gateway=gateway,
            kind=Transaction.KIND_CALLBACK,
            merchant_txn_id=merchant_txn_id or '',
            amount=order.total_price,
            status=str(status or ''),
            outcome=outcome,
            payload=dict(payload or {}),
        )
