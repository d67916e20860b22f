"""Inventory ledger: stock checks, deductions, restocks and cart eviction.

Stock lives on :class:`~products.models.ProductVariant` for products with
variants and on :class:`~products.models.Product` otherwise. All mutations go
through :class:`InventoryLedger` so that every deduction is re-validated
under a row lock inside the caller's transaction.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from django.db import transaction

from cart.models import ShoppingCart, ShoppingCartItem
from core.exceptions import ProductNotFound, VariantNotFound, InsufficientStock
from .models import Product, ProductVariant

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LineItem:
    """A product (and optional variant) with a requested quantity."""

    product: Product
    variant: Optional[ProductVariant]
    quantity: int

    @property
    def product_id(self):
        return self.product.pk

    @property
    def variant_id(self):
        return self.variant.pk if self.variant is not None else None


@dataclass(frozen=True)
class StockRef:
    """Reference to the row that holds stock for a line: a variant or a product."""

    kind: str  # 'variant' | 'product'
    pk: int

    @classmethod
    def for_item(cls, item) -> 'StockRef':
        if item.variant_id:
            return cls('variant', item.variant_id)
        return cls('product', item.product_id)


class InventoryLedger:
    def __init__(self, products=None, variants=None, cart_items=None):
        self.products = products if products is not None else Product.objects
        self.variants = variants if variants is not None else ProductVariant.objects
        self.cart_items = cart_items if cart_items is not None else ShoppingCartItem.objects

    def _row(self, ref: StockRef, lock: bool = False):
        manager = self.variants if ref.kind == 'variant' else self.products
        qs = manager.select_for_update() if lock else manager.all()
        if ref.kind == 'variant':
            qs = qs.select_related('product')
        row = qs.filter(pk=ref.pk).first()
        if row is None:
            raise VariantNotFound() if ref.kind == 'variant' else ProductNotFound()
        return row

    @staticmethod
    def _label(row) -> str:
        if isinstance(row, ProductVariant):
            return f'{row.product.name} ({row.sku})'
        return row.name

    def check_availability(self, items: Iterable) -> None:
        """Fail fast on the first line whose current stock cannot cover it. No side effects."""
        for item in items:
            row = self._row(StockRef.for_item(item))
            if row.stock < item.quantity:
                raise InsufficientStock(self._label(row), item.quantity, row.stock)

    def deduct(self, items: Iterable, exclude_user_id=None) -> list:
        """Re-validate and subtract stock for every line under row locks.

        Must run inside the enclosing order transaction; any shortfall raises
        and rolls the whole unit back. Rows that reach zero are evicted from
        other users' carts after the transaction commits.
        """
        items = list(items)
        sold_out = []
        # Lock rows in a stable order so concurrent orders cannot deadlock.
        ordered = sorted(items, key=lambda i: (StockRef.for_item(i).kind, StockRef.for_item(i).pk))
        with transaction.atomic():
            for item in ordered:
                ref = StockRef.for_item(item)
                row = self._row(ref, lock=True)
                if row.stock < item.quantity:
                    raise InsufficientStock(self._label(row), item.quantity, row.stock)
                row.stock -= item.quantity
                row.save(update_fields=['stock'])
                logger.info(f'Deducted {item.quantity} from {ref.kind} {ref.pk}; stock now {row.stock} ({row.status})')
                if row.stock <= 0 and ref not in sold_out:
                    sold_out.append(ref)

            if sold_out:
                transaction.on_commit(lambda: self.evict_from_carts(sold_out, exclude_user_id=exclude_user_id))
        return sold_out

    def restock(self, items: Iterable) -> None:
        """Return quantities to stock, e.g. when a committed order is cancelled."""
        items = list(items)
        ordered = sorted(items, key=lambda i: (StockRef.for_item(i).kind, StockRef.for_item(i).pk))
        with transaction.atomic():
            for item in ordered:
                ref = StockRef.for_item(item)
                try:
                    row = self._row(ref, lock=True)
                except (ProductNotFound, VariantNotFound):
                    logger.warning(f'Cannot restock missing {ref.kind} {ref.pk}')
                    continue
                row.stock += item.quantity
                row.save(update_fields=['stock'])
                logger.info(f'Restocked {item.quantity} to {ref.kind} {ref.pk}; stock now {row.stock}')

    def evict_from_carts(self, refs: Iterable[StockRef], exclude_user_id=None) -> int:
        """Remove sold-out products/variants from every cart except the requester's."""
        refs = list(refs)
        variant_ids = [r.pk for r in refs if r.kind == 'variant']
        product_ids = [r.pk for r in refs if r.kind == 'product']
        if not variant_ids and not product_ids:
            return 0

        qs = self.cart_items.none()
        if variant_ids:
            qs = qs | self.cart_items.filter(variant_id__in=variant_ids)
        if product_ids:
            qs = qs | self.cart_items.filter(product_id__in=product_ids, variant__isnull=True)
        if exclude_user_id is not None:
            qs = qs.exclude(cart__user_id=exclude_user_id)

        cart_ids = set(qs.values_list('cart_id', flat=True))
        deleted, _ = qs.delete()
        for cart in ShoppingCart.objects.filter(id__in=cart_ids):
            cart.recalculate_total()
        if deleted:
            logger.info(f'Evicted {deleted} sold-out cart item(s) from {len(cart_ids)} cart(s)')
        return deleted
