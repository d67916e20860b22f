"""Line, subtotal, promo and total price computations."""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Tuple

from core.exceptions import InvalidPromoCode
from products.models import DiscountType
from .models import Order, OrderStatus, PromoCode

CENT = Decimal('0.01')
ZERO = Decimal('0.00')


def quantize(amount) -> Decimal:
    """Round a monetary amount to 2 decimal places, half up."""
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


class PricingEngine:
    def __init__(self, promo_codes=None, orders=None):
        self.promo_codes = promo_codes if promo_codes is not None else PromoCode.objects
        self.orders = orders if orders is not None else Order.objects

    def unit_price(self, item) -> Decimal:
        """Variant price verbatim, else the product base price less its discount."""
        if item.variant is not None:
            return Decimal(item.variant.price)

        product = item.product
        base = Decimal(product.base_price)
        discount = Decimal(product.discount or 0)
        if not discount:
            return base
        if product.discount_type == DiscountType.FLAT:
            return max(ZERO, base - discount)
        return base * (Decimal('1') - discount / Decimal('100'))

    def line_subtotal(self, item) -> Decimal:
        """Rounded unit price times quantity, matching the price stored on order lines."""
        return quantize(self.unit_price(item)) * item.quantity

    def order_subtotal(self, items: Iterable) -> Decimal:
        return sum((self.line_subtotal(item) for item in items), ZERO)

    def find_promo(self, code: str, customer=None) -> PromoCode:
        """Look up a usable promo code.

        Raises :class:`InvalidPromoCode` when the code does not exist, is
        inactive or expired, or the customer already used it on an order that
        was not cancelled.
        """
        promo = self.promo_codes.filter(code__iexact=(code or '').strip()).first()
        if promo is None or not promo.is_available():
            raise InvalidPromoCode()

        if customer is not None:
            used = (
                self.orders.filter(customer=customer, applied_promo_code__iexact=promo.code)
                .exclude(status=OrderStatus.CANCELLED)
                .exists()
            )
            if used:
                raise InvalidPromoCode('Promo code has already been used.')
        return promo

    def apply_promo(self, subtotal: Decimal, code: Optional[str], customer=None) -> Tuple[Decimal, Optional[str]]:
        """Return ``(discount, code)``; no code means no discount."""
        if not (code or '').strip():
            return ZERO, None
        promo = self.find_promo(code, customer=customer)
        discount = subtotal * Decimal(promo.discount_percentage) / Decimal('100')
        return discount, promo.code

    def order_total(self, subtotal, promo_discount=ZERO, shipping_fee=ZERO, service_charge=ZERO) -> Decimal:
        return quantize(Decimal(subtotal) - Decimal(promo_discount) + Decimal(shipping_fee) + Decimal(service_charge))
