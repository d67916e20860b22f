"""Database models for orders, order lines and promo codes."""

from django.db import models
from django.conf import settings
from django.utils import timezone
from products.models import Product, ProductVariant
from accounts.models import Address


class OrderStatus(models.TextChoices):
    PENDING = 'PENDING', 'Pending'
    CONFIRMED = 'CONFIRMED', 'Confirmed'
    DELIVERED = 'DELIVERED', 'Delivered'
    CANCELLED = 'CANCELLED', 'Cancelled'


class PaymentStatus(models.TextChoices):
    UNPAID = 'UNPAID', 'Unpaid'
    PAID = 'PAID', 'Paid'


class PaymentMethod(models.TextChoices):
    CASH_ON_DELIVERY = 'CASH_ON_DELIVERY', 'Cash on delivery'
    ONLINE_PAYMENT = 'ONLINE_PAYMENT', 'Online payment'
    ESEWA = 'ESEWA', 'eSewa'
    NPS = 'NPS', 'NPS'


GATEWAY_METHODS = (PaymentMethod.ONLINE_PAYMENT, PaymentMethod.ESEWA, PaymentMethod.NPS)


# 1. Promo codes
class PromoCode(models.Model):
    """Percentage discount applied to an order subtotal."""

    code = models.CharField(max_length=50, unique=True)
    discount_percentage = models.DecimalField(max_digits=5, decimal_places=2)
    is_active = models.BooleanField(default=True)
    expires_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.code

    def is_available(self, now=None):
        now = now or timezone.now()
        if not self.is_active:
            return False
        return self.expires_at is None or self.expires_at > now


# 2. Orders
class Order(models.Model):
    """A customer's order and its payment/fulfillment state."""

    customer = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='orders')
    total_price = models.DecimalField(max_digits=12, decimal_places=2)
    shipping_fee = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    service_charge = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    promo_discount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices)
    payment_status = models.CharField(max_length=10, choices=PaymentStatus.choices, default=PaymentStatus.UNPAID)
    status = models.CharField(max_length=10, choices=OrderStatus.choices, default=OrderStatus.PENDING)
    applied_promo_code = models.CharField(max_length=50, null=True, blank=True)
    m_transaction_id = models.CharField(max_length=100, null=True, blank=True, unique=True)
    instrument_code = models.CharField(max_length=50, null=True, blank=True)
    phone_number = models.CharField(max_length=20, blank=True, default='')
    is_buy_now = models.BooleanField(default=False)
    inventory_committed = models.BooleanField(default=False)
    shipping_address = models.ForeignKey(Address, on_delete=models.SET_NULL, null=True, related_name='orders')
    delivered_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['customer', 'created_at'], name='order_customer_created_idx'),
            models.Index(fields=['status', 'payment_status', 'created_at'], name='order_status_payment_idx'),
        ]

    def __str__(self):
        return f"Order #{self.id} - {self.customer.username}"

    @property
    def is_gateway_payment(self):
        return self.payment_method in GATEWAY_METHODS


class OrderItem(models.Model):
    """Line item inside an order; price is the unit price charged at order time."""

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='order_items')
    variant = models.ForeignKey(ProductVariant, on_delete=models.PROTECT, null=True, blank=True, related_name='order_items')
    vendor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='sold_items')
    quantity = models.PositiveIntegerField()
    price = models.DecimalField(max_digits=10, decimal_places=2)

    def __str__(self):
        return f"{self.quantity} x {self.product.name} (Order #{self.order_id})"

    @property
    def subtotal(self):
        return self.price * self.quantity
