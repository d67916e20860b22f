"""Django admin configuration for orders and promo codes."""

from django.contrib import admin
from .models import Order, OrderItem, PromoCode
from finance.models import Transaction

# 1. Order lines, read-only so historical prices cannot be edited
class OrderItemInline(admin.TabularInline):
    """Inline display of order line items."""

    model = OrderItem
    extra = 0
    readonly_fields = ('product', 'variant', 'vendor', 'price', 'quantity')
    can_delete = False

# 2. Gateway audit trail for the order
class TransactionInline(admin.StackedInline):
    """Inline display of the order's gateway transactions."""

    model = Transaction
    extra = 0
    can_delete = False
    max_num = 0

    def get_fields(self, request, obj=None):
        """Show all transaction fields except the primary key."""
        return [f.name for f in self.model._meta.fields if f.name != 'id']

    def get_readonly_fields(self, request, obj=None):
        """Transactions come from the gateways only."""
        return [f.name for f in self.model._meta.fields]

@admin.register(PromoCode)
class PromoCodeAdmin(admin.ModelAdmin):
    list_display = ('code', 'discount_percentage', 'is_active', 'expires_at')
    list_filter = ('is_active',)
    search_fields = ('code',)

@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """Admin configuration for customer orders.

    Status is edited through the API so stock movements stay consistent.
    """

    list_display = ('id', 'customer', 'total_price', 'payment_method', 'payment_status', 'status', 'created_at')
    list_filter = ('status', 'payment_status', 'payment_method', 'created_at')
    search_fields = ('id', 'customer__username', 'customer__email', 'm_transaction_id')
    readonly_fields = ('status', 'payment_status', 'inventory_committed', 'm_transaction_id', 'delivered_at')

    inlines = [OrderItemInline, TransactionInline]
