"""Django admin configuration for finance models."""

from django.contrib import admin
from .models import Transaction

@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    """Admin configuration for gateway transactions."""

    list_display = ('id', 'get_order_id', 'gateway', 'kind', 'merchant_txn_id', 'status', 'outcome', 'created_at')
    list_filter = ('gateway', 'kind', 'outcome', 'created_at')
    search_fields = ('merchant_txn_id', 'order__id', 'order__customer__username')
    readonly_fields = [f.name for f in Transaction._meta.fields]

    def get_order_id(self, obj):
        """Render order id in a friendly format."""
        return f"Order #{obj.order_id}" if obj.order_id else '-'
    get_order_id.short_description = 'Order'
