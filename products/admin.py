"""Django admin configuration for product catalog models."""

import csv
from django.contrib import admin
from django.utils.html import format_html
from django.http import HttpResponse
from .models import ProductCategory, Product, ProductVariant, LOW_STOCK_THRESHOLD


def _colored(stock):
    if stock <= 0:
        color = 'red'
    elif stock < LOW_STOCK_THRESHOLD:
        color = 'orange'
    else:
        color = 'green'
    return format_html('<b style="color: {};">{}</b>', color, stock)


# 1. Variants edited inline on the product page
class ProductVariantInline(admin.TabularInline):
    """Inline editor for a product's variants."""

    model = ProductVariant
    extra = 1
    readonly_fields = ('status',)

@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    """Admin configuration for products."""

    list_display = ('name', 'seller', 'category', 'base_price', 'discount', 'discount_type', 'colored_stock', 'status')
    search_fields = ('name', 'seller__username')
    list_filter = ('category', 'status', 'is_published')
    readonly_fields = ('status',)
    inlines = [ProductVariantInline]

    @admin.display(description='Stock', ordering='stock')
    def colored_stock(self, obj):
        return _colored(obj.stock)

@admin.register(ProductCategory)
class ProductCategoryAdmin(admin.ModelAdmin):
    """Admin configuration for product categories."""

    list_display = ('category_name', 'parent_category')

# 2. Variant inventory page (search + CSV export)
@admin.register(ProductVariant)
class ProductVariantAdmin(admin.ModelAdmin):
    """Admin configuration for variant inventory management."""

    list_display = ('sku', 'product', 'price', 'colored_stock', 'status')
    list_filter = (
        ('product__category', admin.RelatedOnlyFieldListFilter),
        'status',
    )
    search_fields = ('sku', 'product__name')
    readonly_fields = ('status',)
    actions = ['export_to_csv']

    @admin.action(description='Export selected variants to CSV')
    def export_to_csv(self, request, queryset):
        """Export selected variants as a CSV inventory report."""
        response = HttpResponse(content_type='text/csv; charset=utf-8-sig')
        response['Content-Disposition'] = 'attachment; filename="inventory_report.csv"'

        writer = csv.writer(response)
        writer.writerow(['SKU', 'Product', 'Price', 'Stock', 'Status'])
        for item in queryset.select_related('product'):
            writer.writerow([item.sku, item.product.name, item.price, item.stock, item.status])
        return response

    @admin.display(description='Stock', ordering='stock')
    def colored_stock(self, obj):
        """Render stock in color to highlight low inventory."""
        return _colored(obj.stock)
