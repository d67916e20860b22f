"""Database models for the product catalog and variants."""

from django.db import models
from django.conf import settings


class InventoryStatus(models.TextChoices):
    AVAILABLE = 'AVAILABLE', 'Available'
    LOW_STOCK = 'LOW_STOCK', 'Low stock'
    OUT_OF_STOCK = 'OUT_OF_STOCK', 'Out of stock'


class DiscountType(models.TextChoices):
    PERCENTAGE = 'PERCENTAGE', 'Percentage'
    FLAT = 'FLAT', 'Flat'


LOW_STOCK_THRESHOLD = 5


def inventory_status_for(stock: int) -> str:
    """Derive the inventory status from a stock count (thresholds 0 and 5)."""
    if stock <= 0:
        return InventoryStatus.OUT_OF_STOCK
    if stock < LOW_STOCK_THRESHOLD:
        return InventoryStatus.LOW_STOCK
    return InventoryStatus.AVAILABLE

# 1. Categories
class ProductCategory(models.Model):
    """Product category with optional parent-child hierarchy."""

    parent_category = models.ForeignKey('self', on_delete=models.SET_NULL, null=True, blank=True, related_name='subcategories')
    category_name = models.CharField(max_length=255)

    def __str__(self):
        return self.category_name
    class Meta:
        verbose_name_plural = "Product Categories"

# 2. Products (owned by a vendor)
class Product(models.Model):
    """Top-level product entity owned by a seller.

    A product without variants tracks ``stock`` itself; a product with
    variants delegates stock tracking to :class:`ProductVariant`.
    """

    seller = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='products',
        limit_choices_to={'user_type': 'seller'}
    )
    category = models.ForeignKey(ProductCategory, on_delete=models.SET_NULL, null=True, blank=True, related_name='products')
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default='')
    product_image = models.ImageField(upload_to='products/', null=True, blank=True)
    is_published = models.BooleanField(default=True)
    base_price = models.DecimalField(max_digits=10, decimal_places=2)
    discount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    discount_type = models.CharField(max_length=20, choices=DiscountType.choices, default=DiscountType.PERCENTAGE)
    stock = models.PositiveIntegerField(default=0)
    status = models.CharField(max_length=20, choices=InventoryStatus.choices, default=InventoryStatus.AVAILABLE)

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        update_fields = kwargs.get('update_fields')
        if update_fields is None or 'stock' in update_fields:
            self.status = inventory_status_for(self.stock)
            if update_fields is not None and 'status' not in update_fields:
                kwargs['update_fields'] = list(update_fields) + ['status']
        super().save(*args, **kwargs)

    class Meta:
        ordering = ['id']

# 3. Variants (price, stock, SKU)
class ProductVariant(models.Model):
    """Specific purchasable SKU for a product; carries its own price and stock."""

    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='variants')
    sku = models.CharField(max_length=255, unique=True)
    name = models.CharField(max_length=255, blank=True, default='')
    price = models.DecimalField(max_digits=10, decimal_places=2)
    stock = models.PositiveIntegerField(default=0)
    status = models.CharField(max_length=20, choices=InventoryStatus.choices, default=InventoryStatus.AVAILABLE)
    product_image = models.ImageField(upload_to='product_variants/', null=True, blank=True)

    def __str__(self):
        return f"{self.product.name} - SKU: {self.sku}"

    def save(self, *args, **kwargs):
        update_fields = kwargs.get('update_fields')
        if update_fields is None or 'stock' in update_fields:
            self.status = inventory_status_for(self.stock)
            if update_fields is not None and 'status' not in update_fields:
                kwargs['update_fields'] = list(update_fields) + ['status']
        super().save(*args, **kwargs)
