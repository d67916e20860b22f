"""Database models for shopping carts and wishlists."""

from decimal import Decimal

from django.db import models
from django.conf import settings
from products.models import Product, ProductVariant

class ShoppingCart(models.Model):
    """Pre-order staging area; exactly one per user."""

    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='cart')
    total = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"Cart of {self.user.username}"

    def recalculate_total(self, save=True):
        self.total = sum((item.subtotal for item in self.items.all()), Decimal('0.00'))
        if save:
            self.save(update_fields=['total'])
        return self.total

    def clear(self):
        """Remove every item and reset the total to zero."""
        self.items.all().delete()
        self.total = Decimal('0.00')
        self.save(update_fields=['total'])

class ShoppingCartItem(models.Model):
    """Line item inside a cart with a snapshot of the catalog data at add time."""

    cart = models.ForeignKey(ShoppingCart, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='cart_items')
    variant = models.ForeignKey(ProductVariant, on_delete=models.CASCADE, null=True, blank=True, related_name='cart_items')
    qty = models.PositiveIntegerField(default=1)
    price = models.DecimalField(max_digits=10, decimal_places=2)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default='')
    image = models.CharField(max_length=500, blank=True, default='')

    def __str__(self):
        return f"{self.qty} x {self.name}"

    @property
    def subtotal(self):
        return self.price * self.qty


class Wishlist(models.Model):
    """Saved-for-later products; one per user."""

    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='wishlist')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"Wishlist of {self.user.username}"


class WishlistItem(models.Model):
    wishlist = models.ForeignKey(Wishlist, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='wishlist_items')
    variant = models.ForeignKey(ProductVariant, on_delete=models.CASCADE, null=True, blank=True, related_name='wishlist_items')
    added_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['wishlist', 'product', 'variant'], name='unique_wishlist_product_variant'),
        ]

    def __str__(self):
        return f"{self.product.name} in {self.wishlist}"
