"""Django admin configuration for cart and wishlist models."""

from django.contrib import admin
from .models import ShoppingCart, ShoppingCartItem, Wishlist, WishlistItem

# Cart contents shown on the cart page
class ShoppingCartItemInline(admin.TabularInline):
    """Inline display/edit for cart items within a cart."""

    model = ShoppingCartItem
    extra = 0
    readonly_fields = ('price', 'name', 'subtotal')

@admin.register(ShoppingCart)
class ShoppingCartAdmin(admin.ModelAdmin):
    """Admin configuration for shopping carts."""

    list_display = ('user', 'total', 'created_at')
    search_fields = ('user__username', 'user__email')
    inlines = [ShoppingCartItemInline]

class WishlistItemInline(admin.TabularInline):
    model = WishlistItem
    extra = 0

@admin.register(Wishlist)
class WishlistAdmin(admin.ModelAdmin):
    list_display = ('user', 'created_at')
    search_fields = ('user__username',)
    inlines = [WishlistItemInline]
