"""Cart and wishlist APIs for authenticated customers."""

from django.db import transaction
from rest_framework import mixins, viewsets, status
from rest_framework.exceptions import PermissionDenied, ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.exceptions import AlreadyInWishlist
from .models import ShoppingCart, ShoppingCartItem, Wishlist, WishlistItem
from .serializers import (
    ShoppingCartSerializer, ShoppingCartItemSerializer,
    WishlistSerializer, WishlistItemSerializer,
)


class CustomerOnlyMixin:
    """Deny seller accounts from using customer cart/wishlist endpoints."""

    permission_classes = [IsAuthenticated]

    def initial(self, request, *args, **kwargs):
        super().initial(request, *args, **kwargs)
        if getattr(request.user, 'user_type', None) == 'seller':
            raise PermissionDenied('Sellers cannot use the customer cart.')


class CartViewSet(CustomerOnlyMixin, viewsets.GenericViewSet):
    """Cart API: one cart per user, created on first access."""

    serializer_class = ShoppingCartSerializer

    def get_queryset(self):
        return ShoppingCart.objects.filter(user=self.request.user)

    def list(self, request, *args, **kwargs):
        """Return the user's single cart (create if missing)."""
        cart, _ = ShoppingCart.objects.get_or_create(user=request.user)
        return Response(self.get_serializer(cart).data)


class CartItemViewSet(CustomerOnlyMixin, viewsets.ModelViewSet):
    """Cart item API for adding/updating/removing items from the cart."""

    serializer_class = ShoppingCartItemSerializer

    def get_queryset(self):
        return ShoppingCartItem.objects.filter(cart__user=self.request.user).select_related('product', 'variant')

    def create(self, request, *args, **kwargs):
        """Add an item to the cart, merging quantity if it already exists."""
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        product = serializer.validated_data['product']
        variant = serializer.validated_data.get('variant')
        incoming_qty = serializer.validated_data.get('qty') or 1

        with transaction.atomic():
            cart, _ = ShoppingCart.objects.select_for_update().get_or_create(user=request.user)
            cart_item = cart.items.filter(product=product, variant=variant).first()
            created = cart_item is None
            if created:
                cart_item = ShoppingCartItem(cart=cart, product=product, variant=variant, qty=incoming_qty)
            else:
                cart_item.qty += incoming_qty

            # Re-run stock validation against the final quantity.
            final_serializer = self.get_serializer(cart_item, data={'quantity': cart_item.qty}, partial=True)
            final_serializer.is_valid(raise_exception=True)
            for attr, value in final_serializer.snapshot(product, variant).items():
                setattr(cart_item, attr, value)
            cart_item.save()
            cart.recalculate_total()

        return Response(self.get_serializer(cart_item).data, status=status.HTTP_201_CREATED if created else status.HTTP_200_OK)

    def update(self, request, *args, **kwargs):
        """Update cart item quantity with stock validation."""
        if isinstance(request.data, dict) and ({'product', 'variant'} & set(request.data)):
            raise ValidationError({'product': 'Changing the product of a cart item is not allowed.'})
        return super().update(request, *args, **kwargs)

    def perform_update(self, serializer):
        with transaction.atomic():
            item = serializer.save()
            item.cart.recalculate_total()

    def perform_destroy(self, instance):
        with transaction.atomic():
            cart = instance.cart
            instance.delete()
            cart.recalculate_total()


class WishlistViewSet(CustomerOnlyMixin, viewsets.GenericViewSet):
    serializer_class = WishlistSerializer

    def get_queryset(self):
        return Wishlist.objects.filter(user=self.request.user)

    def list(self, request, *args, **kwargs):
        wishlist, _ = Wishlist.objects.get_or_create(user=request.user)
        return Response(self.get_serializer(wishlist).data)


class WishlistItemViewSet(CustomerOnlyMixin, mixins.CreateModelMixin, mixins.ListModelMixin,
                          mixins.DestroyModelMixin, viewsets.GenericViewSet):
    """Add/remove wishlist items; adding the same product/variant twice is a conflict."""

    serializer_class = WishlistItemSerializer

    def get_queryset(self):
        return WishlistItem.objects.filter(wishlist__user=self.request.user).select_related('product', 'variant')

    def perform_create(self, serializer):
        wishlist, _ = Wishlist.objects.get_or_create(user=self.request.user)
        product = serializer.validated_data['product']
        variant = serializer.validated_data.get('variant')
        if wishlist.items.filter(product=product, variant=variant).exists():
            raise AlreadyInWishlist()
        serializer.save(wishlist=wishlist)
