"""DRF serializers for cart and wishlist APIs."""

from rest_framework import serializers

from orders.pricing import PricingEngine, quantize
from products.inventory import LineItem
from products.models import Product, ProductVariant
from .models import ShoppingCart, ShoppingCartItem, Wishlist, WishlistItem


def _image_value_to_url(value, *, request=None):
    if not value:
        return ''

    raw = str(value)
    if raw.startswith('http://') or raw.startswith('https://'):
        return raw

    try:
        url = value.url
    except ValueError:
        return raw

    if request is not None:
        return request.build_absolute_uri(url)
    return url


def resolve_variant(product, variant):
    """Check the variant belongs to the product and is given when the product has variants."""
    if variant is not None and variant.product_id != product.id:
        raise serializers.ValidationError({'variant': 'Variant does not belong to this product.'})
    if variant is None and product.variants.exists():
        raise serializers.ValidationError({'variant': 'This product has variants; choose one.'})
    return variant


class ShoppingCartItemSerializer(serializers.ModelSerializer):
    """Serializer for cart line items.

    Normalizes field names for the frontend (``qty`` -> ``quantity``). Price,
    name, description and image are snapshotted when the item is added.
    """

    product = serializers.PrimaryKeyRelatedField(queryset=Product.objects.all())
    variant = serializers.PrimaryKeyRelatedField(queryset=ProductVariant.objects.all(), required=False, allow_null=True)
    quantity = serializers.IntegerField(source='qty', min_value=1)
    stock = serializers.SerializerMethodField()
    subtotal = serializers.SerializerMethodField()

    class Meta:
        model = ShoppingCartItem
        fields = ['id', 'product', 'variant', 'name', 'description', 'image', 'price', 'stock', 'quantity', 'subtotal']
        read_only_fields = ['name', 'description', 'image', 'price']

    def validate(self, attrs):
        """Validate product visibility, variant ownership and quantity against stock."""
        instance = getattr(self, 'instance', None)
        product = attrs.get('product') or getattr(instance, 'product', None)
        variant = attrs['variant'] if 'variant' in attrs else getattr(instance, 'variant', None)
        desired_qty = attrs.get('qty') or getattr(instance, 'qty', None) or 1

        if product is None:
            return attrs
        if not product.is_published:
            raise serializers.ValidationError({'product': 'This product is not available.'})
        resolve_variant(product, variant)

        stock = variant.stock if variant is not None else product.stock
        if desired_qty > stock:
            raise serializers.ValidationError({'quantity': f'Only {stock} item(s) available in stock.'})
        return attrs

    def snapshot(self, product, variant):
        """Catalog fields copied onto the cart item at add time."""
        request = self.context.get('request')
        image_field = (variant.product_image if variant is not None and variant.product_image else None) or product.product_image
        name = product.name if variant is None or not variant.name else f'{product.name} - {variant.name}'
        return {
            'price': quantize(PricingEngine().unit_price(LineItem(product=product, variant=variant, quantity=1))),
            'name': name,
            'description': product.description or '',
            'image': _image_value_to_url(image_field, request=request),
        }

    def get_stock(self, obj):
        return obj.variant.stock if obj.variant_id else obj.product.stock

    def get_subtotal(self, obj):
        return str(obj.subtotal)


class ShoppingCartSerializer(serializers.ModelSerializer):
    """Serializer for the shopping cart including nested items."""

    items = ShoppingCartItemSerializer(many=True, read_only=True)

    class Meta:
        model = ShoppingCart
        fields = ['id', 'user', 'items', 'total']


class WishlistItemSerializer(serializers.ModelSerializer):
    product = serializers.PrimaryKeyRelatedField(queryset=Product.objects.filter(is_published=True))
    variant = serializers.PrimaryKeyRelatedField(queryset=ProductVariant.objects.all(), required=False, allow_null=True)
    product_name = serializers.ReadOnlyField(source='product.name')
    status = serializers.SerializerMethodField()

    class Meta:
        model = WishlistItem
        fields = ['id', 'product', 'variant', 'product_name', 'status', 'added_at']

    def validate(self, attrs):
        variant = attrs.get('variant')
        if variant is not None and variant.product_id != attrs['product'].id:
            raise serializers.ValidationError({'variant': 'Variant does not belong to this product.'})
        return attrs

    def get_status(self, obj):
        return obj.variant.status if obj.variant_id else obj.product.status


class WishlistSerializer(serializers.ModelSerializer):
    items = WishlistItemSerializer(many=True, read_only=True)

    class Meta:
        model = Wishlist
        fields = ['id', 'user', 'items']
