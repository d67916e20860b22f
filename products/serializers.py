"""Serializers for the product catalog and variants."""

from rest_framework import serializers

from .models import DiscountType, ProductCategory, Product, ProductVariant


def _image_value_to_url(value, *, request=None):
    """Return a usable URL for an ImageField value.

    Absolute URLs stored in the column are returned as-is; real media files
    go through ``.url`` (and are made absolute when a request is available).
    """

    if not value:
        return None

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


class ProductCategorySerializer(serializers.ModelSerializer):
    """Product category serializer."""

    class Meta:
        model = ProductCategory
        fields = '__all__'


class ProductVariantSerializer(serializers.ModelSerializer):
    """Variant (SKU) serializer; ``status`` is derived from ``stock``."""

    product = serializers.PrimaryKeyRelatedField(queryset=Product.objects.all())
    product_image = serializers.SerializerMethodField()

    class Meta:
        model = ProductVariant
        fields = ['id', 'product', 'sku', 'name', 'price', 'stock', 'status', 'product_image']
        read_only_fields = ['status']

    def get_product_image(self, obj):
        request = self.context.get('request') if hasattr(self, 'context') else None
        return _image_value_to_url(obj.product_image, request=request)


class ProductSerializer(serializers.ModelSerializer):
    """Product serializer with nested variants and the effective unit price."""

    category_name = serializers.ReadOnlyField(source='category.category_name')
    seller_name = serializers.ReadOnlyField(source='seller.username')
    product_image = serializers.SerializerMethodField()
    final_price = serializers.SerializerMethodField()
    variants = ProductVariantSerializer(many=True, read_only=True)

    class Meta:
        model = Product
        fields = [
            'id', 'name', 'description', 'product_image', 'is_published',
            'base_price', 'discount', 'discount_type', 'final_price',
            'stock', 'status',
            'category', 'category_name', 'seller', 'seller_name', 'variants'
        ]
        # Seller comes from the logged-in user, status from stock
        read_only_fields = ['seller', 'status']

    def get_product_image(self, obj):
        request = self.context.get('request') if hasattr(self, 'context') else None
        return _image_value_to_url(obj.product_image, request=request)

    def get_final_price(self, obj):
        from orders.pricing import PricingEngine, quantize
        from .inventory import LineItem
        return str(quantize(PricingEngine().unit_price(LineItem(product=obj, variant=None, quantity=1))))

    def validate(self, attrs):
        discount = attrs.get('discount', getattr(self.instance, 'discount', 0)) or 0
        discount_type = attrs.get('discount_type', getattr(self.instance, 'discount_type', DiscountType.PERCENTAGE))
        if discount < 0:
            raise serializers.ValidationError({'discount': 'Discount cannot be negative.'})
        if discount_type == DiscountType.PERCENTAGE and discount > 100:
            raise serializers.ValidationError({'discount': 'Percentage discount cannot exceed 100.'})
        return attrs
