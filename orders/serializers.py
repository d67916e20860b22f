"""DRF serializers for orders APIs."""

from decimal import Decimal

from rest_framework import serializers

from accounts.serializers import normalize_phone
from .models import Order, OrderItem, OrderStatus, PaymentMethod
from .services import OrderRequest


class OrderItemSerializer(serializers.ModelSerializer):
    """Order line as charged at order time."""

    product_name = serializers.ReadOnlyField(source='product.name')
    sku = serializers.SerializerMethodField()
    vendor_name = serializers.ReadOnlyField(source='vendor.username')
    subtotal = serializers.SerializerMethodField()

    class Meta:
        model = OrderItem
        fields = ['id', 'product', 'product_name', 'variant', 'sku', 'vendor', 'vendor_name', 'quantity', 'price', 'subtotal']

    def get_sku(self, obj):
        return obj.variant.sku if obj.variant_id else None

    def get_subtotal(self, obj):
        return str(obj.subtotal)


class OrderSerializer(serializers.ModelSerializer):
    """Main order representation: totals, payment/fulfillment state and lines.

    For vendor listings the ``items`` prefetch holds only that vendor's lines.
    """

    items = OrderItemSerializer(many=True, read_only=True)
    customer_username = serializers.ReadOnlyField(source='customer.username')
    shipping_address_details = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            'id',
            'customer_username',
            'status',
            'payment_status',
            'payment_method',
            'total_price',
            'shipping_fee',
            'service_charge',
            'promo_discount',
            'applied_promo_code',
            'm_transaction_id',
            'phone_number',
            'is_buy_now',
            'shipping_address_details',
            'delivered_at',
            'created_at',
            'updated_at',
            'items',
        ]
        read_only_fields = fields

    def get_shipping_address_details(self, obj):
        address = obj.shipping_address
        if address is None:
            return None
        return {
            'province': address.province,
            'district': address.district,
            'city': address.city,
            'street_address': address.street_address,
            'landmark': address.landmark,
        }


class ShippingAddressInputSerializer(serializers.Serializer):
    province = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=50)
    district = serializers.CharField(max_length=100)
    city = serializers.CharField(max_length=100)
    street_address = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=255)
    landmark = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=255)


class OrderCreateSerializer(serializers.Serializer):
    """Checkout payload for both cart orders and buy-now orders."""

    shipping_address = ShippingAddressInputSerializer()
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices)
    phone_number = serializers.CharField()
    service_charge = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0'), required=False, default=Decimal('0.00'))
    promo_code = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    instrument_code = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    is_buy_now = serializers.BooleanField(required=False, default=False)
    product_id = serializers.IntegerField(required=False, allow_null=True)
    variant_id = serializers.IntegerField(required=False, allow_null=True)
    quantity = serializers.IntegerField(required=False, min_value=1, default=1)

    def validate_phone_number(self, value):
        return normalize_phone(value, field_name=None)

    def validate(self, attrs):
        if attrs.get('is_buy_now') and not attrs.get('product_id'):
            raise serializers.ValidationError({'product_id': 'Buy-now orders need a product.'})
        return attrs

    def to_request(self) -> OrderRequest:
        data = self.validated_data
        return OrderRequest(
            shipping_address=dict(data['shipping_address']),
            payment_method=data['payment_method'],
            phone_number=data['phone_number'],
            service_charge=data.get('service_charge') or Decimal('0.00'),
            promo_code=data.get('promo_code') or None,
            is_buy_now=data.get('is_buy_now', False),
            product_id=data.get('product_id'),
            variant_id=data.get('variant_id'),
            quantity=data.get('quantity') or 1,
            instrument_code=data.get('instrument_code') or None,
        )


class OrderStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)


class PromoCheckSerializer(serializers.Serializer):
    code = serializers.CharField()
