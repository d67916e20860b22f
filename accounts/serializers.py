"""Serializers for the accounts app.

Includes:
- Registration with strong validation (customers and vendors)
- Vendor-gated JWT login
- Profile, address and district reference data
"""

import re
import phonenumbers
from django.contrib.auth import get_user_model
from rest_framework import serializers
from rest_framework.exceptions import PermissionDenied
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from .models import Address, District, VendorProfile


User = get_user_model()

DEFAULT_PHONE_REGION = 'NP'


def normalize_phone(phone, field_name='phone_number'):
    """Parse a phone number and return it in E.164 form.

    Local numbers without a country code are read as Nepali numbers. Errors
    are keyed by ``field_name`` unless it is ``None``.
    """
    def error(message):
        return serializers.ValidationError(message if field_name is None else {field_name: message})

    phone_input = str(phone or '').strip()
    if not phone_input:
        raise error('Phone number is required.')

    clean_phone = re.sub(r'(?<!^)\+|[^\d+]', '', phone_input)
    if clean_phone.startswith('00'):
        clean_phone = '+' + clean_phone[2:]

    try:
        parsed_phone = phonenumbers.parse(clean_phone, None if clean_phone.startswith('+') else DEFAULT_PHONE_REGION)
        if not phonenumbers.is_valid_number(parsed_phone):
            raise ValueError
    except (phonenumbers.NumberParseException, ValueError):
        raise error(f'Phone number {phone_input} is not valid.')
    return phonenumbers.format_number(parsed_phone, phonenumbers.PhoneNumberFormat.E164)


# 1. Reference data
class DistrictSerializer(serializers.ModelSerializer):
    class Meta:
        model = District
        fields = ['id', 'name']


# 2. Address
class AddressSerializer(serializers.ModelSerializer):
    """Shipping address payload; the district must be a known district name."""

    class Meta:
        model = Address
        fields = ['id', 'province', 'district', 'city', 'street_address', 'landmark', 'updated_at']
        read_only_fields = ['updated_at']

    def validate_district(self, value):
        district = District.objects.filter(name__iexact=str(value).strip()).first()
        if district is None:
            raise serializers.ValidationError('Unknown district.')
        return district.name


# 3. Registration
class RegisterSerializer(serializers.ModelSerializer):
    """Create a new user (customer or seller) with strong validation.

    Sellers also get a :class:`VendorProfile`, which starts unapproved and
    unverified; they cannot log in until both flags are set.
    """

    password = serializers.CharField(write_only=True, min_length=8)
    user_type = serializers.ChoiceField(choices=User.USER_TYPE_CHOICES)
    phone_number = serializers.CharField(required=False, allow_blank=True)

    store_name = serializers.CharField(required=False, allow_blank=True)
    tax_number = serializers.CharField(required=False, allow_blank=True)
    district = serializers.CharField(required=False, allow_blank=True)

    class Meta:
        model = User
        fields = (
            'username', 'password', 'email', 'user_type',
            'phone_number', 'store_name', 'tax_number', 'district'
        )

    def validate_username(self, value):
        if not re.match(r'^[a-zA-Z0-9._]+$', value):
            raise serializers.ValidationError('Username may contain only letters, digits, dots and underscores.')
        if len(value) < 4:
            raise serializers.ValidationError('Username must be at least 4 characters long.')
        return value

    def validate_email(self, value):
        email_regex = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        if not re.match(email_regex, value or ''):
            raise serializers.ValidationError('Enter a valid email address.')
        value = value.lower().strip()
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError('A user with this email already exists.')
        return value

    def validate(self, attrs):
        attrs['phone_number'] = normalize_phone(attrs.get('phone_number'))

        if attrs.get('user_type') == 'seller':
            if not (attrs.get('store_name') or '').strip():
                raise serializers.ValidationError({'store_name': 'Store name is required for vendors.'})
            district = District.objects.filter(name__iexact=(attrs.get('district') or '').strip()).first()
            if district is None:
                raise serializers.ValidationError({'district': 'Vendors must select a known district.'})
            attrs['district'] = district
        else:
            attrs['store_name'] = None
            attrs['tax_number'] = None
            attrs['district'] = None
        return attrs

    def create(self, validated_data):
        store_name = validated_data.pop('store_name', None)
        tax_number = validated_data.pop('tax_number', None)
        district = validated_data.pop('district', None)

        user = User.objects.create_user(**validated_data)
        if user.user_type == 'seller':
            VendorProfile.objects.create(
                user=user,
                store_name=store_name.strip(),
                tax_number=(tax_number or '').strip() or None,
                district=district,
            )
        return user


# 4. Login
class VendorAwareTokenObtainPairSerializer(TokenObtainPairSerializer):
    """JWT login that refuses vendors who are not yet approved and verified."""

    def validate(self, attrs):
        data = super().validate(attrs)
        user = self.user
        if getattr(user, 'user_type', None) == 'seller':
            profile = VendorProfile.objects.filter(user=user).first()
            if profile is None or not profile.can_login:
                raise PermissionDenied('Vendor account is awaiting approval or verification.')
        data['user_type'] = user.user_type
        return data


# 5. Profile
class VendorProfileSerializer(serializers.ModelSerializer):
    district = serializers.SlugRelatedField(slug_field='name', queryset=District.objects.all(), allow_null=True, required=False)

    class Meta:
        model = VendorProfile
        fields = ['store_name', 'tax_number', 'district', 'is_approved', 'is_verified']
        read_only_fields = ['is_approved', 'is_verified']


class UserProfileSerializer(serializers.ModelSerializer):
    """Aggregated profile view: contact data, shipping address and vendor profile."""

    address = serializers.SerializerMethodField()
    vendor_profile = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ('id', 'username', 'email', 'phone_number', 'user_type', 'address', 'vendor_profile')
        read_only_fields = ('username', 'user_type', 'email')

    def validate_phone_number(self, value):
        return normalize_phone(value, field_name=None) if value else value

    def get_address(self, obj):
        address = Address.objects.filter(user=obj).first()
        return AddressSerializer(address).data if address else None

    def get_vendor_profile(self, obj):
        profile = VendorProfile.objects.filter(user=obj).select_related('district').first()
        return VendorProfileSerializer(profile).data if profile else None
