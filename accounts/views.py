"""Accounts app views.

Contains:
- Registration and vendor-gated JWT login
- Profile APIs (contact data, shipping address, vendor profile)
- Reference data (districts)
"""

from django.db import transaction
from rest_framework import generics, status, viewsets
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.views import TokenObtainPairView

from .addresses import AddressResolver
from .models import Address, District, VendorProfile
from .serializers import (
    AddressSerializer,
    DistrictSerializer,
    RegisterSerializer,
    UserProfileSerializer,
    VendorAwareTokenObtainPairSerializer,
    VendorProfileSerializer,
)


class RegisterView(generics.CreateAPIView):
    """Public registration endpoint."""
    queryset = RegisterSerializer.Meta.model.objects.all()
    permission_classes = [AllowAny]
    serializer_class = RegisterSerializer


class LoginView(TokenObtainPairView):
    """JWT login; vendors must be approved and verified first."""
    serializer_class = VendorAwareTokenObtainPairSerializer


@api_view(['GET'])
@permission_classes([AllowAny])
def district_list(request):
    """List known districts for address and vendor forms."""
    return Response(DistrictSerializer(District.objects.all(), many=True).data)


class UserProfileViewSet(viewsets.GenericViewSet):
    """Authenticated profile management.

    - Everyone: read/update contact data through ``me``.
    - Customers: read/replace the single shipping address.
    - Sellers: update store data (store_name, tax_number, district) through ``me``.
    """
    permission_classes = [IsAuthenticated]
    serializer_class = UserProfileSerializer

    @action(detail=False, methods=['get', 'put', 'patch'])
    def me(self, request):
        """Get or update the authenticated user's profile."""
        user = request.user
        if request.method == 'GET':
            return Response(self.get_serializer(user).data)

        serializer = self.get_serializer(user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        with transaction.atomic():
            serializer.save()
            if getattr(user, 'user_type', None) == 'seller':
                vendor_fields = {k: request.data[k] for k in ('store_name', 'tax_number', 'district') if k in request.data}
                if vendor_fields:
                    profile = VendorProfile.objects.filter(user=user).first()
                    vendor_serializer = VendorProfileSerializer(profile, data=vendor_fields, partial=True)
                    vendor_serializer.is_valid(raise_exception=True)
                    vendor_serializer.save(user=user)

        user.refresh_from_db()
        return Response(self.get_serializer(user).data)

    @action(detail=False, methods=['get', 'put'], url_path='address')
    def address(self, request):
        """Get or replace the user's shipping address (one per user)."""
        if request.method == 'GET':
            address = Address.objects.filter(user=request.user).first()
            if address is None:
                return Response({'detail': 'No address saved yet.'}, status=status.HTTP_404_NOT_FOUND)
            return Response(AddressSerializer(address).data)

        serializer = AddressSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        address = AddressResolver().resolve(request.user, serializer.validated_data)
        return Response(AddressSerializer(address).data)
