"""Products API views.

Includes CRUD for products/variants and read-only access to categories.
Filtering/search/ordering/pagination are provided for list endpoints.
"""

from rest_framework import viewsets, filters
from rest_framework.exceptions import PermissionDenied
from rest_framework.pagination import PageNumberPagination
from django_filters.rest_framework import DjangoFilterBackend

from .models import Product, ProductCategory, ProductVariant
from .serializers import ProductSerializer, ProductCategorySerializer, ProductVariantSerializer
from .permissions import IsSellerOrReadOnly, IsSellerOrReadOnlyForVariant


# 1. Pagination
class StandardResultsSetPagination(PageNumberPagination):
    """Default pagination used by most API endpoints."""
    page_size = 20
    page_size_query_param = 'page_size'
    max_page_size = 100


# 2. Products
class ProductViewSet(viewsets.ModelViewSet):
    """Products CRUD.

    - Public users: can read published products only.
    - Sellers: can CRUD only their own products.
    """

    queryset = Product.objects.all()
    serializer_class = ProductSerializer
    pagination_class = StandardResultsSetPagination

    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['category', 'seller', 'status']
    search_fields = ['name', 'description']
    ordering_fields = ['name', 'base_price', 'stock']

    permission_classes = [IsSellerOrReadOnly]

    def get_queryset(self):
        user = self.request.user
        qs = Product.objects.select_related('category', 'seller').prefetch_related('variants')
        if user.is_authenticated and getattr(user, 'user_type', None) == 'seller':
            return qs.filter(seller=user)
        return qs.filter(is_published=True)

    def perform_create(self, serializer):
        # The product always belongs to the logged-in seller
        serializer.save(seller=self.request.user)


# 3. Categories
class ProductCategoryViewSet(viewsets.ReadOnlyModelViewSet):
    """Read-only product categories."""
    queryset = ProductCategory.objects.order_by('category_name')
    serializer_class = ProductCategorySerializer
    permission_classes = []


# 4. Variants
class ProductVariantViewSet(viewsets.ModelViewSet):
    """Variant CRUD; sellers manage variants of their own products."""

    serializer_class = ProductVariantSerializer
    permission_classes = [IsSellerOrReadOnlyForVariant]
    pagination_class = StandardResultsSetPagination

    def get_queryset(self):
        qs = ProductVariant.objects.select_related('product', 'product__seller').order_by('id')

        product_id = self.request.query_params.get('product')
        if product_id:
            qs = qs.filter(product_id=product_id)

        user = self.request.user
        if user.is_authenticated and getattr(user, 'user_type', None) == 'seller':
            return qs.filter(product__seller=user)
        return qs.filter(product__is_published=True)

    def _check_owner(self, serializer):
        product = serializer.validated_data.get('product')
        if product is not None and product.seller_id != self.request.user.id:
            raise PermissionDenied('You can only add variants to your own products.')

    def perform_create(self, serializer):
        self._check_owner(serializer)
        serializer.save()

    def perform_update(self, serializer):
        self._check_owner(serializer)
        serializer.save()
