"""Product API routes (mounted under /api/ by the core router)."""

from rest_framework.routers import DefaultRouter
from .views import ProductViewSet, ProductCategoryViewSet, ProductVariantViewSet

router = DefaultRouter()
router.register(r'products', ProductViewSet, basename='product')
router.register(r'product-variants', ProductVariantViewSet, basename='product-variant')
router.register(r'categories', ProductCategoryViewSet, basename='category')

urlpatterns = router.urls
