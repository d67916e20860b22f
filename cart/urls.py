from django.urls import path, include
from rest_framework.routers import SimpleRouter
from .views import CartViewSet, CartItemViewSet

router = SimpleRouter()

# /api/cart/cart-items/
router.register(r'cart-items', CartItemViewSet, basename='cart-items')

# /api/cart/
router.register(r'', CartViewSet, basename='cart-main')

urlpatterns = [
    path('', include(router.urls)),
]
