from django.urls import path, include
from rest_framework.routers import SimpleRouter
from .views import WishlistViewSet, WishlistItemViewSet

router = SimpleRouter()

# /api/wishlist/items/
router.register(r'items', WishlistItemViewSet, basename='wishlist-items')

# /api/wishlist/
router.register(r'', WishlistViewSet, basename='wishlist-main')

urlpatterns = [
    path('', include(router.urls)),
]
