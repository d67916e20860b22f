"""URL routes for accounts APIs."""

from django.urls import path, include
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenRefreshView
from .views import LoginView, RegisterView, UserProfileViewSet, district_list

router = DefaultRouter()
router.register(r'profile', UserProfileViewSet, basename='user-profile')

urlpatterns = [
    # 1. Registration
    path('register/', RegisterView.as_view(), name='auth_register'),

    # 2. Login (full path: /api/accounts/login/)
    path('login/', LoginView.as_view(), name='token_obtain_pair'),
    path('token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),

    # 3. Reference data
    path('districts/', district_list, name='district_list'),

    # 4. ViewSet routes
    path('', include(router.urls)),
]
