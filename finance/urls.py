"""Payment webhook routes (mounted under /api/payments/)."""

from django.urls import path
from .views import nps_notification

urlpatterns = [
    path('notification/', nps_notification, name='nps_notification'),
]
