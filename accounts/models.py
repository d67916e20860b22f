"""Database models for users, vendors, districts and shipping addresses."""

from django.db import models
from django.contrib.auth.models import AbstractUser

# 1. The base user model
class User(AbstractUser):
    """Custom user model.

    Extends Django's :class:`~django.contrib.auth.models.AbstractUser` with:
    - ``user_type`` to separate customer vs seller (vendor) flows
    - optional ``phone_number``
    """

    USER_TYPE_CHOICES = (
        ('customer', 'Customer'),
        ('seller', 'Seller'),
    )
    phone_number = models.CharField(max_length=20, null=True, blank=True)
    user_type = models.CharField(max_length=10, choices=USER_TYPE_CHOICES, default='customer')

    def __str__(self):
        return self.username

# 2. Districts (shipping zones)
class District(models.Model):
    """Known district; destinations and vendor locations must reference one."""

    name = models.CharField(max_length=100, unique=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.name

class Address(models.Model):
    """The customer's latest shipping address (at most one per user)."""

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='address')
    province = models.CharField(max_length=50, null=True, blank=True)
    district = models.CharField(max_length=100)
    city = models.CharField(max_length=100)
    street_address = models.CharField(max_length=255, null=True, blank=True)
    landmark = models.CharField(max_length=255, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Address"
        verbose_name_plural = "Addresses"

    def __str__(self):
        return f"{self.street_address or self.city}, {self.district}"

# 3. Vendor profile
class VendorProfile(models.Model):
    """Seller-specific data: store identity, location and onboarding state."""

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='vendor_profile')
    store_name = models.CharField(max_length=255)
    tax_number = models.CharField(max_length=50, blank=True, null=True)
    district = models.ForeignKey(District, on_delete=models.SET_NULL, null=True, blank=True, related_name='vendors')
    is_approved = models.BooleanField(default=False)
    is_verified = models.BooleanField(default=False)

    @property
    def can_login(self):
        return self.is_approved and self.is_verified

    def __str__(self):
        return self.store_name
