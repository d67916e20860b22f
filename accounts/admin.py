from django.contrib import admin
from django.contrib.auth.admin import UserAdmin
from .models import User, Address, District, VendorProfile

# 1. Avoid double registration
if admin.site.is_registered(User):
    admin.site.unregister(User)

# 2. Inlines shown on the user page
class VendorProfileInline(admin.StackedInline):
    model = VendorProfile
    can_delete = False
    verbose_name_plural = 'Vendor Profile Info'

class AddressInline(admin.StackedInline):
    model = Address
    can_delete = False
    extra = 0

# 3. User admin
class CustomUserAdmin(UserAdmin):
    model = User
    list_display = ['username', 'email', 'user_type', 'is_staff', 'phone_number']

    fieldsets = UserAdmin.fieldsets + (
        ('Role & Contact', {'fields': ('user_type', 'phone_number')}),
    )

    # Sellers see their vendor profile, customers their shipping address
    def get_inline_instances(self, request, obj=None):
        if not obj:
            return []
        if obj.user_type == 'seller':
            return [VendorProfileInline(self.model, self.admin_site)]
        return [AddressInline(self.model, self.admin_site)]

@admin.register(VendorProfile)
class VendorProfileAdmin(admin.ModelAdmin):
    list_display = ('store_name', 'user', 'district', 'is_approved', 'is_verified')
    list_filter = ('is_approved', 'is_verified', 'district')
    search_fields = ('store_name', 'user__username', 'user__email')
    actions = ['approve_and_verify']

    @admin.action(description='Approve and verify selected vendors')
    def approve_and_verify(self, request, queryset):
        updated = queryset.update(is_approved=True, is_verified=True)
        self.message_user(request, f'{updated} vendor(s) can now log in.')

admin.site.register(User, CustomUserAdmin)
admin.site.register(District)
admin.site.register(Address)
