from django.contrib import admin

from .models import TenantMembership


@admin.register(TenantMembership)
class TenantMembershipAdmin(admin.ModelAdmin):
    list_display = ('user', 'tenant', 'role', 'is_active', 'joined_at')
    list_filter = ('role', 'is_active', 'tenant')
    search_fields = ('user__username', 'user__email', 'tenant__name')
    raw_id_fields = ('user',)
