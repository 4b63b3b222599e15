from django.contrib import admin

from .models import Tenant


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    list_display = ('name', 'cuit', 'is_active', 'users_count', 'created_at')
    list_filter = ('is_active',)
    search_fields = ('name', 'cuit', 'slug')
    list_editable = ('is_active',)
    prepopulated_fields = {'slug': ('name',)}
