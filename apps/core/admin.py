from django.contrib import admin

from .models import StatusHistory, SystemSetting


@admin.register(SystemSetting)
class SystemSettingAdmin(admin.ModelAdmin):
    list_display = ('tenant', 'margen_minimo', 'monto_alto', 'monto_muy_alto', 'dias_expiracion_aprobacion')
    list_filter = ('sin_costo_margen_cero',)


@admin.register(StatusHistory)
class StatusHistoryAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'entidad', 'entidad_id', 'estado_anterior', 'estado_nuevo', 'user')
    list_filter = ('entidad', 'estado_nuevo', 'tenant')
    search_fields = ('entidad_id', 'motivo')
    date_hierarchy = 'created_at'
    ordering = ['-created_at']

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
