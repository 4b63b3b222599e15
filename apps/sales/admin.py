from django.contrib import admin

from .models import (
    ApprovalLevel,
    ApprovalWorkflow,
    Client,
    ClientBlockHistory,
    ClientPayment,
    Delivery,
    Invoice,
    Quote,
    QuoteItem,
    SaleOrder,
)


class DocumentAdmin(admin.ModelAdmin):
    """Estado is read-only: it changes only through the transition API"""
    list_filter = ('estado',)
    search_fields = ('numero',)
    readonly_fields = ('estado',)


@admin.register(Client)
class ClientAdmin(admin.ModelAdmin):
    list_display = ('nombre', 'cuit', 'saldo_actual', 'limite_credito', 'bloqueado', 'tenant')
    list_filter = ('bloqueado', 'tipo_bloqueo')
    search_fields = ('nombre', 'cuit', 'email')
    readonly_fields = ('bloqueado', 'tipo_bloqueo', 'motivo_bloqueo', 'bloqueado_at')


class QuoteItemInline(admin.TabularInline):
    model = QuoteItem
    extra = 0


@admin.register(Quote)
class QuoteAdmin(DocumentAdmin):
    list_display = ('numero', 'cliente', 'estado', 'total', 'vendedor', 'created_at')
    inlines = [QuoteItemInline]


@admin.register(SaleOrder)
class SaleOrderAdmin(DocumentAdmin):
    list_display = ('numero', 'cliente', 'estado', 'total', 'created_at')


@admin.register(Delivery)
class DeliveryAdmin(DocumentAdmin):
    list_display = ('numero', 'orden', 'estado', 'conductor_nombre', 'vehiculo', 'fecha_despacho')


@admin.register(Invoice)
class InvoiceAdmin(DocumentAdmin):
    list_display = ('numero', 'cliente', 'estado', 'total', 'saldo_pendiente', 'fecha_vencimiento')


@admin.register(ClientPayment)
class ClientPaymentAdmin(DocumentAdmin):
    list_display = ('numero', 'cliente', 'estado', 'total', 'medio_pago')


class ApprovalLevelInline(admin.TabularInline):
    model = ApprovalLevel
    extra = 0
    readonly_fields = ('nivel', 'rol_requerido', 'estado', 'aprobador', 'comentario', 'resuelto_at')
    can_delete = False


@admin.register(ApprovalWorkflow)
class ApprovalWorkflowAdmin(admin.ModelAdmin):
    list_display = ('cotizacion', 'motivo', 'niveles_requeridos', 'estado', 'expira_at')
    list_filter = ('estado', 'motivo')
    inlines = [ApprovalLevelInline]
    readonly_fields = ('estado', 'resuelto_at')


@admin.register(ClientBlockHistory)
class ClientBlockHistoryAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'cliente', 'tipo', 'tipo_bloqueo', 'user')
    list_filter = ('tipo', 'tipo_bloqueo')

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
