"""
Core App - Shared per-tenant settings and the status audit trail
"""
from decimal import Decimal

from django.conf import settings
from django.db import models

from apps.tenants.models import TenantMixin


class SystemSetting(TenantMixin):
    """Business thresholds and notification preferences per company"""
    margen_minimo = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal('15'),
        verbose_name="Margen mínimo (%)",
        help_text="Por debajo de este margen promedio la cotización requiere aprobación"
    )
    monto_alto = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal('500000'),
        verbose_name="Monto alto",
        help_text="Cotizaciones por encima de este total requieren un nivel de aprobación"
    )
    monto_muy_alto = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal('1000000'),
        verbose_name="Monto muy alto",
        help_text="Cotizaciones por encima de este total requieren dos niveles de aprobación"
    )
    dias_expiracion_aprobacion = models.PositiveIntegerField(default=7, verbose_name="Vigencia de aprobaciones (días)")
    sin_costo_margen_cero = models.BooleanField(
        default=True,
        verbose_name="Sin costos = margen 0",
        help_text="Si ningún ítem tiene costo cargado, considerar el margen promedio como 0%"
    )
    notificar_cliente_entregas = models.BooleanField(default=True, verbose_name="Notificar entregas al cliente")
    alert_email = models.EmailField(blank=True, null=True, verbose_name="E-mail de alertas internas")

    class Meta:
        verbose_name = "Configuración de Ventas"
        verbose_name_plural = "Configuraciones de Ventas"

    def __str__(self):
        return f"Configuración de {self.tenant.name}"

    @classmethod
    def get_settings(cls, tenant):
        if not tenant:
            return None
        obj, created = cls.objects.get_or_create(tenant=tenant)
        return obj

    @classmethod
    def current(cls, tenant):
        """Read-only lookup: the stored row or unsaved defaults"""
        return cls.objects.filter(tenant=tenant).first() or cls(tenant=tenant)


class ImmutableRecordError(Exception):
    """Raised when code tries to rewrite an append-only record"""


class AppendOnlyQuerySet(models.QuerySet):
    def update(self, **kwargs):
        raise ImmutableRecordError(f"{self.model.__name__} es de sólo inserción")

    def delete(self):
        raise ImmutableRecordError(f"{self.model.__name__} es de sólo inserción")


class AppendOnlyModel(models.Model):
    """Rows can be inserted, never updated nor deleted"""
    objects = AppendOnlyQuerySet.as_manager()

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ImmutableRecordError(f"{type(self).__name__} {self.pk} no puede modificarse")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ImmutableRecordError(f"{type(self).__name__} {self.pk} no puede eliminarse")


class StatusHistory(TenantMixin, AppendOnlyModel):
    """
    Immutable log of every accepted state transition.
    Written in the same database transaction as the state change it describes.
    """
    entidad = models.CharField(max_length=30, db_index=True)  # 'quote', 'delivery', 'client', ...
    entidad_id = models.CharField(max_length=64)

    estado_anterior = models.CharField(max_length=30, blank=True, null=True)
    estado_nuevo = models.CharField(max_length=30)
    motivo = models.TextField(blank=True, null=True)
    metadata = models.JSONField(default=dict, blank=True)

    idempotency_key = models.CharField(max_length=100, blank=True, null=True)

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at', 'id']
        verbose_name = "Historial de Estado"
        verbose_name_plural = "Historial de Estados"
        indexes = [
            models.Index(fields=['tenant', 'entidad', 'entidad_id'], name='core_hist_entity_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['tenant', 'idempotency_key'],
                condition=models.Q(idempotency_key__isnull=False),
                name='core_hist_idempotency_uniq',
            ),
        ]

    def __str__(self):
        return f"{self.entidad} {self.entidad_id}: {self.estado_anterior} -> {self.estado_nuevo}"
