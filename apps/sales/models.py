"""
Sales App - Clients, sales documents and quote approvals

Models:
    - Client: cliente con límite de crédito, saldo y bloqueo
    - Quote / QuoteItem: cotización y sus ítems (precio y costo unitario)
    - SaleOrder: orden de venta, opcionalmente originada en una cotización
    - Delivery: entrega de una orden (conductor, vehículo, despacho)
    - Invoice: factura de venta
    - ClientPayment: cobranza recibida de un cliente
    - ApprovalWorkflow / ApprovalLevel: aprobación multinivel de cotizaciones
    - ClientBlockHistory: historial de bloqueos y desbloqueos

The ``estado`` field of every document is written only by the transition
service (apps.sales.services.transitions).
"""
from __future__ import annotations

import logging
import re
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from apps.core.models import AppendOnlyModel
from apps.tenants.models import TenantMixin

from .services import registry
from .services.registry import DocumentType

logger = logging.getLogger(__name__)


def validate_cuit(value: str) -> None:
    """
    Valida CUIT/CUIL argentino (11 dígitos con dígito verificador).

    Raises:
        ValidationError: Si el CUIT es inválido
    """
    cuit = re.sub(r'[^0-9]', '', value or '')

    if len(cuit) != 11:
        raise ValidationError('El CUIT debe tener 11 dígitos')

    pesos = [5, 4, 3, 2, 7, 6, 5, 4, 3, 2]
    soma = sum(int(digito) * peso for digito, peso in zip(cuit[:10], pesos))
    verificador = 11 - (soma % 11)
    if verificador == 11:
        verificador = 0
    elif verificador == 10:
        verificador = 9

    if int(cuit[10]) != verificador:
        raise ValidationError('CUIT inválido')


def format_cuit(cuit: str) -> str:
    """Formatea CUIT para mostrar (XX-XXXXXXXX-X)"""
    cuit = re.sub(r'[^0-9]', '', cuit or '')
    if len(cuit) == 11:
        return f'{cuit[:2]}-{cuit[2:10]}-{cuit[10]}'
    return cuit


class BlockType(models.TextChoices):
    CREDITO = 'CREDITO', 'Límite de crédito excedido'
    MORA = 'MORA', 'Mora'
    MANUAL = 'MANUAL', 'Manual'
    CHEQUE_RECHAZADO = 'CHEQUE_RECHAZADO', 'Cheque rechazado'


class Client(TenantMixin):
    nombre = models.CharField(max_length=200, verbose_name="Razón Social")
    cuit = models.CharField(max_length=13, blank=True, null=True, validators=[validate_cuit], verbose_name="CUIT")
    email = models.EmailField(blank=True, null=True)
    telefono = models.CharField(max_length=30, blank=True, verbose_name="Teléfono")
    direccion = models.CharField(max_length=255, blank=True, verbose_name="Dirección")
    limite_credito = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0'), verbose_name="Límite de crédito")
    saldo_actual = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0'), verbose_name="Saldo actual")
    bloqueado = models.BooleanField(default=False, verbose_name="Bloqueado")
    tipo_bloqueo = models.CharField(max_length=20, choices=BlockType.choices, blank=True, null=True)
    motivo_bloqueo = models.TextField(blank=True, null=True)
    bloqueado_at = models.DateTimeField(blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Cliente"
        verbose_name_plural = "Clientes"
        ordering = ['nombre']

    def __str__(self):
        return self.nombre

    def save(self, *args, **kwargs):
        if self.cuit:
            self.cuit = format_cuit(self.cuit)
        super().save(*args, **kwargs)

    @property
    def credito_disponible(self):
        return self.limite_credito - self.saldo_actual


class SalesDocument(TenantMixin):
    """
    Campos comunes de los documentos con ciclo de vida.
    Subclasses declare DOCUMENT_TYPE and NUMBER_PREFIX.
    """
    DOCUMENT_TYPE = None
    NUMBER_PREFIX = 'DOC'

    numero = models.CharField(max_length=30, blank=True, verbose_name="Número")
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    _allow_state_change = False  # Set only by the transition service

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        is_new = self._state.adding

        if is_new:
            if not self.estado:
                self.estado = registry.initial_state(self.DOCUMENT_TYPE)
            if not self.numero:
                self.numero = self.generate_numero()
        elif not getattr(self, '_allow_state_change', False):
            persisted = type(self).objects.filter(pk=self.pk).values_list('estado', flat=True).first()
            if persisted is not None and persisted != self.estado:
                logger.warning(
                    "Cambio de estado fuera del servicio de transiciones ignorado: %s %s (%s -> %s)",
                    self.DOCUMENT_TYPE, self.pk, persisted, self.estado
                )
                self.estado = persisted

        super().save(*args, **kwargs)

    def generate_numero(self):
        seq = type(self).objects.filter(tenant_id=self.tenant_id).count() + 1
        numero = f"{self.NUMBER_PREFIX}-{seq:06d}"
        while type(self).objects.filter(tenant_id=self.tenant_id, numero=numero).exists():
            seq += 1
            numero = f"{self.NUMBER_PREFIX}-{seq:06d}"
        return numero

    def __str__(self):
        return f"{self.numero} ({self.estado})"

    @property
    def is_final(self):
        return registry.is_final_state(self.DOCUMENT_TYPE, self.estado)


class Quote(SalesDocument):
    DOCUMENT_TYPE = DocumentType.QUOTE
    NUMBER_PREFIX = 'COT'

    cliente = models.ForeignKey(Client, on_delete=models.PROTECT, related_name='cotizaciones')
    vendedor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='cotizaciones'
    )
    estado = models.CharField(max_length=30, choices=registry.choices(DocumentType.QUOTE), default='BORRADOR', db_index=True)
    total = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0'))
    fecha_validez = models.DateField(blank=True, null=True, verbose_name="Válida hasta")
    fecha_envio = models.DateTimeField(blank=True, null=True)
    fecha_cierre = models.DateTimeField(blank=True, null=True)
    motivo_perdida = models.TextField(blank=True, null=True)
    notas = models.TextField(blank=True)

    class Meta:
        verbose_name = "Cotización"
        verbose_name_plural = "Cotizaciones"
        ordering = ['-created_at']
        unique_together = ['tenant', 'numero']

    def calculate_total(self):
        return sum((item.subtotal for item in self.items.all()), Decimal('0'))


class QuoteItem(models.Model):
    cotizacion = models.ForeignKey(Quote, on_delete=models.CASCADE, related_name='items')
    descripcion = models.CharField(max_length=255, verbose_name="Producto / Descripción")
    cantidad = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('1'))
    precio_unitario = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0'))
    costo_unitario = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0'))

    class Meta:
        verbose_name = "Ítem de Cotización"
        verbose_name_plural = "Ítems de Cotización"

    def __str__(self):
        return f"{self.descripcion} x {self.cantidad}"

    @property
    def subtotal(self):
        return self.cantidad * self.precio_unitario

    @property
    def margen(self):
        """Margen porcentual del ítem, None si no hay costo o precio"""
        if not self.costo_unitario or not self.precio_unitario:
            return None
        return (self.precio_unitario - self.costo_unitario) / self.precio_unitario * 100


class SaleOrder(SalesDocument):
    DOCUMENT_TYPE = DocumentType.SALE_ORDER
    NUMBER_PREFIX = 'OV'

    cliente = models.ForeignKey(Client, on_delete=models.PROTECT, related_name='ordenes')
    cotizacion = models.ForeignKey(Quote, on_delete=models.SET_NULL, null=True, blank=True, related_name='ordenes')
    vendedor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='ordenes_venta'
    )
    estado = models.CharField(max_length=30, choices=registry.choices(DocumentType.SALE_ORDER), default='BORRADOR', db_index=True)
    total = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0'))
    fecha_confirmacion = models.DateTimeField(blank=True, null=True)
    motivo_cancelacion = models.TextField(blank=True, null=True)

    class Meta:
        verbose_name = "Orden de Venta"
        verbose_name_plural = "Órdenes de Venta"
        ordering = ['-created_at']
        unique_together = ['tenant', 'numero']


class Delivery(SalesDocument):
    DOCUMENT_TYPE = DocumentType.DELIVERY
    NUMBER_PREFIX = 'ENT'

    orden = models.ForeignKey(SaleOrder, on_delete=models.CASCADE, related_name='entregas')
    estado = models.CharField(max_length=30, choices=registry.choices(DocumentType.DELIVERY), default='PENDIENTE', db_index=True)
    direccion = models.CharField(max_length=255, blank=True, verbose_name="Dirección de entrega")
    conductor_nombre = models.CharField(max_length=120, blank=True, null=True, verbose_name="Conductor")
    vehiculo = models.CharField(max_length=60, blank=True, null=True, verbose_name="Vehículo / Patente")
    fecha_programada = models.DateField(blank=True, null=True)
    fecha_despacho = models.DateTimeField(blank=True, null=True)
    fecha_entrega = models.DateTimeField(blank=True, null=True)
    receptor_nombre = models.CharField(max_length=120, blank=True, null=True, verbose_name="Recibió")
    motivo_falla = models.TextField(blank=True, null=True)
    intentos = models.PositiveIntegerField(default=0, verbose_name="Intentos de despacho")
    notas = models.TextField(blank=True)

    class Meta:
        verbose_name = "Entrega"
        verbose_name_plural = "Entregas"
        ordering = ['-created_at']
        unique_together = ['tenant', 'numero']

    @property
    def cliente(self):
        return self.orden.cliente


class Invoice(SalesDocument):
    DOCUMENT_TYPE = DocumentType.INVOICE
    NUMBER_PREFIX = 'FAC'

    cliente = models.ForeignKey(Client, on_delete=models.PROTECT, related_name='facturas')
    orden = models.ForeignKey(SaleOrder, on_delete=models.SET_NULL, null=True, blank=True, related_name='facturas')
    estado = models.CharField(max_length=30, choices=registry.choices(DocumentType.INVOICE), default='BORRADOR', db_index=True)
    total = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0'))
    saldo_pendiente = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0'))
    fecha_emision = models.DateTimeField(blank=True, null=True)
    fecha_vencimiento = models.DateField(blank=True, null=True)
    motivo_anulacion = models.TextField(blank=True, null=True)

    class Meta:
        verbose_name = "Factura"
        verbose_name_plural = "Facturas"
        ordering = ['-created_at']
        unique_together = ['tenant', 'numero']


class PaymentMethod(models.TextChoices):
    EFECTIVO = 'EFECTIVO', 'Efectivo'
    TRANSFERENCIA = 'TRANSFERENCIA', 'Transferencia'
    CHEQUE = 'CHEQUE', 'Cheque'
    TARJETA = 'TARJETA', 'Tarjeta'


class ClientPayment(SalesDocument):
    DOCUMENT_TYPE = DocumentType.CLIENT_PAYMENT
    NUMBER_PREFIX = 'REC'

    cliente = models.ForeignKey(Client, on_delete=models.PROTECT, related_name='pagos')
    estado = models.CharField(max_length=30, choices=registry.choices(DocumentType.CLIENT_PAYMENT), default='PENDIENTE', db_index=True)
    total = models.DecimalField(max_digits=14, decimal_places=2)
    medio_pago = models.CharField(max_length=20, choices=PaymentMethod.choices, default=PaymentMethod.TRANSFERENCIA)
    fecha_confirmacion = models.DateTimeField(blank=True, null=True)
    motivo_rechazo = models.TextField(blank=True, null=True)
    notas = models.TextField(blank=True)

    class Meta:
        verbose_name = "Cobranza"
        verbose_name_plural = "Cobranzas"
        ordering = ['-created_at']
        unique_together = ['tenant', 'numero']


class ApprovalReason(models.TextChoices):
    MARGEN_BAJO = 'MARGEN_BAJO', 'Margen bajo'
    MONTO_ALTO = 'MONTO_ALTO', 'Monto alto'


class WorkflowStatus(models.TextChoices):
    PENDIENTE = 'PENDIENTE', 'Pendiente'
    APROBADO = 'APROBADO', 'Aprobado'
    RECHAZADO = 'RECHAZADO', 'Rechazado'
    EXPIRADO = 'EXPIRADO', 'Expirado'


class LevelStatus(models.TextChoices):
    PENDIENTE = 'PENDIENTE', 'Pendiente'
    APROBADO = 'APROBADO', 'Aprobado'
    RECHAZADO = 'RECHAZADO', 'Rechazado'


class ApprovalWorkflow(TenantMixin):
    cotizacion = models.ForeignKey(Quote, on_delete=models.CASCADE, related_name='aprobaciones')
    motivo = models.CharField(max_length=20, choices=ApprovalReason.choices)
    margen_actual = models.DecimalField(max_digits=7, decimal_places=2, null=True, blank=True)
    margen_minimo = models.DecimalField(max_digits=5, decimal_places=2)
    monto_total = models.DecimalField(max_digits=14, decimal_places=2)
    niveles_requeridos = models.PositiveSmallIntegerField(default=1)
    estado = models.CharField(max_length=20, choices=WorkflowStatus.choices, default=WorkflowStatus.PENDIENTE, db_index=True)
    solicitado_por = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='aprobaciones_solicitadas'
    )
    expira_at = models.DateTimeField()
    resuelto_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Flujo de Aprobación"
        verbose_name_plural = "Flujos de Aprobación"
        ordering = ['-created_at']

    def __str__(self):
        return f"Aprobación {self.cotizacion.numero} - {self.get_estado_display()}"

    @property
    def is_pending(self):
        return self.estado == WorkflowStatus.PENDIENTE


class ApprovalLevel(models.Model):
    workflow = models.ForeignKey(ApprovalWorkflow, on_delete=models.CASCADE, related_name='niveles')
    nivel = models.PositiveSmallIntegerField()
    rol_requerido = models.CharField(max_length=20)
    estado = models.CharField(max_length=20, choices=LevelStatus.choices, default=LevelStatus.PENDIENTE)
    aprobador = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='niveles_firmados'
    )
    comentario = models.TextField(blank=True)
    resuelto_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        verbose_name = "Nivel de Aprobación"
        verbose_name_plural = "Niveles de Aprobación"
        ordering = ['nivel']
        unique_together = ['workflow', 'nivel']

    def __str__(self):
        return f"Nivel {self.nivel} ({self.rol_requerido}) - {self.get_estado_display()}"


class ClientBlockHistory(TenantMixin, AppendOnlyModel):
    class Tipo(models.TextChoices):
        BLOQUEO = 'BLOQUEO', 'Bloqueo'
        DESBLOQUEO = 'DESBLOQUEO', 'Desbloqueo'

    cliente = models.ForeignKey(Client, on_delete=models.CASCADE, related_name='historial_bloqueos')
    tipo = models.CharField(max_length=12, choices=Tipo.choices)
    tipo_bloqueo = models.CharField(max_length=20, choices=BlockType.choices, blank=True, null=True)
    motivo = models.TextField()
    monto_deuda = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0'))
    limite_credito = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0'))
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Historial de Bloqueo"
        verbose_name_plural = "Historial de Bloqueos"
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"{self.get_tipo_display()} {self.cliente} ({self.created_at:%d/%m/%Y})"
