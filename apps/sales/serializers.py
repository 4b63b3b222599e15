from django.db import transaction
from rest_framework import serializers

from apps.core.api.views import TenantSerializerMixin
from apps.core.models import StatusHistory

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


class TenantScopedPrimaryKeyField(serializers.PrimaryKeyRelatedField):
    """Related field whose choices are limited to the request's tenant"""

    def get_queryset(self):
        queryset = super().get_queryset()
        request_context = self.context.get('request_context')
        if request_context is None:
            return queryset.none()
        return queryset.filter(tenant=request_context.tenant)


class ClientSerializer(TenantSerializerMixin, serializers.ModelSerializer):
    credito_disponible = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)

    class Meta:
        model = Client
        fields = [
            'id', 'nombre', 'cuit', 'email', 'telefono', 'direccion',
            'limite_credito', 'saldo_actual', 'credito_disponible',
            'bloqueado', 'tipo_bloqueo', 'motivo_bloqueo', 'bloqueado_at',
            'is_active', 'created_at',
        ]
        read_only_fields = ['saldo_actual', 'bloqueado', 'tipo_bloqueo', 'motivo_bloqueo', 'bloqueado_at', 'created_at']


class QuoteItemSerializer(serializers.ModelSerializer):
    subtotal = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)
    margen = serializers.DecimalField(max_digits=7, decimal_places=2, read_only=True)

    class Meta:
        model = QuoteItem
        fields = ['id', 'descripcion', 'cantidad', 'precio_unitario', 'costo_unitario', 'subtotal', 'margen']


class QuoteSerializer(TenantSerializerMixin, serializers.ModelSerializer):
    creator_field = 'created_by'

    cliente = TenantScopedPrimaryKeyField(queryset=Client.objects.all())
    cliente_nombre = serializers.ReadOnlyField(source='cliente.nombre')
    items = QuoteItemSerializer(many=True, required=False)

    class Meta:
        model = Quote
        fields = [
            'id', 'numero', 'cliente', 'cliente_nombre', 'vendedor', 'estado', 'total',
            'fecha_validez', 'fecha_envio', 'fecha_cierre', 'motivo_perdida', 'notas',
            'items', 'created_at', 'updated_at',
        ]
        read_only_fields = ['numero', 'estado', 'total', 'fecha_envio', 'fecha_cierre', 'motivo_perdida', 'vendedor']

    def _save_items(self, quote, items):
        quote.items.all().delete()
        QuoteItem.objects.bulk_create([QuoteItem(cotizacion=quote, **item) for item in items])
        quote.total = quote.calculate_total()
        quote.save(update_fields=['total', 'updated_at'])

    @transaction.atomic
    def create(self, validated_data):
        items = validated_data.pop('items', [])
        validated_data['vendedor'] = self.context['request_context'].user
        quote = super().create(validated_data)
        self._save_items(quote, items)
        return quote

    @transaction.atomic
    def update(self, instance, validated_data):
        if instance.estado != 'BORRADOR':
            raise serializers.ValidationError("Sólo se pueden editar cotizaciones en BORRADOR.")
        items = validated_data.pop('items', None)
        quote = super().update(instance, validated_data)
        if items is not None:
            self._save_items(quote, items)
        return quote


class SaleOrderSerializer(TenantSerializerMixin, serializers.ModelSerializer):
    creator_field = 'created_by'

    cliente = TenantScopedPrimaryKeyField(queryset=Client.objects.all())
    cotizacion = TenantScopedPrimaryKeyField(queryset=Quote.objects.all(), required=False, allow_null=True)

    class Meta:
        model = SaleOrder
        fields = [
            'id', 'numero', 'cliente', 'cotizacion', 'vendedor', 'estado', 'total',
            'fecha_confirmacion', 'motivo_cancelacion', 'created_at', 'updated_at',
        ]
        read_only_fields = ['numero', 'estado', 'fecha_confirmacion', 'motivo_cancelacion']


class DeliverySerializer(TenantSerializerMixin, serializers.ModelSerializer):
    creator_field = 'created_by'

    orden = TenantScopedPrimaryKeyField(queryset=SaleOrder.objects.all())

    class Meta:
        model = Delivery
        fields = [
            'id', 'numero', 'orden', 'estado', 'direccion', 'conductor_nombre', 'vehiculo',
            'fecha_programada', 'fecha_despacho', 'fecha_entrega', 'receptor_nombre',
            'motivo_falla', 'intentos', 'notas', 'created_at', 'updated_at',
        ]
        read_only_fields = ['numero', 'estado', 'fecha_despacho', 'fecha_entrega', 'motivo_falla', 'intentos']


class InvoiceSerializer(TenantSerializerMixin, serializers.ModelSerializer):
    creator_field = 'created_by'

    cliente = TenantScopedPrimaryKeyField(queryset=Client.objects.all())
    orden = TenantScopedPrimaryKeyField(queryset=SaleOrder.objects.all(), required=False, allow_null=True)

    class Meta:
        model = Invoice
        fields = [
            'id', 'numero', 'cliente', 'orden', 'estado', 'total', 'saldo_pendiente',
            'fecha_emision', 'fecha_vencimiento', 'motivo_anulacion', 'created_at', 'updated_at',
        ]
        read_only_fields = ['numero', 'estado', 'saldo_pendiente', 'fecha_emision', 'motivo_anulacion']


class ClientPaymentSerializer(TenantSerializerMixin, serializers.ModelSerializer):
    creator_field = 'created_by'

    cliente = TenantScopedPrimaryKeyField(queryset=Client.objects.all())

    class Meta:
        model = ClientPayment
        fields = [
            'id', 'numero', 'cliente', 'estado', 'total', 'medio_pago',
            'fecha_confirmacion', 'motivo_rechazo', 'notas', 'created_at', 'updated_at',
        ]
        read_only_fields = ['numero', 'estado', 'fecha_confirmacion', 'motivo_rechazo']

    def validate_total(self, value):
        if value <= 0:
            raise serializers.ValidationError("El importe debe ser mayor a cero.")
        return value


class ApprovalLevelSerializer(serializers.ModelSerializer):
    aprobador_nombre = serializers.ReadOnlyField(source='aprobador.username')

    class Meta:
        model = ApprovalLevel
        fields = ['nivel', 'rol_requerido', 'estado', 'aprobador', 'aprobador_nombre', 'comentario', 'resuelto_at']


class ApprovalWorkflowSerializer(serializers.ModelSerializer):
    niveles = ApprovalLevelSerializer(many=True, read_only=True)
    cotizacion_numero = serializers.ReadOnlyField(source='cotizacion.numero')

    class Meta:
        model = ApprovalWorkflow
        fields = [
            'id', 'cotizacion', 'cotizacion_numero', 'motivo', 'margen_actual', 'margen_minimo',
            'monto_total', 'niveles_requeridos', 'estado', 'solicitado_por', 'expira_at',
            'resuelto_at', 'created_at', 'niveles',
        ]
        read_only_fields = fields


class ApprovalDecisionSerializer(serializers.Serializer):
    required = serializers.BooleanField()
    motivo = serializers.CharField(allow_null=True)
    margen_actual = serializers.DecimalField(max_digits=7, decimal_places=2, allow_null=True)
    margen_minimo = serializers.DecimalField(max_digits=5, decimal_places=2)
    niveles = serializers.IntegerField()
    monto_total = serializers.DecimalField(max_digits=14, decimal_places=2)


class ApproveLevelSerializer(serializers.Serializer):
    nivel = serializers.IntegerField(min_value=1, max_value=2)
    comentario = serializers.CharField(required=False, allow_blank=True, default='')


class RejectLevelSerializer(serializers.Serializer):
    nivel = serializers.IntegerField(min_value=1, max_value=2)
    motivo = serializers.CharField()


class TransitionRequestSerializer(serializers.Serializer):
    from_state = serializers.CharField(max_length=30)
    to_state = serializers.CharField(max_length=30)
    reason = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    changes = serializers.DictField(required=False, default=dict)
    idempotency_key = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=100)


class BlockClientSerializer(serializers.Serializer):
    motivo = serializers.CharField()
    tipo_bloqueo = serializers.ChoiceField(
        choices=['CREDITO', 'MORA', 'MANUAL', 'CHEQUE_RECHAZADO'], required=False, default='MANUAL'
    )


class UnblockClientSerializer(serializers.Serializer):
    motivo = serializers.CharField()


class ClientBlockHistorySerializer(serializers.ModelSerializer):
    user_nombre = serializers.ReadOnlyField(source='user.username')

    class Meta:
        model = ClientBlockHistory
        fields = [
            'id', 'tipo', 'tipo_bloqueo', 'motivo', 'monto_deuda', 'limite_credito',
            'user', 'user_nombre', 'created_at',
        ]


class StatusHistorySerializer(serializers.ModelSerializer):
    user_nombre = serializers.ReadOnlyField(source='user.username')

    class Meta:
        model = StatusHistory
        fields = [
            'id', 'entidad', 'entidad_id', 'estado_anterior', 'estado_nuevo',
            'motivo', 'metadata', 'user', 'user_nombre', 'created_at',
        ]
