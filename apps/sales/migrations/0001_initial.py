# Generated manually for SalesFlow

from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import apps.sales.models

QUOTE_STATES = [
    ('BORRADOR', 'Borrador'), ('PENDIENTE_APROBACION', 'Pendiente de aprobación'), ('APROBADA', 'Aprobada'),
    ('ENVIADA', 'Enviada'), ('EN_NEGOCIACION', 'En negociación'), ('ACEPTADA', 'Aceptada'),
    ('CONVERTIDA', 'Convertida'), ('PERDIDA', 'Perdida'), ('VENCIDA', 'Vencida'), ('CANCELADA', 'Cancelada'),
]
ORDER_STATES = [
    ('BORRADOR', 'Borrador'), ('CONFIRMADA', 'Confirmada'), ('EN_PREPARACION', 'En preparación'),
    ('PARCIALMENTE_ENTREGADA', 'Parcialmente entregada'), ('ENTREGADA', 'Entregada'),
    ('PARCIALMENTE_FACTURADA', 'Parcialmente facturada'), ('FACTURADA', 'Facturada'),
    ('CERRADA', 'Cerrada'), ('CANCELADA', 'Cancelada'),
]
DELIVERY_STATES = [
    ('PENDIENTE', 'Pendiente'), ('EN_PREPARACION', 'En preparación'), ('LISTA_PARA_DESPACHO', 'Lista para despacho'),
    ('EN_TRANSITO', 'En tránsito'), ('RETIRADA', 'Retirada por el cliente'), ('ENTREGADA', 'Entregada'),
    ('ENTREGA_FALLIDA', 'Entrega fallida'), ('CANCELADA', 'Cancelada'),
]
INVOICE_STATES = [
    ('BORRADOR', 'Borrador'), ('EMITIDA', 'Emitida'), ('ENVIADA', 'Enviada'),
    ('PARCIALMENTE_COBRADA', 'Parcialmente cobrada'), ('COBRADA', 'Cobrada'), ('VENCIDA', 'Vencida'),
    ('ANULADA', 'Anulada'),
]
PAYMENT_STATES = [
    ('PENDIENTE', 'Pendiente'), ('CONFIRMADO', 'Confirmado'), ('RECHAZADO', 'Rechazado'), ('ANULADO', 'Anulado'),
]
BLOCK_TYPES = [
    ('CREDITO', 'Límite de crédito excedido'), ('MORA', 'Mora'), ('MANUAL', 'Manual'),
    ('CHEQUE_RECHAZADO', 'Cheque rechazado'),
]


def document_fields():
    return [
        ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
        ('numero', models.CharField(blank=True, max_length=30, verbose_name='Número')),
        ('created_at', models.DateTimeField(auto_now_add=True)),
        ('updated_at', models.DateTimeField(auto_now=True)),
        ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
        ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to='tenants.tenant', verbose_name='Empresa')),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('tenants', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Client',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('nombre', models.CharField(max_length=200, verbose_name='Razón Social')),
                ('cuit', models.CharField(blank=True, max_length=13, null=True, validators=[apps.sales.models.validate_cuit], verbose_name='CUIT')),
                ('email', models.EmailField(blank=True, max_length=254, null=True)),
                ('telefono', models.CharField(blank=True, max_length=30, verbose_name='Teléfono')),
                ('direccion', models.CharField(blank=True, max_length=255, verbose_name='Dirección')),
                ('limite_credito', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=14, verbose_name='Límite de crédito')),
                ('saldo_actual', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=14, verbose_name='Saldo actual')),
                ('bloqueado', models.BooleanField(default=False, verbose_name='Bloqueado')),
                ('tipo_bloqueo', models.CharField(blank=True, choices=BLOCK_TYPES, max_length=20, null=True)),
                ('motivo_bloqueo', models.TextField(blank=True, null=True)),
                ('bloqueado_at', models.DateTimeField(blank=True, null=True)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to='tenants.tenant', verbose_name='Empresa')),
            ],
            options={
                'verbose_name': 'Cliente',
                'verbose_name_plural': 'Clientes',
                'ordering': ['nombre'],
            },
        ),
        migrations.CreateModel(
            name='Quote',
            fields=document_fields() + [
                ('estado', models.CharField(choices=QUOTE_STATES, db_index=True, default='BORRADOR', max_length=30)),
                ('total', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=14)),
                ('fecha_validez', models.DateField(blank=True, null=True, verbose_name='Válida hasta')),
                ('fecha_envio', models.DateTimeField(blank=True, null=True)),
                ('fecha_cierre', models.DateTimeField(blank=True, null=True)),
                ('motivo_perdida', models.TextField(blank=True, null=True)),
                ('notas', models.TextField(blank=True)),
                ('cliente', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='cotizaciones', to='sales.client')),
                ('vendedor', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='cotizaciones', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Cotización',
                'verbose_name_plural': 'Cotizaciones',
                'ordering': ['-created_at'],
                'unique_together': {('tenant', 'numero')},
            },
        ),
        migrations.CreateModel(
            name='QuoteItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('descripcion', models.CharField(max_length=255, verbose_name='Producto / Descripción')),
                ('cantidad', models.DecimalField(decimal_places=3, default=Decimal('1'), max_digits=12)),
                ('precio_unitario', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=14)),
                ('costo_unitario', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=14)),
                ('cotizacion', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='sales.quote')),
            ],
            options={
                'verbose_name': 'Ítem de Cotización',
                'verbose_name_plural': 'Ítems de Cotización',
            },
        ),
        migrations.CreateModel(
            name='SaleOrder',
            fields=document_fields() + [
                ('estado', models.CharField(choices=ORDER_STATES, db_index=True, default='BORRADOR', max_length=30)),
                ('total', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=14)),
                ('fecha_confirmacion', models.DateTimeField(blank=True, null=True)),
                ('motivo_cancelacion', models.TextField(blank=True, null=True)),
                ('cliente', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='ordenes', to='sales.client')),
                ('cotizacion', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='ordenes', to='sales.quote')),
                ('vendedor', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='ordenes_venta', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Orden de Venta',
                'verbose_name_plural': 'Órdenes de Venta',
                'ordering': ['-created_at'],
                'unique_together': {('tenant', 'numero')},
            },
        ),
        migrations.CreateModel(
            name='Delivery',
            fields=document_fields() + [
                ('estado', models.CharField(choices=DELIVERY_STATES, db_index=True, default='PENDIENTE', max_length=30)),
                ('direccion', models.CharField(blank=True, max_length=255, verbose_name='Dirección de entrega')),
                ('conductor_nombre', models.CharField(blank=True, max_length=120, null=True, verbose_name='Conductor')),
                ('vehiculo', models.CharField(blank=True, max_length=60, null=True, verbose_name='Vehículo / Patente')),
                ('fecha_programada', models.DateField(blank=True, null=True)),
                ('fecha_despacho', models.DateTimeField(blank=True, null=True)),
                ('fecha_entrega', models.DateTimeField(blank=True, null=True)),
                ('receptor_nombre', models.CharField(blank=True, max_length=120, null=True, verbose_name='Recibió')),
                ('motivo_falla', models.TextField(blank=True, null=True)),
                ('intentos', models.PositiveIntegerField(default=0, verbose_name='Intentos de despacho')),
                ('notas', models.TextField(blank=True)),
                ('orden', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='entregas', to='sales.saleorder')),
            ],
            options={
                'verbose_name': 'Entrega',
                'verbose_name_plural': 'Entregas',
                'ordering': ['-created_at'],
                'unique_together': {('tenant', 'numero')},
            },
        ),
        migrations.CreateModel(
            name='Invoice',
            fields=document_fields() + [
                ('estado', models.CharField(choices=INVOICE_STATES, db_index=True, default='BORRADOR', max_length=30)),
                ('total', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=14)),
                ('saldo_pendiente', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=14)),
                ('fecha_emision', models.DateTimeField(blank=True, null=True)),
                ('fecha_vencimiento', models.DateField(blank=True, null=True)),
                ('motivo_anulacion', models.TextField(blank=True, null=True)),
                ('cliente', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='facturas', to='sales.client')),
                ('orden', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='facturas', to='sales.saleorder')),
            ],
            options={
                'verbose_name': 'Factura',
                'verbose_name_plural': 'Facturas',
                'ordering': ['-created_at'],
                'unique_together': {('tenant', 'numero')},
            },
        ),
        migrations.CreateModel(
            name='ClientPayment',
            fields=document_fields() + [
                ('estado', models.CharField(choices=PAYMENT_STATES, db_index=True, default='PENDIENTE', max_length=30)),
                ('total', models.DecimalField(decimal_places=2, max_digits=14)),
                ('medio_pago', models.CharField(choices=[('EFECTIVO', 'Efectivo'), ('TRANSFERENCIA', 'Transferencia'), ('CHEQUE', 'Cheque'), ('TARJETA', 'Tarjeta')], default='TRANSFERENCIA', max_length=20)),
                ('fecha_confirmacion', models.DateTimeField(blank=True, null=True)),
                ('motivo_rechazo', models.TextField(blank=True, null=True)),
                ('notas', models.TextField(blank=True)),
                ('cliente', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='pagos', to='sales.client')),
            ],
            options={
                'verbose_name': 'Cobranza',
                'verbose_name_plural': 'Cobranzas',
                'ordering': ['-created_at'],
                'unique_together': {('tenant', 'numero')},
            },
        ),
        migrations.CreateModel(
            name='ApprovalWorkflow',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('motivo', models.CharField(choices=[('MARGEN_BAJO', 'Margen bajo'), ('MONTO_ALTO', 'Monto alto')], max_length=20)),
                ('margen_actual', models.DecimalField(blank=True, decimal_places=2, max_digits=7, null=True)),
                ('margen_minimo', models.DecimalField(decimal_places=2, max_digits=5)),
                ('monto_total', models.DecimalField(decimal_places=2, max_digits=14)),
                ('niveles_requeridos', models.PositiveSmallIntegerField(default=1)),
                ('estado', models.CharField(choices=[('PENDIENTE', 'Pendiente'), ('APROBADO', 'Aprobado'), ('RECHAZADO', 'Rechazado'), ('EXPIRADO', 'Expirado')], db_index=True, default='PENDIENTE', max_length=20)),
                ('expira_at', models.DateTimeField()),
                ('resuelto_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('cotizacion', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='aprobaciones', to='sales.quote')),
                ('solicitado_por', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='aprobaciones_solicitadas', to=settings.AUTH_USER_MODEL)),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to='tenants.tenant', verbose_name='Empresa')),
            ],
            options={
                'verbose_name': 'Flujo de Aprobación',
                'verbose_name_plural': 'Flujos de Aprobación',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='ApprovalLevel',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('nivel', models.PositiveSmallIntegerField()),
                ('rol_requerido', models.CharField(max_length=20)),
                ('estado', models.CharField(choices=[('PENDIENTE', 'Pendiente'), ('APROBADO', 'Aprobado'), ('RECHAZADO', 'Rechazado')], default='PENDIENTE', max_length=20)),
                ('comentario', models.TextField(blank=True)),
                ('resuelto_at', models.DateTimeField(blank=True, null=True)),
                ('aprobador', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='niveles_firmados', to=settings.AUTH_USER_MODEL)),
                ('workflow', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='niveles', to='sales.approvalworkflow')),
            ],
            options={
                'verbose_name': 'Nivel de Aprobación',
                'verbose_name_plural': 'Niveles de Aprobación',
                'ordering': ['nivel'],
                'unique_together': {('workflow', 'nivel')},
            },
        ),
        migrations.CreateModel(
            name='ClientBlockHistory',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('tipo', models.CharField(choices=[('BLOQUEO', 'Bloqueo'), ('DESBLOQUEO', 'Desbloqueo')], max_length=12)),
                ('tipo_bloqueo', models.CharField(blank=True, choices=BLOCK_TYPES, max_length=20, null=True)),
                ('motivo', models.TextField()),
                ('monto_deuda', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=14)),
                ('limite_credito', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=14)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('cliente', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='historial_bloqueos', to='sales.client')),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to='tenants.tenant', verbose_name='Empresa')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Historial de Bloqueo',
                'verbose_name_plural': 'Historial de Bloqueos',
                'ordering': ['-created_at', '-id'],
            },
        ),
    ]
