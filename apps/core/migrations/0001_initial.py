# Generated manually for SalesFlow

from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('tenants', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='SystemSetting',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('margen_minimo', models.DecimalField(decimal_places=2, default=Decimal('15'), help_text='Por debajo de este margen promedio la cotización requiere aprobación', max_digits=5, verbose_name='Margen mínimo (%)')),
                ('monto_alto', models.DecimalField(decimal_places=2, default=Decimal('500000'), help_text='Cotizaciones por encima de este total requieren un nivel de aprobación', max_digits=14, verbose_name='Monto alto')),
                ('monto_muy_alto', models.DecimalField(decimal_places=2, default=Decimal('1000000'), help_text='Cotizaciones por encima de este total requieren dos niveles de aprobación', max_digits=14, verbose_name='Monto muy alto')),
                ('dias_expiracion_aprobacion', models.PositiveIntegerField(default=7, verbose_name='Vigencia de aprobaciones (días)')),
                ('sin_costo_margen_cero', models.BooleanField(default=True, help_text='Si ningún ítem tiene costo cargado, considerar el margen promedio como 0%', verbose_name='Sin costos = margen 0')),
                ('notificar_cliente_entregas', models.BooleanField(default=True, verbose_name='Notificar entregas al cliente')),
                ('alert_email', models.EmailField(blank=True, max_length=254, null=True, verbose_name='E-mail de alertas internas')),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to='tenants.tenant', verbose_name='Empresa')),
            ],
            options={
                'verbose_name': 'Configuración de Ventas',
                'verbose_name_plural': 'Configuraciones de Ventas',
            },
        ),
        migrations.CreateModel(
            name='StatusHistory',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('entidad', models.CharField(db_index=True, max_length=30)),
                ('entidad_id', models.CharField(max_length=64)),
                ('estado_anterior', models.CharField(blank=True, max_length=30, null=True)),
                ('estado_nuevo', models.CharField(max_length=30)),
                ('motivo', models.TextField(blank=True, null=True)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('idempotency_key', models.CharField(blank=True, max_length=100, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to='tenants.tenant', verbose_name='Empresa')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Historial de Estado',
                'verbose_name_plural': 'Historial de Estados',
                'ordering': ['created_at', 'id'],
            },
        ),
        migrations.AddIndex(
            model_name='statushistory',
            index=models.Index(fields=['tenant', 'entidad', 'entidad_id'], name='core_hist_entity_idx'),
        ),
        migrations.AddConstraint(
            model_name='statushistory',
            constraint=models.UniqueConstraint(condition=models.Q(('idempotency_key__isnull', False)), fields=('tenant', 'idempotency_key'), name='core_hist_idempotency_uniq'),
        ),
    ]
