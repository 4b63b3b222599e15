"""
Client blocking.

Blocking and unblocking lock the client row, flip the flag and append both
a ClientBlockHistory row and an audit row in one transaction. A blocked
client cannot have quotes sent nor orders confirmed.
"""
import logging

from django.db import transaction
from django.utils import timezone

from apps.accounts.permissions import CLIENTS_BLOCK
from apps.core.exceptions import AuthorizationError, NotFoundError, StateConflictError, ValidationError
from apps.core.services import AuditService
from apps.notifications import dispatcher
from apps.notifications.channels import Event

from .transitions import alert_email_recipients, notify_safely

logger = logging.getLogger(__name__)

CLIENT_ENTITY = 'client'


def _lock_client(context, client_id):
    from apps.sales.models import Client

    cliente = Client.objects.select_for_update().filter(tenant=context.tenant, pk=client_id).first()
    if cliente is None:
        raise NotFoundError("Cliente no encontrado.")
    return cliente


def _check(context, motivo):
    if not context.has_permission(CLIENTS_BLOCK):
        raise AuthorizationError("No tiene permiso para bloquear o desbloquear clientes.")
    motivo = (motivo or '').strip()
    if not motivo:
        raise ValidationError("Debe indicar un motivo.", code='REASON_REQUIRED')
    return motivo


def _payload(cliente, motivo, tipo_bloqueo=None):
    return {
        'numero': cliente.nombre,
        'cliente': cliente.nombre,
        'motivo': motivo,
        'tipo_bloqueo': tipo_bloqueo,
        'saldo': str(cliente.saldo_actual),
    }


def block_client(context, client_id, motivo, tipo_bloqueo='MANUAL'):
    from apps.sales.models import BlockType, ClientBlockHistory

    motivo = _check(context, motivo)
    if tipo_bloqueo not in BlockType.values:
        raise ValidationError(f"Tipo de bloqueo inválido: {tipo_bloqueo}")

    with transaction.atomic():
        cliente = _lock_client(context, client_id)
        if cliente.bloqueado:
            raise StateConflictError("El cliente ya está bloqueado.", code='ALREADY_BLOCKED')

        cliente.bloqueado = True
        cliente.tipo_bloqueo = tipo_bloqueo
        cliente.motivo_bloqueo = motivo
        cliente.bloqueado_at = timezone.now()
        cliente.save(update_fields=['bloqueado', 'tipo_bloqueo', 'motivo_bloqueo', 'bloqueado_at'])

        entry = ClientBlockHistory.objects.create(
            tenant=context.tenant,
            cliente=cliente,
            tipo=ClientBlockHistory.Tipo.BLOQUEO,
            tipo_bloqueo=tipo_bloqueo,
            motivo=motivo,
            monto_deuda=cliente.saldo_actual,
            limite_credito=cliente.limite_credito,
            user=context.user,
        )
        AuditService.record(
            tenant=context.tenant,
            entidad=CLIENT_ENTITY,
            entidad_id=cliente.pk,
            estado_anterior='ACTIVO',
            estado_nuevo='BLOQUEADO',
            user=context.user,
            motivo=motivo,
            metadata={'tipo_bloqueo': tipo_bloqueo},
        )
        notify_safely(
            Event.CLIENT_BLOCKED, context.tenant, CLIENT_ENTITY, cliente.pk,
            [dispatcher.in_app()] + dispatcher.default_webhook() + alert_email_recipients(context.tenant),
            _payload(cliente, motivo, tipo_bloqueo),
        )

    logger.info("Cliente %s bloqueado (%s) por usuario %s", cliente.pk, tipo_bloqueo, context.user_id)
    return entry


def unblock_client(context, client_id, motivo):
    from apps.sales.models import ClientBlockHistory

    motivo = _check(context, motivo)

    with transaction.atomic():
        cliente = _lock_client(context, client_id)
        if not cliente.bloqueado:
            raise StateConflictError("El cliente no está bloqueado.", code='NOT_BLOCKED')

        tipo_bloqueo = cliente.tipo_bloqueo
        cliente.bloqueado = False
        cliente.tipo_bloqueo = None
        cliente.motivo_bloqueo = None
        cliente.bloqueado_at = None
        cliente.save(update_fields=['bloqueado', 'tipo_bloqueo', 'motivo_bloqueo', 'bloqueado_at'])

        entry = ClientBlockHistory.objects.create(
            tenant=context.tenant,
            cliente=cliente,
            tipo=ClientBlockHistory.Tipo.DESBLOQUEO,
            tipo_bloqueo=tipo_bloqueo,
            motivo=motivo,
            monto_deuda=cliente.saldo_actual,
            limite_credito=cliente.limite_credito,
            user=context.user,
        )
        AuditService.record(
            tenant=context.tenant,
            entidad=CLIENT_ENTITY,
            entidad_id=cliente.pk,
            estado_anterior='BLOQUEADO',
            estado_nuevo='ACTIVO',
            user=context.user,
            motivo=motivo,
        )
        notify_safely(
            Event.CLIENT_UNBLOCKED, context.tenant, CLIENT_ENTITY, cliente.pk,
            [dispatcher.in_app()] + dispatcher.default_webhook(),
            _payload(cliente, motivo),
        )

    logger.info("Cliente %s desbloqueado por usuario %s", cliente.pk, context.user_id)
    return entry


def block_history(context, client_id):
    from apps.sales.models import Client, ClientBlockHistory

    if not Client.objects.filter(tenant=context.tenant, pk=client_id).exists():
        raise NotFoundError("Cliente no encontrado.")
    return ClientBlockHistory.objects.filter(tenant=context.tenant, cliente_id=client_id).select_related('user')
