"""
Transition Service: the single write path for document states.

One database transaction per request: lock the row, validate against the
persisted state, apply the allowed field changes and the new state, run the
in-transaction effects, append the audit row and queue notifications. The
notifications themselves leave only after commit.
"""
import dataclasses
import logging
from dataclasses import dataclass
from typing import Any

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from apps.core.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from apps.core.models import StatusHistory, SystemSetting
from apps.core.services import AuditService
from apps.notifications import dispatcher
from apps.notifications.channels import Event

from . import registry
from .registry import DocumentType
from .validator import get_document_model, validate_transition

logger = logging.getLogger(__name__)


@dataclass
class TransitionResult:
    document: Any
    document_type: str
    from_state: str
    to_state: str
    history: StatusHistory
    replayed: bool = False


# Fields a caller may set together with a transition
CHANGE_FIELDS = {
    DocumentType.QUOTE: {'notas'},
    DocumentType.SALE_ORDER: set(),
    DocumentType.DELIVERY: {'conductor_nombre', 'vehiculo', 'fecha_programada', 'receptor_nombre', 'direccion', 'notas'},
    DocumentType.INVOICE: {'saldo_pendiente', 'fecha_vencimiento'},
    DocumentType.CLIENT_PAYMENT: {'notas'},
    DocumentType.TASK: set(),
}

# Where the transition reason is kept on the document itself
REASON_FIELDS = {
    (DocumentType.QUOTE, 'PERDIDA'): 'motivo_perdida',
    (DocumentType.QUOTE, 'CANCELADA'): 'motivo_perdida',
    (DocumentType.SALE_ORDER, 'CANCELADA'): 'motivo_cancelacion',
    (DocumentType.DELIVERY, 'ENTREGA_FALLIDA'): 'motivo_falla',
    (DocumentType.DELIVERY, 'CANCELADA'): 'motivo_falla',
    (DocumentType.INVOICE, 'ANULADA'): 'motivo_anulacion',
    (DocumentType.CLIENT_PAYMENT, 'RECHAZADO'): 'motivo_rechazo',
    (DocumentType.CLIENT_PAYMENT, 'ANULADO'): 'motivo_rechazo',
    (DocumentType.TASK, 'rejected'): 'motivo',
    (DocumentType.TASK, 'failed'): 'motivo',
}


def _cascade_context(context):
    """Same actor, allowed to move the documents a transition drags along"""
    return dataclasses.replace(context, is_system=True)


def _apply_changes(document_type, document, changes):
    allowed = CHANGE_FIELDS.get(document_type, set())
    unknown = sorted(set(changes) - allowed)
    if unknown:
        raise ValidationError(f"Campos no modificables en esta transición: {', '.join(unknown)}", code='INVALID_CHANGES')

    cleaned, errors = {}, []
    for field, value in changes.items():
        try:
            cleaned[field] = document._meta.get_field(field).clean(value, document)
        except DjangoValidationError as exc:
            errors.append(f"{field}: {' '.join(exc.messages)}")
    if errors:
        raise ValidationError(f"Valores inválidos: {'; '.join(errors)}", code='INVALID_CHANGES')

    for field, value in cleaned.items():
        setattr(document, field, value)
    return {field: str(value) if value is not None else None for field, value in cleaned.items()}


def _stamp(document_type, document, from_state, to_state, reason):
    now = timezone.now()

    reason_field = REASON_FIELDS.get((document_type, to_state))
    if reason_field and reason:
        setattr(document, reason_field, reason)

    if document_type == DocumentType.QUOTE:
        if to_state == 'ENVIADA' and not document.fecha_envio:
            document.fecha_envio = now
        if to_state in ('CONVERTIDA', 'PERDIDA', 'VENCIDA', 'CANCELADA'):
            document.fecha_cierre = now
    elif document_type == DocumentType.SALE_ORDER:
        if to_state == 'CONFIRMADA':
            document.fecha_confirmacion = now
    elif document_type == DocumentType.DELIVERY:
        if to_state == 'EN_TRANSITO':
            document.fecha_despacho = now
            document.intentos += 1
        elif to_state == 'ENTREGADA':
            document.fecha_entrega = now
    elif document_type == DocumentType.INVOICE:
        if to_state == 'EMITIDA':
            document.fecha_emision = now
            if not document.saldo_pendiente:
                document.saldo_pendiente = document.total
        elif to_state == 'COBRADA':
            document.saldo_pendiente = 0
    elif document_type == DocumentType.CLIENT_PAYMENT:
        if to_state == 'CONFIRMADO':
            document.fecha_confirmacion = now
    elif document_type == DocumentType.TASK:
        if to_state == 'in_progress':
            document.started_at = now
        elif to_state in ('completed', 'failed'):
            document.finished_at = now


# In-transaction effects: (context, document, from_state, to_state, reason)

def _payment_confirmed(context, payment, from_state, to_state, reason):
    from apps.sales.models import Client

    cliente = Client.objects.select_for_update().get(pk=payment.cliente_id)
    cliente.saldo_actual -= payment.total
    cliente.save(update_fields=['saldo_actual'])
    logger.info("Saldo del cliente %s reducido en %s por pago %s", cliente.pk, payment.total, payment.numero)


def _delivery_delivered(context, delivery, from_state, to_state, reason):
    from apps.sales.models import SaleOrder

    orden = SaleOrder.objects.select_for_update().get(pk=delivery.orden_id)
    entregas = orden.entregas.exclude(estado='CANCELADA')
    total = entregas.count()
    entregadas = entregas.filter(estado='ENTREGADA').count()

    if total and entregadas == total:
        target = 'ENTREGADA'
    elif entregadas:
        target = 'PARCIALMENTE_ENTREGADA'
    else:
        return

    if orden.estado == target or orden.estado not in ('EN_PREPARACION', 'PARCIALMENTE_ENTREGADA'):
        return

    apply_transition(
        _cascade_context(context),
        DocumentType.SALE_ORDER,
        orden.pk,
        orden.estado,
        target,
        reason=f"Entrega {delivery.numero} entregada",
    )


def _quote_closed(context, quote, from_state, to_state, reason):
    from .approvals import close_pending_workflows

    if from_state == 'PENDIENTE_APROBACION':
        close_pending_workflows(quote, motivo=reason)


def _quote_converted(context, quote, from_state, to_state, reason):
    from apps.sales.models import SaleOrder

    if quote.ordenes.exists():
        return
    orden = SaleOrder.objects.create(
        tenant=quote.tenant,
        cliente=quote.cliente,
        cotizacion=quote,
        vendedor=quote.vendedor,
        total=quote.total,
        created_by=context.user,
    )
    AuditService.record(
        tenant=quote.tenant,
        entidad=DocumentType.SALE_ORDER,
        entidad_id=orden.pk,
        estado_anterior=None,
        estado_nuevo=orden.estado,
        user=context.user,
        motivo=f"Generada desde cotización {quote.numero}",
        metadata={'cotizacion_id': quote.pk},
    )
    logger.info("Orden %s generada desde cotización %s", orden.numero, quote.numero)


EFFECTS = {
    (DocumentType.CLIENT_PAYMENT, 'CONFIRMADO'): [_payment_confirmed],
    (DocumentType.DELIVERY, 'ENTREGADA'): [_delivery_delivered],
    (DocumentType.QUOTE, 'CANCELADA'): [_quote_closed],
    (DocumentType.QUOTE, 'CONVERTIDA'): [_quote_converted],
}


# Notifications: (document, from_state, to_state) -> (event, recipients) | None

def _client_email(document):
    cliente = getattr(document, 'cliente', None)
    return [dispatcher.email(cliente.email)] if cliente is not None and cliente.email else []


def alert_email_recipients(tenant):
    settings_obj = SystemSetting.current(tenant)
    return [dispatcher.email(settings_obj.alert_email)] if settings_obj.alert_email else []


def _notify_quote_sent(quote, from_state, to_state):
    recipients = _client_email(quote)
    if quote.vendedor_id:
        recipients.append(dispatcher.in_app(quote.vendedor))
    return Event.QUOTE_SENT, recipients


def _notify_delivery(event):
    def build(delivery, from_state, to_state):
        recipients = list(dispatcher.default_webhook())
        if event == Event.DELIVERY_FAILED:
            recipients += alert_email_recipients(delivery.tenant)
            if delivery.created_by_id:
                recipients.append(dispatcher.in_app(delivery.created_by))
        elif SystemSetting.current(delivery.tenant).notificar_cliente_entregas:
            recipients += _client_email(delivery)
        return event, recipients
    return build


def _notify_payment(event):
    def build(payment, from_state, to_state):
        recipients = list(dispatcher.default_webhook())
        if event == Event.PAYMENT_CONFIRMED:
            recipients += _client_email(payment)
        else:
            recipients += alert_email_recipients(payment.tenant)
            recipients.append(dispatcher.in_app())
        return event, recipients
    return build


NOTIFIERS = {
    (DocumentType.QUOTE, 'ENVIADA'): _notify_quote_sent,
    (DocumentType.DELIVERY, 'EN_TRANSITO'): _notify_delivery(Event.DELIVERY_DISPATCHED),
    (DocumentType.DELIVERY, 'ENTREGADA'): _notify_delivery(Event.DELIVERY_DELIVERED),
    (DocumentType.DELIVERY, 'ENTREGA_FALLIDA'): _notify_delivery(Event.DELIVERY_FAILED),
    (DocumentType.CLIENT_PAYMENT, 'CONFIRMADO'): _notify_payment(Event.PAYMENT_CONFIRMED),
    (DocumentType.CLIENT_PAYMENT, 'RECHAZADO'): _notify_payment(Event.PAYMENT_REJECTED),
}


def document_payload(document, from_state, to_state, reason=None):
    cliente = getattr(document, 'cliente', None)
    return {
        'numero': getattr(document, 'numero', None) or getattr(document, 'titulo', None) or str(document.pk),
        'cliente': cliente.nombre if cliente is not None else None,
        'estado_anterior': from_state,
        'estado_nuevo': to_state,
        'motivo': reason,
    }


def notify_safely(event_type, tenant, entidad, entidad_id, recipients, payload):
    """
    Queue notifications inside a savepoint. A failure here is logged and
    never undoes the business change.
    """
    try:
        with transaction.atomic():
            return dispatcher.dispatch(event_type, tenant, entidad, entidad_id, recipients, payload)
    except Exception:
        logger.exception("No se pudo encolar %s para %s %s", event_type, entidad, entidad_id)
        return []


def _replay(context, document_type, document_id, to_state, entry):
    if entry.entidad != document_type or entry.entidad_id != str(document_id) or entry.estado_nuevo != to_state:
        raise ValidationError(
            "La clave de idempotencia ya fue usada para otra operación.", code='IDEMPOTENCY_KEY_REUSED'
        )
    model = get_document_model(document_type)
    document = model.objects.get(tenant=context.tenant, pk=document_id)
    logger.info("Transición repetida ignorada (clave %s)", entry.idempotency_key)
    return TransitionResult(
        document=document,
        document_type=document_type,
        from_state=entry.estado_anterior,
        to_state=entry.estado_nuevo,
        history=entry,
        replayed=True,
    )


def apply_transition(
    context,
    document_type,
    document_id,
    from_state,
    to_state,
    reason=None,
    changes=None,
    idempotency_key=None,
) -> TransitionResult:
    """
    Move a document from ``from_state`` to ``to_state``.

    Raises NotFoundError, StateConflictError, InvalidTransitionError,
    AuthorizationError or ValidationError; nothing is written when it does.
    """
    changes = dict(changes or {})
    reason = (reason or '').strip() or None

    with transaction.atomic():
        if idempotency_key:
            previous = AuditService.find_by_idempotency_key(context.tenant, idempotency_key)
            if previous is not None:
                return _replay(context, document_type, document_id, to_state, previous)

        model = get_document_model(document_type)
        if model is None:
            raise InvalidTransitionError(f"Tipo de documento desconocido: {document_type}", code='UNKNOWN_DOCUMENT_TYPE')

        document = model.objects.select_for_update().filter(tenant=context.tenant, pk=document_id).first()
        if document is None:
            raise NotFoundError("Documento no encontrado.")

        validate_transition(
            context, document_type, document_id, from_state, to_state,
            changes=changes, reason=reason, document=document,
        ).raise_for_error()

        applied = _apply_changes(document_type, document, changes)
        _stamp(document_type, document, from_state, to_state, reason)

        document.estado = to_state
        document._allow_state_change = True
        document.save()
        document._allow_state_change = False

        for effect in EFFECTS.get((document_type, to_state), []):
            effect(context, document, from_state, to_state, reason)

        metadata = {'changes': applied} if applied else {}
        if context.is_system and context.user is None:
            metadata['actor'] = 'system'

        entry = AuditService.record(
            tenant=context.tenant,
            entidad=document_type,
            entidad_id=document.pk,
            estado_anterior=from_state,
            estado_nuevo=to_state,
            user=context.user,
            motivo=reason,
            metadata=metadata,
            idempotency_key=idempotency_key,
        )

        notifier = NOTIFIERS.get((document_type, to_state))
        if notifier is not None:
            event_type, recipients = notifier(document, from_state, to_state)
            notify_safely(
                event_type, context.tenant, document_type, document.pk, recipients,
                document_payload(document, from_state, to_state, reason),
            )

    logger.info(
        "Transición %s %s: %s -> %s (usuario %s, empresa %s)",
        document_type, document.pk, from_state, to_state, context.user_id, context.tenant_id
    )
    return TransitionResult(
        document=document,
        document_type=document_type,
        from_state=from_state,
        to_state=to_state,
        history=entry,
    )


def available_transitions_for(context, document_type, document) -> list:
    """Targets reachable from the document's current state that the actor may request"""
    result = []
    for to_state in registry.available_transitions(document_type, document.estado):
        edge = registry.get_edge(document_type, document.estado, to_state)
        result.append({
            'to_state': to_state,
            'label': registry.STATE_LABELS.get(to_state, to_state),
            'reason_required': edge.reason_required,
            'allowed': context.has_permission(edge.permission),
        })
    return result
