"""
Transition Validator

Decides whether a requested state change is legal against the current
database state. It performs no writes, so calling it twice with the same
inputs gives the same answer.
"""
from dataclasses import dataclass
from typing import Optional, Type

from django.apps import apps

from apps.core.exceptions import (
    AuthorizationError,
    DomainError,
    InvalidTransitionError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)

from . import registry
from .registry import DocumentType

DOCUMENT_MODELS = {
    DocumentType.QUOTE: 'sales.Quote',
    DocumentType.SALE_ORDER: 'sales.SaleOrder',
    DocumentType.DELIVERY: 'sales.Delivery',
    DocumentType.INVOICE: 'sales.Invoice',
    DocumentType.CLIENT_PAYMENT: 'sales.ClientPayment',
    DocumentType.TASK: 'agenda.Task',
}


def get_document_model(document_type):
    label = DOCUMENT_MODELS.get(document_type)
    return apps.get_model(label) if label else None


@dataclass
class TransitionCheck:
    valid: bool
    error: Optional[str] = None
    code: Optional[str] = None
    error_class: Optional[Type[DomainError]] = None

    @classmethod
    def ok(cls):
        return cls(valid=True)

    @classmethod
    def fail(cls, error_class, error, code=None):
        return cls(valid=False, error=error, code=code or error_class.default_code, error_class=error_class)

    def raise_for_error(self):
        if not self.valid:
            raise (self.error_class or ValidationError)(self.error, code=self.code)


def _value(changes, document, field):
    value = (changes or {}).get(field)
    if value in (None, ''):
        value = getattr(document, field, None)
    return str(value).strip() if value else ''


# Guards: (context, document, from_state, to_state, changes) -> TransitionCheck | None

def _delivery_dispatch_guard(context, document, from_state, to_state, changes):
    driver = _value(changes, document, 'conductor_nombre')
    vehicle = _value(changes, document, 'vehiculo')
    if not driver or not vehicle:
        return TransitionCheck.fail(
            ValidationError,
            "Para despachar la entrega debe asignar conductor y vehículo.",
            'PRECONDITION_FAILED',
        )
    return None


def _client_not_blocked_guard(context, document, from_state, to_state, changes):
    cliente = document.cliente
    if cliente.bloqueado:
        return TransitionCheck.fail(
            ValidationError,
            f"El cliente {cliente.nombre} está bloqueado.",
            'CLIENT_BLOCKED',
        )
    return None


def _quote_send_guard(context, document, from_state, to_state, changes):
    from .approvals import check_approval_needed, has_approved_workflow

    blocked = _client_not_blocked_guard(context, document, from_state, to_state, changes)
    if blocked:
        return blocked
    if from_state != 'BORRADOR':
        return None

    decision = check_approval_needed(document)
    if decision.required and not has_approved_workflow(document):
        return TransitionCheck.fail(
            ValidationError,
            f"La cotización requiere aprobación ({decision.motivo}) antes de enviarse.",
            'APPROVAL_REQUIRED',
        )
    return None


def _quote_approved_guard(context, document, from_state, to_state, changes):
    from .approvals import has_approved_workflow

    if not has_approved_workflow(document):
        return TransitionCheck.fail(
            ValidationError,
            "La cotización no tiene una aprobación completa.",
            'APPROVAL_REQUIRED',
        )
    return None


def _quote_pending_approval_guard(context, document, from_state, to_state, changes):
    from .approvals import pending_workflow

    if pending_workflow(document) is None:
        return TransitionCheck.fail(
            ValidationError,
            "La aprobación se solicita con request-approval, que crea el flujo.",
            'APPROVAL_WORKFLOW_MISSING',
        )
    return None


def _quote_back_to_draft_guard(context, document, from_state, to_state, changes):
    from .approvals import pending_workflow

    if pending_workflow(document) is not None:
        return TransitionCheck.fail(
            ValidationError,
            "La aprobación sigue pendiente; debe aprobarse o rechazarse.",
            'APPROVAL_PENDING',
        )
    return None


def _task_assignee_guard(context, document, from_state, to_state, changes):
    if not document.asignado_a_id or document.asignado_a_id != context.user_id:
        return TransitionCheck.fail(
            AuthorizationError,
            "Sólo el usuario asignado puede completar la tarea.",
            'NOT_ASSIGNEE',
        )
    return None


GUARDS = {
    (DocumentType.DELIVERY, 'EN_TRANSITO'): [_delivery_dispatch_guard],
    (DocumentType.QUOTE, 'ENVIADA'): [_quote_send_guard],
    (DocumentType.QUOTE, 'PENDIENTE_APROBACION'): [_quote_pending_approval_guard],
    (DocumentType.QUOTE, 'APROBADA'): [_quote_approved_guard],
    (DocumentType.SALE_ORDER, 'CONFIRMADA'): [_client_not_blocked_guard],
    (DocumentType.TASK, 'completed'): [_task_assignee_guard],
}


def _from_state_guards(document_type, from_state, to_state):
    if document_type == DocumentType.QUOTE and from_state == 'PENDIENTE_APROBACION' and to_state == 'BORRADOR':
        return [_quote_back_to_draft_guard]
    return []


def validate_transition(
    context,
    document_type,
    document_id,
    from_state,
    to_state,
    changes=None,
    reason=None,
    document=None,
) -> TransitionCheck:
    """
    Check a requested transition for the context's tenant and actor.
    ``document`` may be passed when the caller already holds the (locked) row.
    """
    model = get_document_model(document_type)
    if model is None:
        return TransitionCheck.fail(
            InvalidTransitionError, f"Tipo de documento desconocido: {document_type}", 'UNKNOWN_DOCUMENT_TYPE'
        )

    if document is None:
        document = model.objects.filter(tenant=context.tenant, pk=document_id).first()
    if document is None or document.tenant_id != context.tenant_id:
        return TransitionCheck.fail(NotFoundError, "Documento no encontrado.")

    if document.estado != from_state:
        return TransitionCheck.fail(
            StateConflictError,
            f"El documento está en {document.estado}, no en {from_state}.",
        )

    if not registry.is_known_state(document_type, to_state):
        return TransitionCheck.fail(InvalidTransitionError, f"Estado desconocido: {to_state}")

    if registry.is_final_state(document_type, from_state):
        return TransitionCheck.fail(
            StateConflictError,
            f"El documento está en un estado final ({from_state}).",
            'FINAL_STATE',
        )

    edge = registry.get_edge(document_type, from_state, to_state)
    if edge is None:
        return TransitionCheck.fail(
            InvalidTransitionError,
            f"No se puede pasar de {from_state} a {to_state}.",
        )

    if not context.has_permission(edge.permission):
        return TransitionCheck.fail(
            AuthorizationError,
            f"No tiene permiso para pasar de {from_state} a {to_state}.",
        )

    if edge.reason_required and not (reason or '').strip():
        return TransitionCheck.fail(
            ValidationError,
            f"Debe indicar un motivo para pasar a {to_state}.",
            'REASON_REQUIRED',
        )

    guards = GUARDS.get((document_type, to_state), []) + _from_state_guards(document_type, from_state, to_state)
    for guard in guards:
        result = guard(context, document, from_state, to_state, changes or {})
        if result is not None:
            return result

    return TransitionCheck.ok()
