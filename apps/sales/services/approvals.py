"""
Approval Workflow Engine

Quotes whose margin or amount breaches the company thresholds need one or
two sign-offs (level 1 SUPERVISOR, level 2 GERENTE) before they can be sent.
Workflow rows, level rows and the quote state change always commit together.
"""
import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import Optional

from django.db import transaction
from django.utils import timezone

from apps.core.context import RequestContext
from apps.core.exceptions import AuthorizationError, NotFoundError, StateConflictError, ValidationError
from apps.core.models import SystemSetting
from apps.notifications import dispatcher
from apps.notifications.channels import Event

from .registry import DocumentType
from .transitions import apply_transition, notify_safely

logger = logging.getLogger(__name__)

LEVEL_ROLES = {1: 'SUPERVISOR', 2: 'GERENTE'}


@dataclass
class ApprovalDecision:
    required: bool
    motivo: Optional[str]
    margen_actual: Optional[Decimal]
    margen_minimo: Decimal
    niveles: int
    monto_total: Decimal


def average_margin(quote, zero_when_no_cost=True) -> Optional[Decimal]:
    """
    Mean of (price - cost) / price * 100 over items that have both a cost
    and a price. Without samples: 0, or None when zero_when_no_cost is off.
    """
    samples = [item.margen for item in quote.items.all() if item.margen is not None]
    if not samples:
        return Decimal('0') if zero_when_no_cost else None
    return (sum(samples, Decimal('0')) / len(samples)).quantize(Decimal('0.01'))


def check_approval_needed(quote, settings_obj=None) -> ApprovalDecision:
    settings_obj = settings_obj or SystemSetting.current(quote.tenant)
    margen_minimo = Decimal(settings_obj.margen_minimo)
    monto_alto = Decimal(settings_obj.monto_alto)
    monto_muy_alto = Decimal(settings_obj.monto_muy_alto)

    total = Decimal(quote.total or 0) or quote.calculate_total()
    margen = average_margin(quote, zero_when_no_cost=settings_obj.sin_costo_margen_cero)

    def decision(required, motivo=None, niveles=0):
        return ApprovalDecision(
            required=required,
            motivo=motivo,
            margen_actual=margen,
            margen_minimo=margen_minimo,
            niveles=niveles,
            monto_total=total,
        )

    if margen is not None and margen < margen_minimo:
        return decision(True, 'MARGEN_BAJO', 2 if total > monto_alto else 1)
    if total > monto_muy_alto:
        return decision(True, 'MONTO_ALTO', 2)
    if total > monto_alto:
        return decision(True, 'MONTO_ALTO', 1)
    return decision(False)


def pending_workflow(quote):
    from apps.sales.models import ApprovalWorkflow, WorkflowStatus

    return ApprovalWorkflow.objects.filter(cotizacion=quote, estado=WorkflowStatus.PENDIENTE).first()


def has_approved_workflow(quote) -> bool:
    from apps.sales.models import ApprovalWorkflow, WorkflowStatus

    latest = ApprovalWorkflow.objects.filter(cotizacion=quote).order_by('-created_at', '-id').first()
    return latest is not None and latest.estado == WorkflowStatus.APROBADO


def close_pending_workflows(quote, motivo=None):
    """Quote cancelled while waiting: pending workflows end as rejected"""
    from apps.sales.models import ApprovalLevel, LevelStatus, WorkflowStatus

    now = timezone.now()
    for workflow in quote.aprobaciones.select_for_update().filter(estado=WorkflowStatus.PENDIENTE):
        workflow.estado = WorkflowStatus.RECHAZADO
        workflow.resuelto_at = now
        workflow.save(update_fields=['estado', 'resuelto_at'])
        ApprovalLevel.objects.filter(workflow=workflow, estado=LevelStatus.PENDIENTE).update(
            estado=LevelStatus.RECHAZADO,
            comentario=motivo or 'Cotización cancelada',
            resuelto_at=now,
        )


def _payload(quote, workflow, motivo=None):
    return {
        'numero': quote.numero,
        'cliente': quote.cliente.nombre,
        'motivo': motivo or workflow.get_motivo_display(),
        'workflow_id': workflow.pk,
        'niveles': workflow.niveles_requeridos,
    }


def _alert_recipients(tenant):
    settings_obj = SystemSetting.current(tenant)
    recipients = [dispatcher.in_app()] + dispatcher.default_webhook()
    if settings_obj.alert_email:
        recipients.append(dispatcher.email(settings_obj.alert_email))
    return recipients


def _requester_recipients(workflow):
    if workflow.solicitado_por is None:
        return []
    recipients = [dispatcher.in_app(workflow.solicitado_por)]
    if workflow.solicitado_por.email:
        recipients.append(dispatcher.email(workflow.solicitado_por.email))
    return recipients


def _lock_workflow(context, workflow_id):
    from apps.sales.models import ApprovalWorkflow

    workflow = (
        ApprovalWorkflow.objects.select_for_update()
        .filter(tenant=context.tenant, pk=workflow_id)
        .select_related('cotizacion', 'cotizacion__cliente', 'solicitado_por')
        .first()
    )
    if workflow is None:
        raise NotFoundError("Flujo de aprobación no encontrado.")
    return workflow


def _expire(context, workflow, now):
    from apps.sales.models import WorkflowStatus

    workflow.estado = WorkflowStatus.EXPIRADO
    workflow.resuelto_at = now
    workflow.save(update_fields=['estado', 'resuelto_at'])

    quote = workflow.cotizacion
    if quote.estado == 'PENDIENTE_APROBACION':
        apply_transition(
            context, DocumentType.QUOTE, quote.pk, 'PENDIENTE_APROBACION', 'BORRADOR',
            reason="Aprobación expirada",
        )
    logger.info("Flujo de aprobación %s expirado (cotización %s)", workflow.pk, quote.numero)


def _expire_if_overdue(context, workflow_id):
    """Close an overdue workflow and raise WORKFLOW_EXPIRED once the expiry is committed."""
    from apps.sales.models import WorkflowStatus

    with transaction.atomic():
        workflow = _lock_workflow(context, workflow_id)
        if workflow.estado != WorkflowStatus.PENDIENTE:
            raise StateConflictError(f"El flujo de aprobación ya está {workflow.estado}.")

        now = timezone.now()
        expired = workflow.expira_at <= now
        if expired:
            _expire(RequestContext.system(context.tenant), workflow, now)

    if expired:
        raise StateConflictError("La aprobación expiró; la cotización volvió a BORRADOR.", code='WORKFLOW_EXPIRED')


def request_approval(context, quote_id):
    """
    Open a workflow for a draft quote that needs approval.
    Returns (decision, workflow); workflow is None when no approval is needed.
    """
    from apps.sales.models import ApprovalLevel, ApprovalWorkflow, Quote

    with transaction.atomic():
        quote = Quote.objects.select_for_update().filter(tenant=context.tenant, pk=quote_id).first()
        if quote is None:
            raise NotFoundError("Cotización no encontrada.")
        if quote.estado != 'BORRADOR':
            raise StateConflictError(
                f"Sólo se puede pedir aprobación de una cotización en BORRADOR (actual: {quote.estado})."
            )
        if pending_workflow(quote) is not None:
            raise StateConflictError("La cotización ya tiene una aprobación pendiente.", code='APPROVAL_PENDING')

        settings_obj = SystemSetting.current(context.tenant)
        decision = check_approval_needed(quote, settings_obj)
        if not decision.required:
            return decision, None

        now = timezone.now()
        workflow = ApprovalWorkflow.objects.create(
            tenant=context.tenant,
            cotizacion=quote,
            motivo=decision.motivo,
            margen_actual=decision.margen_actual,
            margen_minimo=decision.margen_minimo,
            monto_total=decision.monto_total,
            niveles_requeridos=decision.niveles,
            solicitado_por=context.user,
            expira_at=now + timedelta(days=settings_obj.dias_expiracion_aprobacion),
        )
        ApprovalLevel.objects.bulk_create([
            ApprovalLevel(workflow=workflow, nivel=nivel, rol_requerido=LEVEL_ROLES[nivel])
            for nivel in range(1, decision.niveles + 1)
        ])

        apply_transition(
            context, DocumentType.QUOTE, quote.pk, 'BORRADOR', 'PENDIENTE_APROBACION',
            reason=f"Aprobación requerida: {workflow.get_motivo_display()}",
        )

        notify_safely(
            Event.QUOTE_APPROVAL_REQUESTED, context.tenant, DocumentType.QUOTE, quote.pk,
            _alert_recipients(context.tenant), _payload(quote, workflow),
        )

    logger.info(
        "Aprobación %s solicitada para cotización %s: %s, %d nivel(es)",
        workflow.pk, quote.numero, decision.motivo, decision.niveles
    )
    return decision, workflow


def approve_level(context, workflow_id, nivel, comentario=''):
    from apps.sales.models import LevelStatus, WorkflowStatus

    nivel = int(nivel)
    _expire_if_overdue(context, workflow_id)

    with transaction.atomic():
        workflow = _lock_workflow(context, workflow_id)
        if workflow.estado != WorkflowStatus.PENDIENTE:
            raise StateConflictError(f"El flujo de aprobación ya está {workflow.estado}.")

        levels = {level.nivel: level for level in workflow.niveles.select_for_update()}
        level = levels.get(nivel)
        if level is None:
            raise NotFoundError(f"El flujo no tiene nivel {nivel}.")
        if level.estado != LevelStatus.PENDIENTE:
            raise StateConflictError(f"El nivel {nivel} ya fue resuelto.")

        for previous in range(1, nivel):
            if levels[previous].estado != LevelStatus.APROBADO:
                raise ValidationError(f"El nivel {previous} debe aprobarse antes.", code='LEVEL_ORDER')

        if not context.can_sign_as(level.rol_requerido):
            raise AuthorizationError(f"Se requiere rol {level.rol_requerido} para aprobar el nivel {nivel}.")

        if context.user_id is not None:
            if workflow.solicitado_por_id == context.user_id:
                raise AuthorizationError("Quien solicita la aprobación no puede aprobarla.", code='SOD_VIOLATION')
            if any(other.aprobador_id == context.user_id for other in levels.values() if other.nivel != nivel):
                raise AuthorizationError("Un mismo usuario no puede aprobar dos niveles.", code='SOD_VIOLATION')

        now = timezone.now()
        level.estado = LevelStatus.APROBADO
        level.aprobador = context.user
        level.comentario = comentario or ''
        level.resuelto_at = now
        level.save(update_fields=['estado', 'aprobador', 'comentario', 'resuelto_at'])

        completed = all(
            lvl.estado == LevelStatus.APROBADO for lvl in levels.values()
        )
        quote = workflow.cotizacion
        if completed:
            workflow.estado = WorkflowStatus.APROBADO
            workflow.resuelto_at = now
            workflow.save(update_fields=['estado', 'resuelto_at'])
            apply_transition(
                context, DocumentType.QUOTE, quote.pk, 'PENDIENTE_APROBACION', 'APROBADA',
                reason=comentario or None,
            )
            notify_safely(
                Event.QUOTE_APPROVED, context.tenant, DocumentType.QUOTE, quote.pk,
                _requester_recipients(workflow), _payload(quote, workflow, comentario),
            )

    logger.info(
        "Nivel %s de aprobación %s firmado por usuario %s%s",
        nivel, workflow.pk, context.user_id, " (completo)" if completed else ""
    )
    return workflow


def reject_level(context, workflow_id, nivel, motivo):
    from apps.sales.models import LevelStatus, WorkflowStatus

    motivo = (motivo or '').strip()
    if not motivo:
        raise ValidationError("Debe indicar el motivo del rechazo.", code='REASON_REQUIRED')

    nivel = int(nivel)
    _expire_if_overdue(context, workflow_id)

    with transaction.atomic():
        workflow = _lock_workflow(context, workflow_id)
        if workflow.estado != WorkflowStatus.PENDIENTE:
            raise StateConflictError(f"El flujo de aprobación ya está {workflow.estado}.")

        level = workflow.niveles.select_for_update().filter(nivel=nivel).first()
        if level is None:
            raise NotFoundError(f"El flujo no tiene nivel {nivel}.")
        if level.estado != LevelStatus.PENDIENTE:
            raise StateConflictError(f"El nivel {nivel} ya fue resuelto.")
        if not context.can_sign_as(level.rol_requerido):
            raise AuthorizationError(f"Se requiere rol {level.rol_requerido} para rechazar el nivel {nivel}.")
        if context.user_id is not None and workflow.solicitado_por_id == context.user_id:
            raise AuthorizationError("Quien solicita la aprobación no puede resolverla.", code='SOD_VIOLATION')

        now = timezone.now()
        level.estado = LevelStatus.RECHAZADO
        level.aprobador = context.user
        level.comentario = motivo
        level.resuelto_at = now
        level.save(update_fields=['estado', 'aprobador', 'comentario', 'resuelto_at'])

        workflow.estado = WorkflowStatus.RECHAZADO
        workflow.resuelto_at = now
        workflow.save(update_fields=['estado', 'resuelto_at'])

        quote = workflow.cotizacion
        apply_transition(
            context, DocumentType.QUOTE, quote.pk, 'PENDIENTE_APROBACION', 'BORRADOR',
            reason=motivo,
        )
        notify_safely(
            Event.QUOTE_REJECTED, context.tenant, DocumentType.QUOTE, quote.pk,
            _requester_recipients(workflow), _payload(quote, workflow, motivo),
        )

    logger.info("Aprobación %s rechazada en nivel %s por usuario %s", workflow.pk, nivel, context.user_id)
    return workflow


def expire_overdue(now=None):
    """Expire pending workflows past their deadline. Returns how many expired."""
    from apps.sales.models import ApprovalWorkflow, WorkflowStatus

    now = now or timezone.now()
    overdue = ApprovalWorkflow.objects.filter(
        estado=WorkflowStatus.PENDIENTE, expira_at__lte=now
    ).values_list('pk', 'tenant_id')

    count = 0
    for workflow_id, tenant_id in list(overdue):
        with transaction.atomic():
            workflow = (
                ApprovalWorkflow.objects.select_for_update()
                .select_related('tenant', 'cotizacion')
                .filter(pk=workflow_id, estado=WorkflowStatus.PENDIENTE)
                .first()
            )
            if workflow is None:
                continue
            _expire(RequestContext.system(workflow.tenant), workflow, now)
            count += 1
    return count
