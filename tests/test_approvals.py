from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from apps.core.context import RequestContext
from apps.core.exceptions import AuthorizationError, StateConflictError, ValidationError
from apps.core.models import SystemSetting
from apps.notifications.models import NotificationOutbox
from apps.sales.models import ApprovalWorkflow
from apps.sales.services import approvals
from apps.sales.services.registry import DocumentType
from apps.sales.services.transitions import apply_transition
from apps.sales.tasks import expire_overdue_approvals
from tests.factories import QuoteFactory, QuoteItemFactory


def quote_with_margin(tenant, total, margin_pct):
    precio = Decimal(total)
    costo = precio * (Decimal(100) - Decimal(margin_pct)) / Decimal(100)
    quote = QuoteFactory(tenant=tenant, total=precio)
    QuoteItemFactory(cotizacion=quote, cantidad=Decimal('1'), precio_unitario=precio, costo_unitario=costo)
    return quote


@pytest.mark.django_db
class TestApprovalDecision:
    def test_low_margin_on_high_amount_needs_two_levels(self, tenant):
        quote = quote_with_margin(tenant, 600000, 10)

        decision = approvals.check_approval_needed(quote)

        assert decision.required is True
        assert decision.motivo == 'MARGEN_BAJO'
        assert decision.niveles == 2
        assert decision.margen_actual == Decimal('10.00')

    def test_low_margin_on_small_amount_needs_one_level(self, tenant):
        decision = approvals.check_approval_needed(quote_with_margin(tenant, 100000, 10))
        assert decision.motivo == 'MARGEN_BAJO'
        assert decision.niveles == 1

    def test_very_high_amount_needs_two_levels(self, tenant):
        decision = approvals.check_approval_needed(quote_with_margin(tenant, 1200000, 20))
        assert decision.required is True
        assert decision.motivo == 'MONTO_ALTO'
        assert decision.niveles == 2

    def test_high_amount_needs_one_level(self, tenant):
        decision = approvals.check_approval_needed(quote_with_margin(tenant, 600000, 20))
        assert decision.motivo == 'MONTO_ALTO'
        assert decision.niveles == 1

    def test_healthy_quote_needs_no_approval(self, tenant):
        decision = approvals.check_approval_needed(quote_with_margin(tenant, 100000, 20))
        assert decision.required is False
        assert decision.niveles == 0

    def test_items_without_cost_count_as_zero_margin(self, tenant):
        quote = QuoteFactory(tenant=tenant, total=Decimal('1000'))
        QuoteItemFactory(cotizacion=quote, precio_unitario=Decimal('1000'), costo_unitario=Decimal('0'))

        assert approvals.check_approval_needed(quote).motivo == 'MARGEN_BAJO'

        settings_obj = SystemSetting(tenant=tenant, sin_costo_margen_cero=False)
        decision = approvals.check_approval_needed(quote, settings_obj)
        assert decision.required is False
        assert decision.margen_actual is None

    def test_thresholds_come_from_company_settings(self, tenant):
        SystemSetting.objects.create(tenant=tenant, margen_minimo=Decimal('5'))
        decision = approvals.check_approval_needed(quote_with_margin(tenant, 100000, 10))
        assert decision.required is False


@pytest.mark.django_db
class TestApprovalWorkflow:
    @pytest.fixture
    def requested(self, tenant, vendedor):
        quote = quote_with_margin(tenant, 600000, 10)
        decision, workflow = approvals.request_approval(RequestContext.from_membership(vendedor), quote.pk)
        return quote, workflow

    def test_request_opens_workflow_and_moves_quote(self, requested, vendedor):
        quote, workflow = requested

        quote.refresh_from_db()
        assert quote.estado == 'PENDIENTE_APROBACION'
        assert workflow.estado == 'PENDIENTE'
        assert workflow.niveles_requeridos == 2
        assert workflow.solicitado_por == vendedor.user
        assert [level.rol_requerido for level in workflow.niveles.all()] == ['SUPERVISOR', 'GERENTE']
        assert NotificationOutbox.objects.filter(event_type='QUOTE_APPROVAL_REQUESTED').exists()

    def test_request_without_need_keeps_draft(self, tenant, vendedor):
        quote = quote_with_margin(tenant, 1000, 40)
        decision, workflow = approvals.request_approval(RequestContext.from_membership(vendedor), quote.pk)

        assert decision.required is False
        assert workflow is None
        quote.refresh_from_db()
        assert quote.estado == 'BORRADOR'

    def test_quote_cannot_be_sent_without_approval(self, tenant, vendedor):
        quote = quote_with_margin(tenant, 600000, 10)
        with pytest.raises(ValidationError) as exc:
            apply_transition(RequestContext.from_membership(vendedor), DocumentType.QUOTE, quote.pk, 'BORRADOR', 'ENVIADA')
        assert exc.value.error_code == 'APPROVAL_REQUIRED'

    def test_pending_state_only_through_request(self, tenant, vendedor):
        quote = quote_with_margin(tenant, 600000, 10)
        with pytest.raises(ValidationError) as exc:
            apply_transition(
                RequestContext.from_membership(vendedor), DocumentType.QUOTE, quote.pk, 'BORRADOR', 'PENDIENTE_APROBACION'
            )
        assert exc.value.error_code == 'APPROVAL_WORKFLOW_MISSING'

    def test_levels_in_order_then_quote_approved(self, requested, supervisor, gerente, vendedor):
        quote, workflow = requested

        approvals.approve_level(RequestContext.from_membership(supervisor), workflow.pk, 1, 'Ok margen')
        workflow.refresh_from_db()
        assert workflow.estado == 'PENDIENTE'

        approvals.approve_level(RequestContext.from_membership(gerente), workflow.pk, 2)
        workflow.refresh_from_db()
        quote.refresh_from_db()
        assert workflow.estado == 'APROBADO'
        assert quote.estado == 'APROBADA'

        # Approved quotes can be sent
        apply_transition(RequestContext.from_membership(vendedor), DocumentType.QUOTE, quote.pk, 'APROBADA', 'ENVIADA')
        quote.refresh_from_db()
        assert quote.estado == 'ENVIADA'

    def test_level_two_cannot_precede_level_one(self, requested, gerente):
        quote, workflow = requested
        with pytest.raises(ValidationError) as exc:
            approvals.approve_level(RequestContext.from_membership(gerente), workflow.pk, 2)
        assert exc.value.error_code == 'LEVEL_ORDER'

    def test_role_must_rank_high_enough(self, requested, supervisor, make_member):
        quote, workflow = requested
        other_seller = make_member('VENDEDOR')
        with pytest.raises(AuthorizationError):
            approvals.approve_level(RequestContext.from_membership(other_seller), workflow.pk, 1)

        approvals.approve_level(RequestContext.from_membership(supervisor), workflow.pk, 1)
        with pytest.raises(AuthorizationError):
            approvals.approve_level(RequestContext.from_membership(supervisor), workflow.pk, 2)

    def test_requester_cannot_approve(self, tenant, supervisor):
        quote = quote_with_margin(tenant, 100000, 10)
        context = RequestContext.from_membership(supervisor)
        decision, workflow = approvals.request_approval(context, quote.pk)

        with pytest.raises(AuthorizationError) as exc:
            approvals.approve_level(context, workflow.pk, 1)
        assert exc.value.error_code == 'SOD_VIOLATION'

    def test_same_user_cannot_sign_two_levels(self, requested, gerente):
        quote, workflow = requested
        context = RequestContext.from_membership(gerente)
        approvals.approve_level(context, workflow.pk, 1)

        with pytest.raises(AuthorizationError) as exc:
            approvals.approve_level(context, workflow.pk, 2)
        assert exc.value.error_code == 'SOD_VIOLATION'

    def test_rejection_returns_quote_to_draft(self, requested, supervisor):
        quote, workflow = requested
        context = RequestContext.from_membership(supervisor)

        with pytest.raises(ValidationError):
            approvals.reject_level(context, workflow.pk, 1, '  ')

        approvals.reject_level(context, workflow.pk, 1, 'Margen insuficiente')

        workflow.refresh_from_db()
        quote.refresh_from_db()
        assert workflow.estado == 'RECHAZADO'
        assert workflow.niveles.get(nivel=1).comentario == 'Margen insuficiente'
        assert quote.estado == 'BORRADOR'
        assert NotificationOutbox.objects.filter(event_type='QUOTE_REJECTED').exists()

    def test_resolved_workflow_cannot_be_signed(self, requested, supervisor, gerente):
        quote, workflow = requested
        approvals.reject_level(RequestContext.from_membership(supervisor), workflow.pk, 1, 'No')

        with pytest.raises(StateConflictError):
            approvals.approve_level(RequestContext.from_membership(gerente), workflow.pk, 1)

    def test_expired_workflow_cannot_be_approved(self, requested, supervisor):
        quote, workflow = requested
        ApprovalWorkflow.objects.filter(pk=workflow.pk).update(expira_at=timezone.now() - timedelta(minutes=1))

        with pytest.raises(StateConflictError) as exc:
            approvals.approve_level(RequestContext.from_membership(supervisor), workflow.pk, 1)

        assert exc.value.error_code == 'WORKFLOW_EXPIRED'
        workflow.refresh_from_db()
        quote.refresh_from_db()
        assert workflow.estado == 'EXPIRADO'
        assert quote.estado == 'BORRADOR'

    def test_expired_workflow_cannot_be_rejected(self, requested, supervisor):
        quote, workflow = requested
        ApprovalWorkflow.objects.filter(pk=workflow.pk).update(expira_at=timezone.now() - timedelta(days=1))

        with pytest.raises(StateConflictError) as exc:
            approvals.reject_level(RequestContext.from_membership(supervisor), workflow.pk, 1, 'Precio fuera de lista')

        assert exc.value.error_code == 'WORKFLOW_EXPIRED'
        workflow.refresh_from_db()
        quote.refresh_from_db()
        assert workflow.estado == 'EXPIRADO'
        assert workflow.niveles.filter(estado='RECHAZADO').count() == 0
        assert quote.estado == 'BORRADOR'

    def test_periodic_expiry(self, requested):
        quote, workflow = requested
        ApprovalWorkflow.objects.filter(pk=workflow.pk).update(expira_at=timezone.now() - timedelta(days=1))

        assert expire_overdue_approvals() == 1
        assert expire_overdue_approvals() == 0

        quote.refresh_from_db()
        assert quote.estado == 'BORRADOR'

    def test_cancelling_pending_quote_closes_workflow(self, requested, vendedor):
        quote, workflow = requested

        apply_transition(
            RequestContext.from_membership(vendedor), DocumentType.QUOTE, quote.pk,
            'PENDIENTE_APROBACION', 'CANCELADA', reason='Cliente desistió',
        )

        workflow.refresh_from_db()
        assert workflow.estado == 'RECHAZADO'
        assert set(workflow.niveles.values_list('estado', flat=True)) == {'RECHAZADO'}

    def test_second_request_while_pending_is_rejected(self, requested, vendedor):
        quote, workflow = requested
        with pytest.raises(StateConflictError):
            approvals.request_approval(RequestContext.from_membership(vendedor), quote.pk)
