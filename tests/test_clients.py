from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError as DjangoValidationError

from apps.core.context import RequestContext
from apps.core.exceptions import AuthorizationError, StateConflictError, ValidationError
from apps.core.models import ImmutableRecordError
from apps.core.services import AuditService
from apps.notifications.models import NotificationOutbox
from apps.sales.models import ClientBlockHistory, format_cuit, validate_cuit
from apps.sales.services import clients
from apps.sales.services.registry import DocumentType
from apps.sales.services.transitions import apply_transition
from tests.factories import ClientFactory, QuoteFactory, QuoteItemFactory, SaleOrderFactory


@pytest.mark.django_db
class TestClientBlocking:
    def test_block_and_unblock(self, tenant, context):
        cliente = ClientFactory(tenant=tenant, saldo_actual=Decimal('80000'))

        entry = clients.block_client(context, cliente.pk, 'Mora de 90 días', tipo_bloqueo='MORA')

        cliente.refresh_from_db()
        assert cliente.bloqueado is True
        assert cliente.tipo_bloqueo == 'MORA'
        assert cliente.bloqueado_at is not None
        assert entry.tipo == ClientBlockHistory.Tipo.BLOQUEO
        assert entry.monto_deuda == Decimal('80000')
        assert NotificationOutbox.objects.filter(event_type='CLIENT_BLOCKED').exists()

        clients.unblock_client(context, cliente.pk, 'Regularizó la deuda')

        cliente.refresh_from_db()
        assert cliente.bloqueado is False
        assert cliente.tipo_bloqueo is None

        history = list(clients.block_history(context, cliente.pk))
        assert [item.tipo for item in history] == ['DESBLOQUEO', 'BLOQUEO']

        audit = list(AuditService.history(tenant, clients.CLIENT_ENTITY, cliente.pk))
        assert [(a.estado_anterior, a.estado_nuevo) for a in audit] == [('ACTIVO', 'BLOQUEADO'), ('BLOQUEADO', 'ACTIVO')]

    def test_double_block_conflicts(self, tenant, context):
        cliente = ClientFactory(tenant=tenant)
        clients.block_client(context, cliente.pk, 'Manual')

        with pytest.raises(StateConflictError) as exc:
            clients.block_client(context, cliente.pk, 'Otra vez')
        assert exc.value.error_code == 'ALREADY_BLOCKED'

    def test_unblock_requires_blocked_client(self, tenant, context):
        cliente = ClientFactory(tenant=tenant)
        with pytest.raises(StateConflictError) as exc:
            clients.unblock_client(context, cliente.pk, 'Nada')
        assert exc.value.error_code == 'NOT_BLOCKED'

    def test_block_requires_reason_and_permission(self, tenant, context, vendedor):
        cliente = ClientFactory(tenant=tenant)

        with pytest.raises(ValidationError):
            clients.block_client(context, cliente.pk, '')
        with pytest.raises(AuthorizationError):
            clients.block_client(RequestContext.from_membership(vendedor), cliente.pk, 'Mora')

        cliente.refresh_from_db()
        assert cliente.bloqueado is False

    def test_blocked_client_stops_quotes_and_orders(self, tenant, context):
        cliente = ClientFactory(tenant=tenant)
        quote = QuoteFactory(tenant=tenant, cliente=cliente, total=Decimal('100'))
        QuoteItemFactory(cotizacion=quote, precio_unitario=Decimal('100'), costo_unitario=Decimal('50'))
        order = SaleOrderFactory(tenant=tenant, cliente=cliente)
        clients.block_client(context, cliente.pk, 'Cheque rechazado', tipo_bloqueo='CHEQUE_RECHAZADO')

        with pytest.raises(ValidationError) as exc:
            apply_transition(context, DocumentType.QUOTE, quote.pk, 'BORRADOR', 'ENVIADA')
        assert exc.value.error_code == 'CLIENT_BLOCKED'

        with pytest.raises(ValidationError) as exc:
            apply_transition(context, DocumentType.SALE_ORDER, order.pk, 'BORRADOR', 'CONFIRMADA')
        assert exc.value.error_code == 'CLIENT_BLOCKED'

    def test_block_history_is_append_only(self, tenant, context):
        cliente = ClientFactory(tenant=tenant)
        entry = clients.block_client(context, cliente.pk, 'Manual')

        entry.motivo = 'otro'
        with pytest.raises(ImmutableRecordError):
            entry.save()


class TestCuit:
    def test_valid_cuit(self):
        validate_cuit('20-12345678-6')
        assert format_cuit('20123456786') == '20-12345678-6'

    def test_invalid_cuit(self):
        with pytest.raises(DjangoValidationError):
            validate_cuit('20-12345678-0')
        with pytest.raises(DjangoValidationError):
            validate_cuit('123')
