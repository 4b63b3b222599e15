import pytest

from apps.accounts import permissions as perms
from apps.sales.services import registry
from apps.sales.services.registry import DocumentType


class TestStateRegistry:
    def test_every_document_type_has_a_graph(self):
        for document_type in DocumentType.ALL:
            assert registry.get_graph(document_type) is not None
            assert registry.initial_state(document_type) in registry.states(document_type)

    def test_unknown_document_type_is_denied(self):
        assert registry.get_graph('purchase_order') is None
        assert registry.states('purchase_order') == []
        assert registry.is_valid_transition('purchase_order', 'BORRADOR', 'ENVIADA') is False
        assert registry.available_transitions('purchase_order', 'BORRADOR') == []

    def test_undeclared_edges_are_denied(self):
        assert registry.is_valid_transition(DocumentType.QUOTE, 'BORRADOR', 'CONVERTIDA') is False
        assert registry.is_valid_transition(DocumentType.SALE_ORDER, 'BORRADOR', 'ENTREGADA') is False
        assert registry.is_valid_transition(DocumentType.QUOTE, 'BORRADOR', 'NO_EXISTE') is False

    def test_final_states_have_no_outgoing_edges(self):
        for document_type in DocumentType.ALL:
            graph = registry.get_graph(document_type)
            for state in graph.final:
                assert registry.available_transitions(document_type, state) == []

    def test_quote_approval_edges_require_approve_permission(self):
        assert registry.required_permission(DocumentType.QUOTE, 'PENDIENTE_APROBACION', 'APROBADA') == perms.QUOTES_APPROVE
        assert registry.required_permission(DocumentType.QUOTE, 'PENDIENTE_APROBACION', 'BORRADOR') == perms.QUOTES_APPROVE
        assert registry.required_permission(DocumentType.QUOTE, 'BORRADOR', 'ENVIADA') == perms.QUOTES_EDIT

    @pytest.mark.parametrize('document_type,from_state,to_state', [
        (DocumentType.QUOTE, 'ENVIADA', 'PERDIDA'),
        (DocumentType.QUOTE, 'BORRADOR', 'CANCELADA'),
        (DocumentType.SALE_ORDER, 'CONFIRMADA', 'CANCELADA'),
        (DocumentType.DELIVERY, 'EN_TRANSITO', 'ENTREGA_FALLIDA'),
        (DocumentType.INVOICE, 'EMITIDA', 'ANULADA'),
        (DocumentType.CLIENT_PAYMENT, 'PENDIENTE', 'RECHAZADO'),
        (DocumentType.TASK, 'in_progress', 'failed'),
    ])
    def test_negative_outcomes_require_reason(self, document_type, from_state, to_state):
        assert registry.requires_reason(document_type, from_state, to_state) is True

    def test_delivery_can_be_redispatched_after_failure(self):
        assert registry.is_valid_transition(DocumentType.DELIVERY, 'ENTREGA_FALLIDA', 'EN_TRANSITO')
        assert registry.requires_reason(DocumentType.DELIVERY, 'ENTREGA_FALLIDA', 'EN_TRANSITO') is False

    def test_choices_use_labels(self):
        choices = dict(registry.choices(DocumentType.DELIVERY))
        assert choices['EN_TRANSITO'] == 'En tránsito'
        assert list(choices) == list(registry.states(DocumentType.DELIVERY))
