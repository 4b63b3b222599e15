from datetime import timedelta

import pytest
from django.utils import timezone

from apps.core.services import AuditService
from apps.sales.services.registry import DocumentType
from apps.sales.tasks import expire_stale_documents
from tests.factories import InvoiceFactory, QuoteFactory


@pytest.mark.django_db
class TestExpireStaleDocuments:
    def test_overdue_documents_expire(self, tenant):
        yesterday = timezone.localdate() - timedelta(days=1)
        tomorrow = timezone.localdate() + timedelta(days=1)
        stale_quote = QuoteFactory(tenant=tenant, estado='ENVIADA', fecha_validez=yesterday)
        fresh_quote = QuoteFactory(tenant=tenant, estado='ENVIADA', fecha_validez=tomorrow)
        draft_quote = QuoteFactory(tenant=tenant, estado='BORRADOR', fecha_validez=yesterday)
        overdue_invoice = InvoiceFactory(tenant=tenant, estado='EMITIDA', fecha_vencimiento=yesterday)
        paid_invoice = InvoiceFactory(tenant=tenant, estado='COBRADA', fecha_vencimiento=yesterday)

        result = expire_stale_documents()

        assert result == {'quotes': 1, 'invoices': 1}
        for document in (stale_quote, fresh_quote, draft_quote, overdue_invoice, paid_invoice):
            document.refresh_from_db()
        assert stale_quote.estado == 'VENCIDA'
        assert fresh_quote.estado == 'ENVIADA'
        assert draft_quote.estado == 'BORRADOR'
        assert overdue_invoice.estado == 'VENCIDA'
        assert paid_invoice.estado == 'COBRADA'

        entry = AuditService.history(tenant, DocumentType.QUOTE, stale_quote.pk).get()
        assert entry.user is None
        assert entry.motivo == 'Vencimiento automático'

    def test_second_run_is_a_no_op(self, tenant):
        QuoteFactory(tenant=tenant, estado='EN_NEGOCIACION', fecha_validez=timezone.localdate() - timedelta(days=3))

        assert expire_stale_documents() == {'quotes': 1, 'invoices': 0}
        assert expire_stale_documents() == {'quotes': 0, 'invoices': 0}
