"""
Periodic sales jobs. They act with RequestContext.system(tenant) so the
audit trail shows no user.
"""
import logging

from celery import shared_task
from django.utils import timezone

from apps.core.context import RequestContext
from apps.core.exceptions import DomainError

from .models import Invoice, Quote
from .services.approvals import expire_overdue
from .services.registry import DocumentType
from .services.transitions import apply_transition

logger = logging.getLogger(__name__)


@shared_task
def expire_overdue_approvals():
    count = expire_overdue()
    if count:
        logger.info("%d aprobaciones expiradas", count)
    return count


def _expire_documents(document_type, queryset, to_state):
    count = 0
    for document in queryset.select_related('tenant'):
        try:
            apply_transition(
                RequestContext.system(document.tenant),
                document_type,
                document.pk,
                document.estado,
                to_state,
                reason="Vencimiento automático",
            )
            count += 1
        except DomainError as e:
            # The document moved since the query; the next run retries.
            logger.warning("No se pudo vencer %s %s: %s", document_type, document.pk, e)
    return count


@shared_task
def expire_stale_documents():
    """Quotes past their validity date and unpaid invoices past due become VENCIDA"""
    today = timezone.localdate()
    quotes = _expire_documents(
        DocumentType.QUOTE,
        Quote.objects.filter(estado__in=['ENVIADA', 'EN_NEGOCIACION'], fecha_validez__lt=today),
        'VENCIDA',
    )
    invoices = _expire_documents(
        DocumentType.INVOICE,
        Invoice.objects.filter(estado__in=['EMITIDA', 'ENVIADA', 'PARCIALMENTE_COBRADA'], fecha_vencimiento__lt=today),
        'VENCIDA',
    )
    if quotes or invoices:
        logger.info("Vencimientos: %d cotizaciones, %d facturas", quotes, invoices)
    return {'quotes': quotes, 'invoices': invoices}
