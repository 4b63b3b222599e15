"""
Audit trail service.

Every accepted state change writes exactly one StatusHistory row inside the
caller's transaction. Write errors propagate so the surrounding transaction
rolls back together with the state change.
"""
import logging

from apps.core.models import StatusHistory

logger = logging.getLogger(__name__)


class AuditService:
    @staticmethod
    def record(
        tenant,
        entidad,
        entidad_id,
        estado_anterior,
        estado_nuevo,
        user=None,
        motivo=None,
        metadata=None,
        idempotency_key=None,
    ):
        """
        Append an audit row. Must run inside the transaction that changed
        the entity so both commit or neither does.
        """
        entry = StatusHistory.objects.create(
            tenant=tenant,
            entidad=entidad,
            entidad_id=str(entidad_id),
            estado_anterior=estado_anterior,
            estado_nuevo=estado_nuevo,
            user=user,
            motivo=motivo or None,
            metadata=metadata or {},
            idempotency_key=idempotency_key or None,
        )
        logger.debug(
            "Historial registrado: %s %s %s -> %s (usuario %s)",
            entidad, entidad_id, estado_anterior, estado_nuevo, getattr(user, 'pk', None)
        )
        return entry

    @staticmethod
    def history(tenant, entidad, entidad_id):
        """Timeline of an entity, oldest first"""
        return (
            StatusHistory.objects
            .filter(tenant=tenant, entidad=entidad, entidad_id=str(entidad_id))
            .select_related('user')
            .order_by('created_at', 'id')
        )

    @staticmethod
    def find_by_idempotency_key(tenant, idempotency_key):
        if not idempotency_key:
            return None
        return StatusHistory.objects.filter(tenant=tenant, idempotency_key=idempotency_key).first()
