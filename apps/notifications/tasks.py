"""
Celery tasks for notification delivery.

Workers only touch NotificationOutbox/InAppAlert rows, never document state.
"""
import logging

from celery import shared_task
from django.conf import settings
from django.db import transaction

from .channels import get_channel
from .models import NotificationOutbox, OutboxStatus

logger = logging.getLogger(__name__)


def _max_attempts():
    return getattr(settings, 'NOTIFICATION_MAX_ATTEMPTS', 5)


@shared_task(bind=True, soft_time_limit=60, time_limit=90)
def deliver_notification(self, outbox_id):
    """Deliver one outbox row through its channel"""
    with transaction.atomic():
        outbox = NotificationOutbox.objects.select_for_update().filter(pk=outbox_id).first()
        if outbox is None:
            logger.warning("Notificación %s inexistente", outbox_id)
            return 'missing'
        if outbox.status == OutboxStatus.ENVIADA:
            return 'already_sent'
        if outbox.attempts >= _max_attempts():
            return 'dead_letter'

        channel = get_channel(outbox.channel)
        if channel is None:
            outbox.status = OutboxStatus.FALLIDA
            outbox.attempts = _max_attempts()
            outbox.last_error = f"Canal desconocido: {outbox.channel}"
            outbox.save(update_fields=['status', 'attempts', 'last_error'])
            logger.error("Notificación %s con canal desconocido %s", outbox.pk, outbox.channel)
            return 'failed'

        result = channel.notify(
            outbox.event_type,
            outbox.entidad_id,
            outbox.recipient,
            payload=outbox.payload,
            tenant=outbox.tenant,
        )

        if result.success:
            outbox.mark_sent()
            logger.info("Notificación %s (%s) enviada por %s", outbox.pk, outbox.event_type, outbox.channel)
            return 'sent'

        outbox.mark_failed(result.error or 'Error desconocido')
        if outbox.is_dead_letter:
            logger.error(
                "Notificación %s agotó %d intentos y queda en FALLIDA: %s",
                outbox.pk, outbox.attempts, outbox.last_error
            )
        else:
            logger.warning(
                "Notificación %s falló (intento %d): %s", outbox.pk, outbox.attempts, outbox.last_error
            )
        return 'failed'


@shared_task
def retry_failed_notifications():
    """Re-enqueue pending and failed rows that still have attempts left"""
    pending = NotificationOutbox.objects.filter(
        status__in=[OutboxStatus.PENDIENTE, OutboxStatus.FALLIDA],
        attempts__lt=_max_attempts(),
    ).values_list('pk', flat=True)

    count = 0
    for outbox_id in list(pending):
        try:
            deliver_notification.delay(outbox_id)
            count += 1
        except Exception:
            logger.exception("No se pudo reencolar la notificación %s", outbox_id)

    if count:
        logger.info("Reencoladas %d notificaciones", count)
    return count
