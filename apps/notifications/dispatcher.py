"""
Side-effect dispatcher.

``dispatch`` runs inside the business transaction: it only writes outbox
rows and registers an on-commit hook. Nothing is sent if the transaction
rolls back, and a broker outage never fails the caller.
"""
import logging
from typing import Iterable, List, NamedTuple

from django.conf import settings
from django.db import transaction

from .models import NotificationOutbox

logger = logging.getLogger(__name__)


class Recipient(NamedTuple):
    channel: str
    address: str = ''


def email(address):
    return Recipient('EMAIL', address or '')


def in_app(user=None):
    return Recipient('IN_APP', str(user.pk) if user is not None else '')


def webhook(url=''):
    return Recipient('WEBHOOK', url or '')


def default_webhook() -> List[Recipient]:
    """The tenant-wide webhook, when one is configured"""
    if getattr(settings, 'DISCORD_WEBHOOK_URL', ''):
        return [webhook(settings.DISCORD_WEBHOOK_URL)]
    return []


def enqueue(outbox_ids):
    from .tasks import deliver_notification

    for outbox_id in outbox_ids:
        try:
            deliver_notification.delay(outbox_id)
        except Exception:
            # Row stays PENDIENTE; retry_failed_notifications picks it up.
            logger.exception("No se pudo encolar la notificación %s", outbox_id)


def dispatch(event_type, tenant, entidad, entidad_id, recipients: Iterable[Recipient], payload=None):
    """
    Queue one outbox row per recipient and deliver them after commit.
    Returns the created rows.
    """
    payload = dict(payload or {})
    payload.setdefault('entidad', entidad)
    payload.setdefault('entidad_id', str(entidad_id))

    rows = []
    seen = set()
    for recipient in recipients:
        if recipient.channel in ('EMAIL',) and not recipient.address:
            continue
        key = (recipient.channel, recipient.address)
        if key in seen:
            continue
        seen.add(key)
        rows.append(NotificationOutbox.objects.create(
            tenant=tenant,
            event_type=event_type,
            entidad=entidad,
            entidad_id=str(entidad_id),
            channel=recipient.channel,
            recipient=recipient.address,
            payload=payload,
        ))

    if rows:
        outbox_ids = [row.pk for row in rows]
        transaction.on_commit(lambda: enqueue(outbox_ids))
        logger.info("Evento %s de %s %s encolado en %d canal(es)", event_type, entidad, entidad_id, len(rows))
    return rows
