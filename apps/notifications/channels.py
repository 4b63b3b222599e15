"""
Notification channels: e-mail, Discord-compatible webhook and in-app alert.

Every channel implements ``notify(event_type, document_id, recipient, ...)``
and returns a NotifyResult; delivery errors are reported, never raised.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import requests
from django.conf import settings
from django.core.mail import send_mail
from django.db import transaction

logger = logging.getLogger(__name__)


class Event:
    QUOTE_APPROVAL_REQUESTED = 'QUOTE_APPROVAL_REQUESTED'
    QUOTE_APPROVED = 'QUOTE_APPROVED'
    QUOTE_REJECTED = 'QUOTE_REJECTED'
    QUOTE_SENT = 'QUOTE_SENT'
    DELIVERY_DISPATCHED = 'DELIVERY_DISPATCHED'
    DELIVERY_DELIVERED = 'DELIVERY_DELIVERED'
    DELIVERY_FAILED = 'DELIVERY_FAILED'
    PAYMENT_CONFIRMED = 'PAYMENT_CONFIRMED'
    PAYMENT_REJECTED = 'PAYMENT_REJECTED'
    CLIENT_BLOCKED = 'CLIENT_BLOCKED'
    CLIENT_UNBLOCKED = 'CLIENT_UNBLOCKED'
    TASK_ASSIGNED = 'TASK_ASSIGNED'


EVENT_TITLES = {
    Event.QUOTE_APPROVAL_REQUESTED: "Cotización {numero} requiere aprobación",
    Event.QUOTE_APPROVED: "Cotización {numero} aprobada",
    Event.QUOTE_REJECTED: "Cotización {numero} rechazada",
    Event.QUOTE_SENT: "Cotización {numero} enviada",
    Event.DELIVERY_DISPATCHED: "Entrega {numero} en camino",
    Event.DELIVERY_DELIVERED: "Entrega {numero} entregada",
    Event.DELIVERY_FAILED: "Entrega {numero} fallida",
    Event.PAYMENT_CONFIRMED: "Pago {numero} confirmado",
    Event.PAYMENT_REJECTED: "Pago {numero} rechazado",
    Event.CLIENT_BLOCKED: "Cliente {numero} bloqueado",
    Event.CLIENT_UNBLOCKED: "Cliente {numero} desbloqueado",
    Event.TASK_ASSIGNED: "Nueva tarea asignada: {numero}",
}


@dataclass
class NotifyResult:
    success: bool
    error: Optional[str] = None


def render_title(event_type, payload):
    template = EVENT_TITLES.get(event_type, event_type)
    return template.format(numero=payload.get('numero') or payload.get('entidad_id', ''))


def render_message(event_type, payload):
    lines = [render_title(event_type, payload)]
    if payload.get('cliente'):
        lines.append(f"Cliente: {payload['cliente']}")
    if payload.get('estado_anterior') or payload.get('estado_nuevo'):
        lines.append(f"Estado: {payload.get('estado_anterior') or '-'} -> {payload.get('estado_nuevo') or '-'}")
    if payload.get('motivo'):
        lines.append(f"Motivo: {payload['motivo']}")
    return "\n".join(lines)


class EmailChannel:
    name = 'EMAIL'

    def notify(self, event_type, document_id, recipient, payload=None, tenant=None) -> NotifyResult:
        payload = payload or {}
        if not recipient:
            return NotifyResult(False, "Sin destinatario de e-mail")
        try:
            send_mail(
                subject=render_title(event_type, payload),
                message=render_message(event_type, payload),
                from_email=settings.DEFAULT_FROM_EMAIL,
                recipient_list=[recipient],
                fail_silently=False,
            )
        except Exception as e:
            logger.warning("Fallo envío de e-mail %s para documento %s: %s", event_type, document_id, e)
            return NotifyResult(False, str(e))
        return NotifyResult(True)


class WebhookChannel:
    """Discord-compatible JSON webhook ({"content": ..., "embeds": [...]})"""
    name = 'WEBHOOK'

    def notify(self, event_type, document_id, recipient, payload=None, tenant=None) -> NotifyResult:
        payload = payload or {}
        url = recipient or getattr(settings, 'DISCORD_WEBHOOK_URL', '')
        if not url:
            return NotifyResult(False, "Webhook no configurado")

        body = {
            "content": render_title(event_type, payload),
            "embeds": [{
                "title": event_type,
                "description": render_message(event_type, payload),
                "fields": [
                    {"name": "Documento", "value": str(document_id), "inline": True},
                ],
            }],
        }
        try:
            response = requests.post(url, json=body, timeout=getattr(settings, 'NOTIFICATION_TIMEOUT', 10))
        except requests.RequestException as e:
            logger.warning("Fallo webhook %s para documento %s: %s", event_type, document_id, e)
            return NotifyResult(False, str(e))

        if response.status_code >= 400:
            return NotifyResult(False, f"HTTP {response.status_code}: {response.text[:200]}")
        return NotifyResult(True)


class InAppChannel:
    name = 'IN_APP'

    def notify(self, event_type, document_id, recipient, payload=None, tenant=None) -> NotifyResult:
        from .models import InAppAlert

        payload = payload or {}
        if tenant is None:
            return NotifyResult(False, "Alerta interna sin empresa")
        try:
            with transaction.atomic():
                InAppAlert.objects.create(
                    tenant=tenant,
                    user_id=int(recipient) if recipient else None,
                    title=render_title(event_type, payload),
                    message=render_message(event_type, payload),
                    event_type=event_type,
                    entidad=payload.get('entidad', ''),
                    entidad_id=str(document_id),
                )
        except Exception as e:
            logger.warning("No se pudo crear alerta interna %s: %s", event_type, e)
            return NotifyResult(False, str(e))
        return NotifyResult(True)


CHANNELS = {
    'EMAIL': EmailChannel(),
    'WEBHOOK': WebhookChannel(),
    'IN_APP': InAppChannel(),
}


def get_channel(name):
    return CHANNELS.get(name)
