"""
Notifications App - Outbox and in-app alerts

NotificationOutbox rows are written inside the business transaction and
delivered by a Celery worker after commit. Rows that exhaust their attempts
stay FALLIDA (dead letter) for manual inspection.
"""
from django.conf import settings
from django.db import models
from django.utils import timezone

from apps.tenants.models import TenantMixin


class Channel(models.TextChoices):
    EMAIL = 'EMAIL', 'E-mail'
    WEBHOOK = 'WEBHOOK', 'Webhook'
    IN_APP = 'IN_APP', 'Alerta interna'


class OutboxStatus(models.TextChoices):
    PENDIENTE = 'PENDIENTE', 'Pendiente'
    ENVIADA = 'ENVIADA', 'Enviada'
    FALLIDA = 'FALLIDA', 'Fallida'


class NotificationOutbox(TenantMixin):
    event_type = models.CharField(max_length=50, db_index=True)
    entidad = models.CharField(max_length=30)
    entidad_id = models.CharField(max_length=64)
    channel = models.CharField(max_length=10, choices=Channel.choices)
    recipient = models.CharField(max_length=255, blank=True, help_text="E-mail, URL o id de usuario según el canal")
    payload = models.JSONField(default=dict, blank=True)
    status = models.CharField(max_length=10, choices=OutboxStatus.choices, default=OutboxStatus.PENDIENTE, db_index=True)
    attempts = models.PositiveIntegerField(default=0)
    last_error = models.TextField(blank=True, null=True)
    sent_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Notificación"
        verbose_name_plural = "Cola de Notificaciones"
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'attempts'], name='notif_outbox_retry_idx'),
        ]

    def __str__(self):
        return f"{self.event_type} -> {self.get_channel_display()} ({self.status})"

    def mark_sent(self):
        self.status = OutboxStatus.ENVIADA
        self.sent_at = timezone.now()
        self.last_error = None
        self.attempts += 1
        self.save(update_fields=['status', 'sent_at', 'last_error', 'attempts'])

    def mark_failed(self, error):
        self.status = OutboxStatus.FALLIDA
        self.last_error = str(error)[:2000]
        self.attempts += 1
        self.save(update_fields=['status', 'last_error', 'attempts'])

    @property
    def is_dead_letter(self):
        max_attempts = getattr(settings, 'NOTIFICATION_MAX_ATTEMPTS', 5)
        return self.status == OutboxStatus.FALLIDA and self.attempts >= max_attempts


class InAppAlert(TenantMixin):
    """Alerta visible en la aplicación. Sin usuario = visible para toda la empresa"""
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='alertas'
    )
    title = models.CharField(max_length=200)
    message = models.TextField(blank=True)
    event_type = models.CharField(max_length=50, blank=True)
    entidad = models.CharField(max_length=30, blank=True)
    entidad_id = models.CharField(max_length=64, blank=True)
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Alerta"
        verbose_name_plural = "Alertas"
        ordering = ['-created_at']

    def __str__(self):
        return self.title
