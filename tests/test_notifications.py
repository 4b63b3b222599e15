from decimal import Decimal

import pytest
import requests
from django.core import mail
from django.urls import reverse
from rest_framework import status

from apps.core.context import RequestContext
from apps.core.exceptions import AuthorizationError
from apps.core.models import StatusHistory
from apps.notifications import dispatcher
from apps.notifications.channels import Event, WebhookChannel, render_title
from apps.notifications.models import InAppAlert, NotificationOutbox, OutboxStatus
from apps.notifications.tasks import deliver_notification, retry_failed_notifications
from apps.sales.services.registry import DocumentType
from apps.sales.services.transitions import apply_transition
from tests.factories import ClientFactory, ClientPaymentFactory

WEBHOOK_URL = 'https://hooks.example.com/ventas'


class FakeResponse:
    def __init__(self, status_code=204, text=''):
        self.status_code = status_code
        self.text = text


@pytest.mark.django_db
class TestDispatcher:
    def test_one_row_per_distinct_recipient(self, tenant, user):
        rows = dispatcher.dispatch(
            Event.PAYMENT_CONFIRMED, tenant, DocumentType.CLIENT_PAYMENT, 7,
            [
                dispatcher.email('cliente@example.com'),
                dispatcher.email('cliente@example.com'),
                dispatcher.email(''),
                dispatcher.in_app(user),
            ],
            {'numero': 'REC-000007'},
        )

        assert [(row.channel, row.recipient) for row in rows] == [
            ('EMAIL', 'cliente@example.com'),
            ('IN_APP', str(user.pk)),
        ]
        assert all(row.status == OutboxStatus.PENDIENTE for row in rows)
        assert rows[0].payload['entidad'] == DocumentType.CLIENT_PAYMENT
        assert rows[0].payload['entidad_id'] == '7'

    def test_rows_are_delivered_after_commit(self, tenant, user, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            rows = dispatcher.dispatch(
                Event.CLIENT_BLOCKED, tenant, 'client', 3, [dispatcher.in_app(user)], {'numero': 'ACME'}
            )

        rows[0].refresh_from_db()
        assert rows[0].status == OutboxStatus.ENVIADA
        assert rows[0].attempts == 1
        alert = InAppAlert.objects.get(user=user)
        assert alert.title == 'Cliente ACME bloqueado'
        assert alert.tenant == tenant


@pytest.mark.django_db
class TestDelivery:
    def test_email_delivery(self, tenant):
        row = NotificationOutbox.objects.create(
            tenant=tenant, event_type=Event.QUOTE_SENT, entidad=DocumentType.QUOTE, entidad_id='1',
            channel='EMAIL', recipient='cliente@example.com',
            payload={'numero': 'COT-000001', 'cliente': 'ACME'},
        )

        assert deliver_notification(row.pk) == 'sent'
        assert len(mail.outbox) == 1
        assert mail.outbox[0].subject == 'Cotización COT-000001 enviada'
        assert 'Cliente: ACME' in mail.outbox[0].body

    def test_sent_rows_are_not_sent_twice(self, tenant):
        row = NotificationOutbox.objects.create(
            tenant=tenant, event_type=Event.QUOTE_SENT, entidad=DocumentType.QUOTE, entidad_id='1',
            channel='EMAIL', recipient='cliente@example.com',
        )
        deliver_notification(row.pk)

        assert deliver_notification(row.pk) == 'already_sent'
        assert len(mail.outbox) == 1

    def test_webhook_failures_end_in_dead_letter(self, tenant, monkeypatch):
        def fail(*args, **kwargs):
            raise requests.ConnectionError("connection refused")

        monkeypatch.setattr(requests, 'post', fail)
        row = NotificationOutbox.objects.create(
            tenant=tenant, event_type=Event.DELIVERY_FAILED, entidad=DocumentType.DELIVERY, entidad_id='9',
            channel='WEBHOOK', recipient=WEBHOOK_URL, payload={'numero': 'ENT-000009'},
        )

        results = [deliver_notification(row.pk) for _ in range(3)]

        row.refresh_from_db()
        assert results == ['failed', 'failed', 'failed']
        assert row.status == OutboxStatus.FALLIDA
        assert row.attempts == 3
        assert row.is_dead_letter is True
        assert 'connection refused' in row.last_error

        assert deliver_notification(row.pk) == 'dead_letter'
        assert retry_failed_notifications() == 0

    def test_webhook_http_error_is_a_failure(self, tenant, monkeypatch):
        monkeypatch.setattr(requests, 'post', lambda *args, **kwargs: FakeResponse(500, 'boom'))

        result = WebhookChannel().notify(Event.PAYMENT_REJECTED, 5, WEBHOOK_URL, {'numero': 'REC-000005'})

        assert result.success is False
        assert result.error.startswith('HTTP 500')

    def test_webhook_body(self, monkeypatch):
        calls = []

        def post(url, json=None, timeout=None):
            calls.append((url, json, timeout))
            return FakeResponse(204)

        monkeypatch.setattr(requests, 'post', post)
        result = WebhookChannel().notify(Event.DELIVERY_DISPATCHED, 4, WEBHOOK_URL, {'numero': 'ENT-000004'})

        assert result.success is True
        url, body, timeout = calls[0]
        assert url == WEBHOOK_URL
        assert body['content'] == 'Entrega ENT-000004 en camino'
        assert body['embeds'][0]['title'] == Event.DELIVERY_DISPATCHED
        assert timeout == 10

    def test_retry_picks_rows_with_attempts_left(self, tenant, user):
        row = NotificationOutbox.objects.create(
            tenant=tenant, event_type=Event.TASK_ASSIGNED, entidad=DocumentType.TASK, entidad_id='2',
            channel='IN_APP', recipient=str(user.pk), status=OutboxStatus.FALLIDA, attempts=1,
        )

        assert retry_failed_notifications() == 1

        row.refresh_from_db()
        assert row.status == OutboxStatus.ENVIADA

    def test_in_app_database_error_marks_row_failed(self, tenant, user):
        row = NotificationOutbox.objects.create(
            tenant=tenant, event_type=Event.TASK_ASSIGNED, entidad=DocumentType.TASK, entidad_id='4',
            channel='IN_APP', recipient=str(user.pk), payload={'entidad': None},
        )

        assert deliver_notification(row.pk) == 'failed'

        row.refresh_from_db()
        assert row.status == OutboxStatus.FALLIDA
        assert row.attempts == 1
        assert not InAppAlert.objects.exists()

    def test_manual_retry_survives_broker_outage(self, api, tenant, monkeypatch):
        def broker_down(*args, **kwargs):
            raise ConnectionError("broker unavailable")

        monkeypatch.setattr(deliver_notification, 'delay', broker_down)
        row = NotificationOutbox.objects.create(
            tenant=tenant, event_type=Event.QUOTE_SENT, entidad=DocumentType.QUOTE, entidad_id='1',
            channel='EMAIL', recipient='cliente@example.com', status=OutboxStatus.FALLIDA, attempts=3,
        )

        response = api.post(reverse('api-notification-retry', args=[row.pk]))

        assert response.status_code == status.HTTP_202_ACCEPTED
        row.refresh_from_db()
        assert row.status == OutboxStatus.PENDIENTE
        assert row.attempts == 0


@pytest.mark.django_db
class TestTransitionNotifications:
    def test_notification_failure_does_not_fail_transition(self, tenant, supervisor, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("outbox unavailable")

        monkeypatch.setattr(dispatcher, 'dispatch', broken)
        cliente = ClientFactory(tenant=tenant, saldo_actual=Decimal('500'))
        payment = ClientPaymentFactory(tenant=tenant, cliente=cliente, total=Decimal('200'))

        result = apply_transition(
            RequestContext.from_membership(supervisor), DocumentType.CLIENT_PAYMENT, payment.pk, 'PENDIENTE', 'CONFIRMADO'
        )

        payment.refresh_from_db()
        cliente.refresh_from_db()
        assert result.to_state == 'CONFIRMADO'
        assert payment.estado == 'CONFIRMADO'
        assert cliente.saldo_actual == Decimal('300')
        assert StatusHistory.objects.filter(entidad=DocumentType.CLIENT_PAYMENT).count() == 1
        assert NotificationOutbox.objects.count() == 0

    def test_unreachable_webhook_does_not_fail_transition(
        self, tenant, supervisor, settings, monkeypatch, django_capture_on_commit_callbacks
    ):
        settings.DISCORD_WEBHOOK_URL = WEBHOOK_URL

        def fail(*args, **kwargs):
            raise requests.Timeout("timed out")

        monkeypatch.setattr(requests, 'post', fail)
        cliente = ClientFactory(tenant=tenant, email='pagos@acme.example')
        payment = ClientPaymentFactory(tenant=tenant, cliente=cliente)

        with django_capture_on_commit_callbacks(execute=True):
            apply_transition(
                RequestContext.from_membership(supervisor), DocumentType.CLIENT_PAYMENT, payment.pk,
                'PENDIENTE', 'CONFIRMADO',
            )

        payment.refresh_from_db()
        assert payment.estado == 'CONFIRMADO'

        webhook_row = NotificationOutbox.objects.get(channel='WEBHOOK')
        email_row = NotificationOutbox.objects.get(channel='EMAIL')
        assert webhook_row.status == OutboxStatus.FALLIDA
        assert webhook_row.attempts == 1
        assert email_row.status == OutboxStatus.ENVIADA
        assert mail.outbox[0].to == ['pagos@acme.example']

    def test_rolled_back_transition_sends_nothing(self, tenant, vendedor):
        payment = ClientPaymentFactory(tenant=tenant)

        with pytest.raises(AuthorizationError):
            apply_transition(
                RequestContext.from_membership(vendedor), DocumentType.CLIENT_PAYMENT, payment.pk,
                'PENDIENTE', 'CONFIRMADO',
            )

        assert NotificationOutbox.objects.count() == 0


class TestRendering:
    def test_title_falls_back_to_entity_id(self):
        assert render_title(Event.PAYMENT_CONFIRMED, {'entidad_id': '12'}) == 'Pago 12 confirmado'

    def test_unknown_event_uses_its_name(self):
        assert render_title('SOMETHING_ELSE', {}) == 'SOMETHING_ELSE'
