from decimal import Decimal

import pytest
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from apps.core.models import SystemSetting
from apps.sales.models import ApprovalWorkflow, Quote
from tests.factories import (
    ClientFactory,
    DeliveryFactory,
    QuoteFactory,
    QuoteItemFactory,
    TenantFactory,
    TenantMembershipFactory,
)


def api_for(membership):
    client = APIClient()
    client.force_authenticate(user=membership.user)
    return client


def healthy_quote(tenant):
    quote = QuoteFactory(tenant=tenant, total=Decimal('100'))
    QuoteItemFactory(cotizacion=quote, precio_unitario=Decimal('100'), costo_unitario=Decimal('50'))
    return quote


@pytest.mark.django_db
class TestAPIAuth:
    def test_token_obtain(self, client, user, member):
        url = reverse('token_obtain_pair')
        response = client.post(url, {'username': user.username, 'password': 'password123'}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert 'access' in response.data

        client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")
        me = client.get(reverse('api-me'))
        assert me.status_code == status.HTTP_200_OK
        assert me.data['active_tenant_id'] == member.tenant_id

    def test_unauthenticated_error_format(self, client):
        response = client.get(reverse('api-quote-list'))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert set(response.data) == {'error', 'code'}
        assert response.data['code'] == 'NOT_AUTHENTICATED'

    def test_user_without_company_is_rejected(self, client, user):
        client.force_authenticate(user=user)
        response = client.get(reverse('api-quote-list'))

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data['code'] == 'TENANT_REQUIRED'

    def test_switch_company(self, api, member):
        other = TenantMembershipFactory(user=member.user, role='VENDEDOR')

        response = api.post(reverse('api-switch-company'), {'tenant_id': other.tenant_id}, format='json')
        assert response.status_code == status.HTTP_200_OK
        assert response.data['role'] == 'VENDEDOR'

        forbidden = api.post(reverse('api-switch-company'), {'tenant_id': TenantFactory().pk}, format='json')
        assert forbidden.status_code == status.HTTP_403_FORBIDDEN
        assert forbidden.data['code'] == 'TENANT_FORBIDDEN'

    def test_tenant_header_selects_company(self, api, member):
        other = TenantMembershipFactory(user=member.user, role='VENDEDOR')
        QuoteFactory(tenant=other.tenant)

        response = api.get(reverse('api-quote-list'), HTTP_X_TENANT_ID=str(other.tenant_id))

        assert response.status_code == status.HTTP_200_OK
        assert response.data['count'] == 1


@pytest.mark.django_db
class TestDocumentAPI:
    def test_create_quote_with_items(self, api, tenant, member):
        cliente = ClientFactory(tenant=tenant)
        payload = {
            'cliente': cliente.pk,
            'notas': 'Entrega en obra',
            'items': [
                {'descripcion': 'Cemento', 'cantidad': '10', 'precio_unitario': '1500', 'costo_unitario': '1000'},
                {'descripcion': 'Arena', 'cantidad': '2', 'precio_unitario': '500', 'costo_unitario': '300'},
            ],
        }

        response = api.post(reverse('api-quote-list'), payload, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        quote = Quote.objects.get(pk=response.data['id'])
        assert quote.estado == 'BORRADOR'
        assert quote.numero == 'COT-000001'
        assert quote.total == Decimal('16000')
        assert quote.vendedor == member.user
        assert quote.items.count() == 2

    def test_estado_is_read_only(self, api, tenant):
        quote = healthy_quote(tenant)
        response = api.patch(reverse('api-quote-detail', args=[quote.pk]), {'estado': 'CONVERTIDA'}, format='json')

        assert response.status_code == status.HTTP_200_OK
        quote.refresh_from_db()
        assert quote.estado == 'BORRADOR'

    def test_cannot_reference_other_company_client(self, api):
        foreign = ClientFactory(tenant=TenantFactory())
        response = api.post(reverse('api-quote-list'), {'cliente': foreign.pk}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'cliente' in response.data['fields']

    def test_transition_endpoint(self, api, tenant):
        quote = healthy_quote(tenant)
        url = reverse('api-quote-transition', args=[quote.pk])

        response = api.post(url, {'from_state': 'BORRADOR', 'to_state': 'ENVIADA'}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['to_state'] == 'ENVIADA'
        assert response.data['document']['estado'] == 'ENVIADA'
        assert response.data['replayed'] is False

        history = api.get(reverse('api-quote-history', args=[quote.pk]))
        assert [entry['estado_nuevo'] for entry in history.data] == ['ENVIADA']

    def test_stale_state_is_unprocessable(self, api, tenant):
        quote = healthy_quote(tenant)
        url = reverse('api-quote-transition', args=[quote.pk])

        response = api.post(url, {'from_state': 'ENVIADA', 'to_state': 'ACEPTADA'}, format='json')

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.data == {'error': response.data['error'], 'code': 'STATE_CONFLICT'}

    def test_undeclared_transition_is_bad_request(self, api, tenant):
        quote = healthy_quote(tenant)
        url = reverse('api-quote-transition', args=[quote.pk])

        response = api.post(url, {'from_state': 'BORRADOR', 'to_state': 'CONVERTIDA'}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'INVALID_TRANSITION'

    def test_missing_reason_is_bad_request(self, api, tenant):
        quote = QuoteFactory(tenant=tenant, estado='ENVIADA')
        url = reverse('api-quote-transition', args=[quote.pk])

        response = api.post(url, {'from_state': 'ENVIADA', 'to_state': 'PERDIDA'}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'REASON_REQUIRED'

    def test_missing_permission_is_forbidden(self, tenant, operator):
        quote = healthy_quote(tenant)
        url = reverse('api-quote-transition', args=[quote.pk])

        response = api_for(operator).post(url, {'from_state': 'BORRADOR', 'to_state': 'ENVIADA'}, format='json')

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data['code'] == 'FORBIDDEN'

    def test_other_company_document_is_not_found(self, api):
        foreign = healthy_quote(TenantFactory())

        detail = api.get(reverse('api-quote-detail', args=[foreign.pk]))
        transition = api.post(
            reverse('api-quote-transition', args=[foreign.pk]),
            {'from_state': 'BORRADOR', 'to_state': 'ENVIADA'},
            format='json',
        )

        assert detail.status_code == status.HTTP_404_NOT_FOUND
        assert detail.data['code'] == 'NOT_FOUND'
        assert transition.status_code == status.HTTP_404_NOT_FOUND
        foreign.refresh_from_db()
        assert foreign.estado == 'BORRADOR'

    def test_list_is_scoped_to_company(self, api, tenant):
        healthy_quote(tenant)
        healthy_quote(TenantFactory())

        response = api.get(reverse('api-quote-list'))

        assert response.data['count'] == 1

    def test_dispatch_precondition_over_api(self, api, tenant):
        delivery = DeliveryFactory(orden__tenant=tenant, estado='LISTA_PARA_DESPACHO')
        url = reverse('api-delivery-transition', args=[delivery.pk])

        missing = api.post(url, {'from_state': 'LISTA_PARA_DESPACHO', 'to_state': 'EN_TRANSITO'}, format='json')
        assert missing.status_code == status.HTTP_400_BAD_REQUEST
        assert missing.data['code'] == 'PRECONDITION_FAILED'

        response = api.post(url, {
            'from_state': 'LISTA_PARA_DESPACHO',
            'to_state': 'EN_TRANSITO',
            'changes': {'conductor_nombre': 'Luis', 'vehiculo': 'AC456BD'},
        }, format='json')
        assert response.status_code == status.HTTP_200_OK
        assert response.data['document']['conductor_nombre'] == 'Luis'

    def test_malformed_change_value_is_a_bad_request(self, api, tenant):
        delivery = DeliveryFactory(orden__tenant=tenant, estado='LISTA_PARA_DESPACHO')

        response = api.post(reverse('api-delivery-transition', args=[delivery.pk]), {
            'from_state': 'LISTA_PARA_DESPACHO',
            'to_state': 'EN_TRANSITO',
            'changes': {'conductor_nombre': 'Luis', 'vehiculo': 'AC456BD', 'fecha_programada': 'not-a-date'},
        }, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'INVALID_CHANGES'
        delivery.refresh_from_db()
        assert delivery.estado == 'LISTA_PARA_DESPACHO'

    def test_available_transitions(self, api, tenant):
        quote = QuoteFactory(tenant=tenant, estado='ENVIADA')
        response = api.get(reverse('api-quote-transitions', args=[quote.pk]))

        assert response.status_code == status.HTTP_200_OK
        assert response.data['estado'] == 'ENVIADA'
        assert {'EN_NEGOCIACION', 'PERDIDA'} <= {item['to_state'] for item in response.data['transitions']}


@pytest.mark.django_db
class TestApprovalAPI:
    def test_request_and_approve(self, tenant, vendedor, supervisor):
        quote = QuoteFactory(tenant=tenant, total=Decimal('100000'))
        QuoteItemFactory(cotizacion=quote, precio_unitario=Decimal('100000'), costo_unitario=Decimal('95000'))

        check = api_for(vendedor).get(reverse('api-quote-approval-check', args=[quote.pk]))
        assert check.data['required'] is True
        assert check.data['motivo'] == 'MARGEN_BAJO'

        requested = api_for(vendedor).post(reverse('api-quote-request-approval', args=[quote.pk]))
        assert requested.status_code == status.HTTP_201_CREATED
        workflow_id = requested.data['workflow']['id']

        forbidden = api_for(vendedor).post(reverse('api-approval-approve', args=[workflow_id]), {'nivel': 1}, format='json')
        assert forbidden.status_code == status.HTTP_403_FORBIDDEN

        approved = api_for(supervisor).post(
            reverse('api-approval-approve', args=[workflow_id]), {'nivel': 1, 'comentario': 'Cliente estratégico'}, format='json'
        )
        assert approved.status_code == status.HTTP_200_OK
        assert approved.data['estado'] == 'APROBADO'

        quote.refresh_from_db()
        assert quote.estado == 'APROBADA'
        assert ApprovalWorkflow.objects.get(pk=workflow_id).niveles.get().aprobador == supervisor.user

    def test_reject_requires_reason(self, tenant, vendedor, supervisor):
        quote = QuoteFactory(tenant=tenant, total=Decimal('100000'))
        QuoteItemFactory(cotizacion=quote, precio_unitario=Decimal('100000'), costo_unitario=Decimal('95000'))
        workflow_id = api_for(vendedor).post(reverse('api-quote-request-approval', args=[quote.pk])).data['workflow']['id']

        response = api_for(supervisor).post(reverse('api-approval-reject', args=[workflow_id]), {'nivel': 1}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'motivo' in response.data['fields']

    def test_request_without_need(self, tenant, vendedor):
        quote = healthy_quote(tenant)
        response = api_for(vendedor).post(reverse('api-quote-request-approval', args=[quote.pk]))

        assert response.status_code == status.HTTP_200_OK
        assert response.data['workflow'] is None


@pytest.mark.django_db
class TestClientAndSettingsAPI:
    def test_block_client(self, api, tenant):
        cliente = ClientFactory(tenant=tenant)

        response = api.post(reverse('api-client-block', args=[cliente.pk]), {'motivo': 'Mora', 'tipo_bloqueo': 'MORA'}, format='json')
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['tipo'] == 'BLOQUEO'

        again = api.post(reverse('api-client-block', args=[cliente.pk]), {'motivo': 'Mora'}, format='json')
        assert again.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert again.data['code'] == 'ALREADY_BLOCKED'

        history = api.get(reverse('api-client-block-history', args=[cliente.pk]))
        assert len(history.data) == 1

    def test_settings_update_is_admin_only(self, api, tenant, vendedor):
        response = api.patch(reverse('api-settings'), {'margen_minimo': '12.50'}, format='json')
        assert response.status_code == status.HTTP_200_OK
        assert SystemSetting.objects.get(tenant=tenant).margen_minimo == Decimal('12.50')

        forbidden = api_for(vendedor).patch(reverse('api-settings'), {'margen_minimo': '1'}, format='json')
        assert forbidden.status_code == status.HTTP_403_FORBIDDEN

    def test_settings_reject_inverted_thresholds(self, api):
        response = api.patch(reverse('api-settings'), {'monto_alto': '900000', 'monto_muy_alto': '100000'}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.django_db
class TestAlertsAPI:
    def test_outbox_is_admin_only(self, api, vendedor):
        assert api.get(reverse('api-notification-list')).status_code == status.HTTP_200_OK
        assert api_for(vendedor).get(reverse('api-notification-list')).status_code == status.HTTP_403_FORBIDDEN

    def test_alerts_mark_read(self, api, tenant, member):
        from apps.notifications.models import InAppAlert

        mine = InAppAlert.objects.create(tenant=tenant, user=member.user, title='Para mí')
        InAppAlert.objects.create(tenant=tenant, title='Para todos')
        InAppAlert.objects.create(tenant=TenantFactory(), title='Otra empresa')

        listed = api.get(reverse('api-alert-list'))
        assert listed.data['count'] == 2

        api.post(reverse('api-alert-mark-read', args=[mine.pk]))
        unread = api.get(reverse('api-alert-list'), {'unread': '1'})
        assert unread.data['count'] == 1
