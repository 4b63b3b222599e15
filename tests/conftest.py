import pytest
from rest_framework.test import APIClient

from apps.core.context import RequestContext
from salesflow.celery import app as celery_app
from tests.factories import TenantFactory, TenantMembershipFactory, UserFactory

# Deliveries queued on commit run inline during tests
celery_app.conf.CELERY_TASK_ALWAYS_EAGER = True


@pytest.fixture(autouse=True)
def notification_settings(settings):
    settings.DISCORD_WEBHOOK_URL = ''
    settings.NOTIFICATION_MAX_ATTEMPTS = 3
    settings.EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'

@pytest.fixture
def client():
    return APIClient()

@pytest.fixture
def user():
    return UserFactory()

@pytest.fixture
def tenant():
    return TenantFactory()

@pytest.fixture
def member(user, tenant):
    return TenantMembershipFactory(user=user, tenant=tenant, role='OWNER')

@pytest.fixture
def make_member(tenant):
    """Membership factory bound to the test tenant"""
    def _make(role, **kwargs):
        return TenantMembershipFactory(tenant=tenant, role=role, **kwargs)
    return _make

@pytest.fixture
def context(member):
    return RequestContext.from_membership(member)

@pytest.fixture
def vendedor(make_member):
    return make_member('VENDEDOR')

@pytest.fixture
def supervisor(make_member):
    return make_member('SUPERVISOR')

@pytest.fixture
def gerente(make_member):
    return make_member('GERENTE')

@pytest.fixture
def operator(make_member):
    return make_member('OPERATOR')

@pytest.fixture
def api(client, member):
    """Client authenticated as the tenant owner"""
    client.force_authenticate(user=member.user)
    return client
