import pytest
from django.contrib.auth import get_user_model
from django.core.management import call_command

from apps.accounts.models import TenantMembership
from apps.core.models import SystemSetting


@pytest.mark.django_db
class TestSeedCommand:
    def test_seed_is_idempotent(self):
        call_command('seed_db', '--demo')
        call_command('seed_db', '--demo')

        User = get_user_model()
        admin = User.objects.get(username='admin')
        membership = TenantMembership.objects.get(user=admin)
        assert membership.role == 'OWNER'
        assert SystemSetting.objects.filter(tenant=membership.tenant).count() == 1
        assert TenantMembership.objects.filter(tenant=membership.tenant).count() == 5
        assert set(
            TenantMembership.objects.filter(tenant=membership.tenant).values_list('role', flat=True)
        ) == {'OWNER', 'SUPERVISOR', 'GERENTE', 'VENDEDOR', 'OPERATOR'}
