from decouple import config
from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand

from apps.accounts.models import MembershipRole, TenantMembership
from apps.core.models import SystemSetting
from apps.tenants.models import Tenant

DEMO_MEMBERS = [
    ('supervisor', MembershipRole.SUPERVISOR),
    ('gerente', MembershipRole.GERENTE),
    ('vendedor', MembershipRole.VENDEDOR),
    ('deposito', MembershipRole.OPERATOR),
]


class Command(BaseCommand):
    help = 'Inicializa la empresa del sistema, su configuración de ventas y el superusuario'

    def add_arguments(self, parser):
        parser.add_argument('--demo', action='store_true', help='Crea además un usuario por rol de aprobación')

    def handle(self, *args, **options):
        self.stdout.write('Iniciando seed_db...')

        # 1. Empresa y configuración
        tenant, _ = Tenant.objects.get_or_create(name=config('SEED_TENANT_NAME', default='Empresa Demo'))
        SystemSetting.get_settings(tenant)

        # 2. Superusuario (leído del .env)
        User = get_user_model()
        u = config('DJANGO_SUPERUSER_USERNAME', default='admin')
        e = config('DJANGO_SUPERUSER_EMAIL', default='admin@example.com')
        p = config('DJANGO_SUPERUSER_PASSWORD', default='admin123')

        if not User.objects.filter(username=u).exists():
            user = User.objects.create_superuser(u, e, p)
            TenantMembership.objects.create(user=user, tenant=tenant, role=MembershipRole.OWNER)
            self.stdout.write(self.style.SUCCESS(f'Superusuario "{u}" creado.'))
        else:
            self.stdout.write(self.style.WARNING(f'Superusuario "{u}" ya existe.'))

        # 3. Usuarios de prueba por rol
        if options['demo']:
            for username, role in DEMO_MEMBERS:
                user, created = User.objects.get_or_create(
                    username=username, defaults={'email': f'{username}@example.com'}
                )
                if created:
                    user.set_password(p)
                    user.save()
                TenantMembership.objects.get_or_create(user=user, tenant=tenant, defaults={'role': role})
            self.stdout.write(self.style.SUCCESS(f'{len(DEMO_MEMBERS)} usuarios de prueba listos.'))

        self.stdout.write(self.style.SUCCESS('seed_db finalizado.'))
