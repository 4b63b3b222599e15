"""
Accounts App - TenantMembership

A user can belong to several companies, each time with a role. The role
decides the permission strings the RequestContext carries and the approval
levels the member may sign.
"""
from django.conf import settings
from django.db import models

from apps.tenants.models import Tenant

from .permissions import permissions_for_role


class MembershipRole(models.TextChoices):
    OWNER = 'OWNER', 'Propietario'
    ADMIN = 'ADMIN', 'Administrador'
    GERENTE = 'GERENTE', 'Gerente'
    SUPERVISOR = 'SUPERVISOR', 'Supervisor'
    VENDEDOR = 'VENDEDOR', 'Vendedor'
    OPERATOR = 'OPERATOR', 'Operador'


class TenantMembership(models.Model):
    """
    Links a User to a Tenant with a specific role.
    A user can belong to multiple tenants.
    """
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='memberships'
    )
    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        related_name='memberships'
    )
    role = models.CharField(
        max_length=20,
        choices=MembershipRole.choices,
        default=MembershipRole.OPERATOR,
        verbose_name="Rol"
    )
    is_active = models.BooleanField(default=True)
    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Miembro de la Empresa"
        verbose_name_plural = "Miembros de las Empresas"
        unique_together = ['user', 'tenant']
        ordering = ['-joined_at']

    def __str__(self):
        return f"{self.user.username} @ {self.tenant.name} ({self.get_role_display()})"

    @property
    def permissions(self):
        return permissions_for_role(self.role)
