"""
Explicit request context passed into every service call.

Resolved once at the API boundary from the authenticated user and the
active membership; services never read cookies, tokens or the request.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, FrozenSet, Optional

from apps.accounts.permissions import ADMIN_ROLES, ALL_PERMISSIONS, role_satisfies

if TYPE_CHECKING:
    from django.contrib.auth.models import User

    from apps.accounts.models import TenantMembership
    from apps.tenants.models import Tenant


@dataclass(frozen=True)
class RequestContext:
    tenant: 'Tenant'
    user: Optional['User'] = None
    role: Optional[str] = None
    permissions: FrozenSet[str] = field(default_factory=frozenset)
    is_system: bool = False

    @classmethod
    def from_membership(cls, membership: 'TenantMembership') -> 'RequestContext':
        return cls(
            tenant=membership.tenant,
            user=membership.user,
            role=membership.role,
            permissions=frozenset(membership.permissions),
        )

    @classmethod
    def system(cls, tenant: 'Tenant') -> 'RequestContext':
        """Context for scheduled jobs: no user, every permission"""
        return cls(tenant=tenant, permissions=ALL_PERMISSIONS, is_system=True)

    @property
    def user_id(self) -> Optional[int]:
        return self.user.pk if self.user else None

    @property
    def tenant_id(self) -> int:
        return self.tenant.pk

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    def has_permission(self, permission: Optional[str]) -> bool:
        if not permission:
            return True
        return self.is_system or permission in self.permissions

    def can_sign_as(self, required_role: str) -> bool:
        return self.is_system or role_satisfies(self.role, required_role)
