"""
Tenant Middleware - resolves the active company for each request

Responsibilities:
1. Attach active tenant and membership to request
2. Block access if the company is inactive
3. Support tenant switching via X-Tenant-ID header or session

JWT-authenticated API calls are only authenticated inside DRF views, so
BaseTenantAPIView resolves the membership again with resolve_membership().
"""
import logging

from django.http import JsonResponse

logger = logging.getLogger(__name__)

TENANT_HEADER = 'HTTP_X_TENANT_ID'


def resolve_membership(user, tenant_id=None):
    """
    Get user's active membership.
    Priority:
    1. Explicitly requested tenant (header or session)
    2. Single active membership (auto-select)
    3. First active membership if multiple exist
    """
    from apps.accounts.models import TenantMembership

    if not user or not user.is_authenticated:
        return None

    memberships = TenantMembership.objects.filter(
        user=user,
        is_active=True,
        tenant__is_active=True
    ).select_related('tenant')

    if tenant_id:
        membership = memberships.filter(tenant_id=tenant_id).first()
        if membership:
            return membership
        logger.warning("Usuario %s sin membresía activa en empresa %s", user.pk, tenant_id)
        return None

    return memberships.order_by('joined_at').first()


def requested_tenant_id(request):
    """Tenant explicitly selected by the client, if any"""
    tenant_id = request.META.get(TENANT_HEADER)
    if not tenant_id and hasattr(request, 'session'):
        tenant_id = request.session.get('active_tenant_id')
    return tenant_id


class TenantMiddleware:
    """
    Middleware that:
    - Injects request.tenant based on user's active membership
    - Rejects requests whose selected company is inactive
    """

    # Paths that don't require tenant context
    EXEMPT_PATHS = [
        '/admin/',
        '/static/',
        '/api/v1/auth/',
    ]

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.tenant = None
        request.membership = None

        if self._is_exempt_path(request.path):
            return self.get_response(request)

        # Anonymous (or JWT, resolved later by the API view) users pass through
        if not request.user.is_authenticated:
            return self.get_response(request)

        tenant_id = requested_tenant_id(request)
        membership = resolve_membership(request.user, tenant_id)

        if tenant_id and not membership:
            return JsonResponse(
                {'error': 'No tiene acceso a la empresa seleccionada.', 'code': 'TENANT_FORBIDDEN'},
                status=403
            )

        if membership:
            request.tenant = membership.tenant
            request.membership = membership

        return self.get_response(request)

    def _is_exempt_path(self, path):
        """Check if path is exempt from tenant requirements"""
        return any(path.startswith(exempt) for exempt in self.EXEMPT_PATHS)
