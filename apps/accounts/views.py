"""
Accounts App Views - current user, memberships and company switch
"""
import logging

from rest_framework import serializers, views
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from apps.core.exceptions import AuthorizationError
from apps.tenants.middleware import requested_tenant_id, resolve_membership

from .models import TenantMembership

logger = logging.getLogger(__name__)


class MembershipSerializer(serializers.ModelSerializer):
    tenant_id = serializers.ReadOnlyField(source='tenant.id')
    tenant_name = serializers.ReadOnlyField(source='tenant.name')
    permissions = serializers.SerializerMethodField()

    class Meta:
        model = TenantMembership
        fields = ['tenant_id', 'tenant_name', 'role', 'permissions', 'joined_at']

    def get_permissions(self, obj):
        return sorted(obj.permissions)


def _active_memberships(user):
    return TenantMembership.objects.filter(
        user=user,
        is_active=True,
        tenant__is_active=True
    ).select_related('tenant')


class MeView(views.APIView):
    """
    GET /api/v1/auth/me/ -> user data and every active membership.
    Clients pick the company with the X-Tenant-ID header.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        memberships = _active_memberships(request.user)
        active = resolve_membership(request.user, requested_tenant_id(request))
        return Response({
            'id': request.user.pk,
            'username': request.user.username,
            'email': request.user.email,
            'active_tenant_id': active.tenant_id if active else None,
            'memberships': MembershipSerializer(memberships, many=True).data,
        })


class SwitchCompanyView(views.APIView):
    """POST /api/v1/auth/switch-company/ {tenant_id} -> session-based company switch"""
    permission_classes = [IsAuthenticated]

    def post(self, request):
        tenant_id = request.data.get('tenant_id')
        membership = _active_memberships(request.user).filter(tenant_id=tenant_id).first() if tenant_id else None
        if membership is None:
            raise AuthorizationError("No tiene acceso a esta empresa.", code='TENANT_FORBIDDEN')

        request.session['active_tenant_id'] = membership.tenant_id
        logger.info("Usuario %s cambió a empresa %s", request.user.pk, membership.tenant_id)
        return Response(MembershipSerializer(membership).data)
