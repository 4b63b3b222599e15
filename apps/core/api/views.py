from rest_framework import serializers, viewsets
from rest_framework.permissions import IsAuthenticated

from apps.core.context import RequestContext
from apps.core.exceptions import AuthorizationError
from apps.tenants.middleware import requested_tenant_id, resolve_membership


def get_request_context(request):
    """
    Build the RequestContext once per request and cache it on the request.
    Session users already carry request.membership from TenantMiddleware;
    JWT users are only authenticated here, inside the DRF view.
    """
    cached = getattr(request, '_salesflow_context', None)
    if cached is not None:
        return cached

    membership = getattr(request, 'membership', None)
    if membership is None and request.user.is_authenticated:
        membership = resolve_membership(request.user, requested_tenant_id(request))
        if membership:
            request.tenant = membership.tenant
            request.membership = membership

    if membership is None:
        raise AuthorizationError("Acceso requiere contexto de empresa.", code='TENANT_REQUIRED')

    context = RequestContext.from_membership(membership)
    request._salesflow_context = context
    return context


class TenantSerializerMixin(metaclass=serializers.SerializerMetaclass):
    """
    Mixin to automatically assign tenant (and creator, when the model has one)
    from the view's RequestContext during creation.
    """
    creator_field = None

    def create(self, validated_data):
        context = self.context['request_context']
        validated_data['tenant'] = context.tenant
        if self.creator_field:
            validated_data[self.creator_field] = context.user
        return super().create(validated_data)


class BaseTenantViewSet(viewsets.GenericViewSet):
    """
    Base ViewSet that automatically filters querysets by the request's tenant.
    All API views for multi-tenant models should inherit from this.
    """
    permission_classes = [IsAuthenticated]

    def get_context(self):
        """Ensures tenant is resolved and returns the RequestContext."""
        return get_request_context(self.request)

    def get_serializer_context(self):
        ctx = super().get_serializer_context()
        ctx['request_context'] = self.get_context()
        return ctx

    def get_queryset(self):
        queryset = super().get_queryset()
        return queryset.filter(tenant=self.get_context().tenant)
