from django.db.models import Q
from rest_framework import mixins, status
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.core.api.views import BaseTenantViewSet
from apps.core.exceptions import AuthorizationError

from . import dispatcher
from .models import InAppAlert, NotificationOutbox, OutboxStatus
from .serializers import InAppAlertSerializer, NotificationOutboxSerializer


class InAppAlertViewSet(mixins.ListModelMixin, BaseTenantViewSet):
    """Alerts for the current user plus company-wide ones"""
    queryset = InAppAlert.objects.all()
    serializer_class = InAppAlertSerializer
    lookup_value_regex = r'\d+'

    def get_queryset(self):
        queryset = super().get_queryset().filter(Q(user=self.request.user) | Q(user__isnull=True))
        if self.request.query_params.get('unread'):
            queryset = queryset.filter(is_read=False)
        return queryset

    @action(detail=True, methods=['post'], url_path='read')
    def mark_read(self, request, pk=None):
        updated = self.get_queryset().filter(pk=pk).update(is_read=True)
        return Response({'updated': updated})

    @action(detail=False, methods=['post'], url_path='read-all')
    def mark_all_read(self, request):
        updated = self.get_queryset().filter(is_read=False).update(is_read=True)
        return Response({'updated': updated})


class NotificationOutboxViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, BaseTenantViewSet):
    """
    Outbox inspection for administrators.
    GET  notifications/?status=FALLIDA   -> dead letters
    POST notifications/{id}/retry/       -> one more delivery attempt
    """
    queryset = NotificationOutbox.objects.all()
    serializer_class = NotificationOutboxSerializer
    lookup_value_regex = r'\d+'

    def get_queryset(self):
        if not self.get_context().is_admin:
            raise AuthorizationError("Acceso restringido a administradores.")
        queryset = super().get_queryset()
        status_filter = self.request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        return queryset

    @action(detail=True, methods=['post'])
    def retry(self, request, pk=None):
        outbox = self.get_object()
        if outbox.status == OutboxStatus.ENVIADA:
            return Response(self.get_serializer(outbox).data)
        outbox.attempts = 0
        outbox.status = OutboxStatus.PENDIENTE
        outbox.save(update_fields=['attempts', 'status'])
        dispatcher.enqueue([outbox.pk])
        return Response(self.get_serializer(outbox).data, status=status.HTTP_202_ACCEPTED)
