from django.db import transaction
from rest_framework import mixins, status
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.core.api.views import BaseTenantViewSet
from apps.sales.api_views import DocumentViewSet
from apps.sales.services.registry import DocumentType

from . import services
from .models import Task, TaskGroup
from .serializers import AssignTaskSerializer, TaskGroupSerializer, TaskSerializer


class TaskGroupViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    BaseTenantViewSet,
):
    """Groups are listed for the whole company; only the creator edits or deletes them."""
    queryset = TaskGroup.objects.all()
    serializer_class = TaskGroupSerializer
    lookup_value_regex = r'\d+'

    def partial_update(self, request, pk=None):
        serializer = self.get_serializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        group = services.update_group(self.get_context(), int(pk), **serializer.validated_data)
        return Response(self.get_serializer(group).data)

    def update(self, request, pk=None):
        return self.partial_update(request, pk)

    def destroy(self, request, pk=None):
        services.delete_group(self.get_context(), int(pk))
        return Response(status=status.HTTP_204_NO_CONTENT)


class TaskViewSet(DocumentViewSet):
    queryset = Task.objects.all().select_related('grupo', 'asignado_a')
    serializer_class = TaskSerializer
    document_type = DocumentType.TASK

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.request.query_params.get('mine'):
            queryset = queryset.filter(asignado_a=self.request.user)
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        task = services.create_task(self.get_context(), **serializer.validated_data)
        return Response(self.get_serializer(task).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        task = self.get_object()
        serializer = self.get_serializer(task, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        validated = dict(serializer.validated_data)
        with transaction.atomic():
            if 'asignado_a' in validated:
                services.assign_task(self.get_context(), task.pk, validated.pop('asignado_a'))
            if validated:
                services.update_task(self.get_context(), task.pk, **validated)
        task.refresh_from_db()
        return Response(self.get_serializer(task).data)

    @action(detail=True, methods=['post'])
    def assign(self, request, pk=None):
        payload = AssignTaskSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        task = services.assign_task(self.get_context(), int(pk), payload.validated_data['asignado_a'])
        return Response(self.get_serializer(task).data)
