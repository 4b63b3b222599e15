from django.contrib.auth import get_user_model
from rest_framework import serializers

from apps.core.api.views import TenantSerializerMixin

from .models import Task, TaskGroup


class TaskGroupSerializer(TenantSerializerMixin, serializers.ModelSerializer):
    creator_field = 'creado_por'

    class Meta:
        model = TaskGroup
        fields = ['id', 'nombre', 'color', 'is_project', 'creado_por', 'created_at']
        read_only_fields = ['creado_por', 'created_at']


class TaskSerializer(serializers.ModelSerializer):
    grupo = serializers.PrimaryKeyRelatedField(queryset=TaskGroup.objects.all(), required=False, allow_null=True)
    asignado_a = serializers.PrimaryKeyRelatedField(queryset=get_user_model().objects.all(), required=False, allow_null=True)
    asignado_a_nombre = serializers.ReadOnlyField(source='asignado_a.username')

    class Meta:
        model = Task
        fields = [
            'id', 'numero', 'titulo', 'descripcion', 'grupo', 'estado', 'prioridad',
            'asignado_a', 'asignado_a_nombre', 'fecha_limite', 'started_at', 'finished_at',
            'motivo', 'created_by', 'created_at', 'updated_at',
        ]
        read_only_fields = ['numero', 'estado', 'started_at', 'finished_at', 'motivo', 'created_by']


class AssignTaskSerializer(serializers.Serializer):
    asignado_a = serializers.PrimaryKeyRelatedField(queryset=get_user_model().objects.all(), allow_null=True)
