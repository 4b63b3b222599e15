"""
Agenda App - Task groups and ticket-like tasks

A Task follows the ticket workflow declared in the state registry
(new -> approved -> in_progress -> completed, with rejected/failed exits).
"""
from django.conf import settings
from django.db import models

from apps.sales.models import SalesDocument
from apps.sales.services import registry
from apps.sales.services.registry import DocumentType
from apps.tenants.models import TenantMixin


class TaskGroup(TenantMixin):
    nombre = models.CharField(max_length=100)
    color = models.CharField(max_length=7, default='#6366f1')
    is_project = models.BooleanField(default=False, verbose_name="Es proyecto")
    creado_por = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name='grupos_tareas'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Grupo de Tareas"
        verbose_name_plural = "Grupos de Tareas"
        ordering = ['nombre']

    def __str__(self):
        return self.nombre


class Priority(models.TextChoices):
    LOW = 'LOW', 'Baja'
    MEDIUM = 'MEDIUM', 'Media'
    HIGH = 'HIGH', 'Alta'
    URGENT = 'URGENT', 'Urgente'


class Task(SalesDocument):
    DOCUMENT_TYPE = DocumentType.TASK
    NUMBER_PREFIX = 'TAR'

    titulo = models.CharField(max_length=200)
    descripcion = models.TextField(blank=True)
    grupo = models.ForeignKey(TaskGroup, on_delete=models.SET_NULL, null=True, blank=True, related_name='tareas')
    estado = models.CharField(max_length=20, choices=registry.choices(DocumentType.TASK), default='new', db_index=True)
    prioridad = models.CharField(max_length=10, choices=Priority.choices, default=Priority.MEDIUM)
    asignado_a = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='tareas_asignadas'
    )
    fecha_limite = models.DateTimeField(blank=True, null=True)
    started_at = models.DateTimeField(blank=True, null=True)
    finished_at = models.DateTimeField(blank=True, null=True)
    motivo = models.TextField(blank=True, null=True)

    class Meta:
        verbose_name = "Tarea"
        verbose_name_plural = "Tareas"
        ordering = ['-created_at']
        unique_together = ['tenant', 'numero']

    def __str__(self):
        return f"{self.titulo} ({self.estado})"
