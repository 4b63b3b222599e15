"""
Agenda services: task groups are managed only by their creator; tasks move
through the shared transition service and notify their assignee.
"""
import logging

from django.db import transaction

from apps.accounts.models import TenantMembership
from apps.accounts.permissions import TASKS_APPROVE, TASKS_EDIT
from apps.core.exceptions import AuthorizationError, NotFoundError, StateConflictError, ValidationError
from apps.core.services import AuditService
from apps.notifications import dispatcher
from apps.notifications.channels import Event
from apps.sales.services import registry
from apps.sales.services.registry import DocumentType
from apps.sales.services.transitions import notify_safely

from .models import Task, TaskGroup

logger = logging.getLogger(__name__)

GROUP_FIELDS = {'nombre', 'color', 'is_project'}
TASK_FIELDS = {'titulo', 'descripcion', 'grupo', 'prioridad', 'fecha_limite'}


def _group_for_creator(context, group_id):
    group = TaskGroup.objects.select_for_update().filter(tenant=context.tenant, pk=group_id).first()
    if group is None:
        raise NotFoundError("Grupo no encontrado.")
    if group.creado_por_id != context.user_id:
        raise AuthorizationError("Sólo quien creó el grupo puede modificarlo o eliminarlo.", code='NOT_CREATOR')
    return group


def update_group(context, group_id, **fields):
    unknown = set(fields) - GROUP_FIELDS
    if unknown:
        raise ValidationError(f"Campos no modificables: {', '.join(sorted(unknown))}")
    with transaction.atomic():
        group = _group_for_creator(context, group_id)
        for field, value in fields.items():
            setattr(group, field, value)
        group.save()
    return group


def delete_group(context, group_id):
    with transaction.atomic():
        group = _group_for_creator(context, group_id)
        group.delete()
    logger.info("Grupo de tareas %s eliminado por usuario %s", group_id, context.user_id)


def _check_assignee(context, user):
    if user is None:
        return
    is_member = TenantMembership.objects.filter(tenant=context.tenant, user=user, is_active=True).exists()
    if not is_member:
        raise ValidationError("El usuario asignado no pertenece a la empresa.", code='INVALID_ASSIGNEE')


def _notify_assignee(context, task):
    recipients = [dispatcher.in_app(task.asignado_a)]
    if task.asignado_a.email:
        recipients.append(dispatcher.email(task.asignado_a.email))
    notify_safely(
        Event.TASK_ASSIGNED, context.tenant, DocumentType.TASK, task.pk, recipients,
        {'numero': task.titulo, 'estado_nuevo': task.estado},
    )


def create_task(context, titulo, descripcion='', grupo=None, asignado_a=None, prioridad='MEDIUM', fecha_limite=None):
    if not context.has_permission(TASKS_EDIT):
        raise AuthorizationError("No tiene permiso para crear tareas.")
    if grupo is not None and grupo.tenant_id != context.tenant_id:
        raise NotFoundError("Grupo no encontrado.")
    _check_assignee(context, asignado_a)

    with transaction.atomic():
        task = Task.objects.create(
            tenant=context.tenant,
            titulo=titulo,
            descripcion=descripcion,
            grupo=grupo,
            asignado_a=asignado_a,
            prioridad=prioridad,
            fecha_limite=fecha_limite,
            created_by=context.user,
        )
        AuditService.record(
            tenant=context.tenant,
            entidad=DocumentType.TASK,
            entidad_id=task.pk,
            estado_anterior=None,
            estado_nuevo=task.estado,
            user=context.user,
        )
        if asignado_a is not None:
            _notify_assignee(context, task)
    return task


def assign_task(context, task_id, user):
    """Reassign an open task. Allowed to its creator and to task approvers."""
    with transaction.atomic():
        task = Task.objects.select_for_update().filter(tenant=context.tenant, pk=task_id).first()
        if task is None:
            raise NotFoundError("Tarea no encontrada.")
        if task.created_by_id != context.user_id and not context.has_permission(TASKS_APPROVE):
            raise AuthorizationError("Sólo quien creó la tarea o un aprobador puede reasignarla.")
        if registry.is_final_state(DocumentType.TASK, task.estado):
            raise StateConflictError("La tarea ya está cerrada.", code='FINAL_STATE')
        _check_assignee(context, user)

        task.asignado_a = user
        task.save(update_fields=['asignado_a', 'updated_at'])
        if user is not None:
            _notify_assignee(context, task)

    logger.info("Tarea %s asignada a usuario %s", task.pk, getattr(user, 'pk', None))
    return task


def update_task(context, task_id, **fields):
    unknown = set(fields) - TASK_FIELDS
    if unknown:
        raise ValidationError(f"Campos no modificables: {', '.join(sorted(unknown))}")
    grupo = fields.get('grupo')
    if grupo is not None and grupo.tenant_id != context.tenant_id:
        raise NotFoundError("Grupo no encontrado.")

    with transaction.atomic():
        task = Task.objects.select_for_update().filter(tenant=context.tenant, pk=task_id).first()
        if task is None:
            raise NotFoundError("Tarea no encontrada.")
        if task.created_by_id != context.user_id and not context.has_permission(TASKS_APPROVE):
            raise AuthorizationError("Sólo quien creó la tarea o un aprobador puede editarla.")
        if registry.is_final_state(DocumentType.TASK, task.estado):
            raise StateConflictError("La tarea ya está cerrada.", code='FINAL_STATE')
        for field, value in fields.items():
            setattr(task, field, value)
        task.save()
    return task
