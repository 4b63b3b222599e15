from django.contrib import admin

from .models import Task, TaskGroup


@admin.register(TaskGroup)
class TaskGroupAdmin(admin.ModelAdmin):
    list_display = ('nombre', 'is_project', 'creado_por', 'tenant')


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ('numero', 'titulo', 'estado', 'prioridad', 'asignado_a', 'tenant')
    list_filter = ('estado', 'prioridad')
    search_fields = ('titulo', 'numero')
    readonly_fields = ('estado', 'started_at', 'finished_at')
