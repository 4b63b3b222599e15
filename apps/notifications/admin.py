from django.contrib import admin

from .models import InAppAlert, NotificationOutbox


@admin.register(NotificationOutbox)
class NotificationOutboxAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'event_type', 'channel', 'recipient', 'status', 'attempts', 'tenant')
    list_filter = ('status', 'channel', 'event_type')
    search_fields = ('recipient', 'entidad_id', 'last_error')
    readonly_fields = ('payload', 'last_error', 'sent_at', 'created_at')


@admin.register(InAppAlert)
class InAppAlertAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'title', 'user', 'is_read', 'tenant')
    list_filter = ('is_read', 'event_type')
