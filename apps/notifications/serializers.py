from rest_framework import serializers

from .models import InAppAlert, NotificationOutbox


class InAppAlertSerializer(serializers.ModelSerializer):
    class Meta:
        model = InAppAlert
        fields = ['id', 'title', 'message', 'event_type', 'entidad', 'entidad_id', 'is_read', 'created_at']
        read_only_fields = fields


class NotificationOutboxSerializer(serializers.ModelSerializer):
    class Meta:
        model = NotificationOutbox
        fields = [
            'id', 'event_type', 'entidad', 'entidad_id', 'channel', 'recipient',
            'status', 'attempts', 'last_error', 'sent_at', 'created_at',
        ]
        read_only_fields = fields
