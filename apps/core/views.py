"""
Core App Views - Per-company sales settings
"""
import logging

from rest_framework import serializers, views
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from apps.core.api.views import get_request_context
from apps.core.exceptions import AuthorizationError

from .models import SystemSetting

logger = logging.getLogger(__name__)


class SystemSettingSerializer(serializers.ModelSerializer):
    class Meta:
        model = SystemSetting
        fields = [
            'margen_minimo', 'monto_alto', 'monto_muy_alto',
            'dias_expiracion_aprobacion', 'sin_costo_margen_cero',
            'notificar_cliente_entregas', 'alert_email',
        ]

    def validate(self, attrs):
        monto_alto = attrs.get('monto_alto', getattr(self.instance, 'monto_alto', None))
        monto_muy_alto = attrs.get('monto_muy_alto', getattr(self.instance, 'monto_muy_alto', None))
        if monto_alto is not None and monto_muy_alto is not None and monto_muy_alto < monto_alto:
            raise serializers.ValidationError("El monto muy alto no puede ser menor al monto alto.")
        return attrs


class SystemSettingView(views.APIView):
    """
    GET   /api/v1/settings/  -> current thresholds
    PATCH /api/v1/settings/  -> update (OWNER/ADMIN only)
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        context = get_request_context(request)
        settings_obj = SystemSetting.get_settings(context.tenant)
        return Response(SystemSettingSerializer(settings_obj).data)

    def patch(self, request):
        context = get_request_context(request)
        if not context.is_admin:
            raise AuthorizationError("Acceso restringido a administradores.")

        settings_obj = SystemSetting.get_settings(context.tenant)
        serializer = SystemSettingSerializer(settings_obj, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        logger.info("Configuración de ventas actualizada para empresa %s por usuario %s", context.tenant_id, context.user_id)
        return Response(serializer.data)
