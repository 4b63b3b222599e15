from rest_framework import mixins, status
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.accounts import permissions as perms
from apps.core.api.views import BaseTenantViewSet
from apps.core.exceptions import AuthorizationError
from apps.core.services import AuditService

from .models import ApprovalWorkflow, Client, ClientPayment, Delivery, Invoice, Quote, SaleOrder
from .serializers import (
    ApprovalDecisionSerializer,
    ApprovalWorkflowSerializer,
    ApproveLevelSerializer,
    BlockClientSerializer,
    ClientBlockHistorySerializer,
    ClientPaymentSerializer,
    ClientSerializer,
    DeliverySerializer,
    InvoiceSerializer,
    QuoteSerializer,
    RejectLevelSerializer,
    SaleOrderSerializer,
    StatusHistorySerializer,
    TransitionRequestSerializer,
    UnblockClientSerializer,
)
from .services import approvals, clients
from .services.registry import DocumentType
from .services.transitions import apply_transition, available_transitions_for


class EditPermissionMixin:
    """Create/update require the view's edit_permission in the RequestContext"""
    edit_permission = None

    def check_edit_permission(self):
        if not self.get_context().has_permission(self.edit_permission):
            raise AuthorizationError()

    def perform_create(self, serializer):
        self.check_edit_permission()
        serializer.save()

    def perform_update(self, serializer):
        self.check_edit_permission()
        serializer.save()


class DocumentViewSet(
    EditPermissionMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    mixins.UpdateModelMixin,
    BaseTenantViewSet,
):
    """
    CRUD for a stateful document plus:
      POST {id}/transition/   -> apply a state transition
      GET  {id}/history/      -> audit timeline
      GET  {id}/transitions/  -> reachable states from the current one
    The estado field is read-only here; it only changes via transition/.
    """
    document_type = None
    lookup_value_regex = r'\d+'

    def get_queryset(self):
        queryset = super().get_queryset()
        estado = self.request.query_params.get('estado')
        if estado:
            queryset = queryset.filter(estado=estado)
        return queryset

    @action(detail=True, methods=['post'])
    def transition(self, request, pk=None):
        payload = TransitionRequestSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        data = payload.validated_data

        result = apply_transition(
            self.get_context(),
            self.document_type,
            int(pk),
            data['from_state'],
            data['to_state'],
            reason=data.get('reason'),
            changes=data.get('changes') or {},
            idempotency_key=data.get('idempotency_key') or None,
        )
        return Response({
            'document': self.get_serializer(result.document).data,
            'from_state': result.from_state,
            'to_state': result.to_state,
            'history_id': result.history.pk,
            'replayed': result.replayed,
        }, status=status.HTTP_200_OK)

    @action(detail=True, methods=['get'])
    def history(self, request, pk=None):
        document = self.get_object()
        entries = AuditService.history(self.get_context().tenant, self.document_type, document.pk)
        return Response(StatusHistorySerializer(entries, many=True).data)

    @action(detail=True, methods=['get'])
    def transitions(self, request, pk=None):
        document = self.get_object()
        return Response({
            'estado': document.estado,
            'is_final': document.is_final,
            'transitions': available_transitions_for(self.get_context(), self.document_type, document),
        })


class ClientViewSet(
    EditPermissionMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    mixins.UpdateModelMixin,
    BaseTenantViewSet,
):
    queryset = Client.objects.all()
    serializer_class = ClientSerializer
    edit_permission = perms.QUOTES_EDIT
    lookup_value_regex = r'\d+'

    def get_queryset(self):
        queryset = super().get_queryset()
        bloqueado = self.request.query_params.get('bloqueado')
        if bloqueado is not None:
            queryset = queryset.filter(bloqueado=bloqueado.lower() in ('1', 'true'))
        return queryset

    @action(detail=True, methods=['post'])
    def block(self, request, pk=None):
        payload = BlockClientSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        entry = clients.block_client(
            self.get_context(), int(pk),
            payload.validated_data['motivo'],
            tipo_bloqueo=payload.validated_data['tipo_bloqueo'],
        )
        return Response(ClientBlockHistorySerializer(entry).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def unblock(self, request, pk=None):
        payload = UnblockClientSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        entry = clients.unblock_client(self.get_context(), int(pk), payload.validated_data['motivo'])
        return Response(ClientBlockHistorySerializer(entry).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['get'], url_path='block-history')
    def block_history(self, request, pk=None):
        entries = clients.block_history(self.get_context(), int(pk))
        return Response(ClientBlockHistorySerializer(entries, many=True).data)


class QuoteViewSet(DocumentViewSet):
    queryset = Quote.objects.all().select_related('cliente', 'vendedor').prefetch_related('items')
    serializer_class = QuoteSerializer
    document_type = DocumentType.QUOTE
    edit_permission = perms.QUOTES_EDIT

    @action(detail=True, methods=['get'], url_path='approval-check')
    def approval_check(self, request, pk=None):
        quote = self.get_object()
        decision = approvals.check_approval_needed(quote)
        return Response(ApprovalDecisionSerializer(decision).data)

    @action(detail=True, methods=['post'], url_path='request-approval')
    def request_approval(self, request, pk=None):
        context = self.get_context()
        if not context.has_permission(perms.QUOTES_EDIT):
            raise AuthorizationError()
        decision, workflow = approvals.request_approval(context, int(pk))
        body = {'decision': ApprovalDecisionSerializer(decision).data, 'workflow': None}
        if workflow is None:
            return Response(body, status=status.HTTP_200_OK)
        body['workflow'] = ApprovalWorkflowSerializer(workflow).data
        return Response(body, status=status.HTTP_201_CREATED)


class SaleOrderViewSet(DocumentViewSet):
    queryset = SaleOrder.objects.all().select_related('cliente', 'cotizacion')
    serializer_class = SaleOrderSerializer
    document_type = DocumentType.SALE_ORDER
    edit_permission = perms.ORDERS_EDIT


class DeliveryViewSet(DocumentViewSet):
    queryset = Delivery.objects.all().select_related('orden', 'orden__cliente')
    serializer_class = DeliverySerializer
    document_type = DocumentType.DELIVERY
    edit_permission = perms.DELIVERIES_EDIT


class InvoiceViewSet(DocumentViewSet):
    queryset = Invoice.objects.all().select_related('cliente', 'orden')
    serializer_class = InvoiceSerializer
    document_type = DocumentType.INVOICE
    edit_permission = perms.INVOICES_EDIT


class ClientPaymentViewSet(DocumentViewSet):
    queryset = ClientPayment.objects.all().select_related('cliente')
    serializer_class = ClientPaymentSerializer
    document_type = DocumentType.CLIENT_PAYMENT
    edit_permission = perms.PAYMENTS_APPROVE


class ApprovalWorkflowViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, BaseTenantViewSet):
    """
    GET  approvals/            -> workflows (?estado=PENDIENTE)
    POST approvals/{id}/approve/  {nivel, comentario?}
    POST approvals/{id}/reject/   {nivel, motivo}
    """
    queryset = ApprovalWorkflow.objects.all().select_related('cotizacion').prefetch_related('niveles__aprobador')
    serializer_class = ApprovalWorkflowSerializer
    lookup_value_regex = r'\d+'

    def get_queryset(self):
        queryset = super().get_queryset()
        estado = self.request.query_params.get('estado')
        if estado:
            queryset = queryset.filter(estado=estado)
        return queryset

    def _respond(self, workflow_id):
        workflow = self.get_queryset().get(pk=workflow_id)
        return Response(self.get_serializer(workflow).data)

    @action(detail=True, methods=['post'])
    def approve(self, request, pk=None):
        payload = ApproveLevelSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        approvals.approve_level(
            self.get_context(), int(pk),
            payload.validated_data['nivel'],
            comentario=payload.validated_data.get('comentario', ''),
        )
        return self._respond(pk)

    @action(detail=True, methods=['post'])
    def reject(self, request, pk=None):
        payload = RejectLevelSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        approvals.reject_level(
            self.get_context(), int(pk),
            payload.validated_data['nivel'],
            payload.validated_data['motivo'],
        )
        return self._respond(pk)
