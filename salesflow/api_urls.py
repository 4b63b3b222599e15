from django.urls import include, path
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import (
    TokenObtainPairView,
    TokenRefreshView,
)

from apps.agenda.api_views import TaskGroupViewSet, TaskViewSet
from apps.notifications.api_views import InAppAlertViewSet, NotificationOutboxViewSet
from apps.sales.api_views import (
    ApprovalWorkflowViewSet,
    ClientPaymentViewSet,
    ClientViewSet,
    DeliveryViewSet,
    InvoiceViewSet,
    QuoteViewSet,
    SaleOrderViewSet,
)

router = DefaultRouter()
router.register(r'clients', ClientViewSet, basename='api-client')
router.register(r'quotes', QuoteViewSet, basename='api-quote')
router.register(r'orders', SaleOrderViewSet, basename='api-order')
router.register(r'deliveries', DeliveryViewSet, basename='api-delivery')
router.register(r'invoices', InvoiceViewSet, basename='api-invoice')
router.register(r'payments', ClientPaymentViewSet, basename='api-payment')
router.register(r'approvals', ApprovalWorkflowViewSet, basename='api-approval')
router.register(r'task-groups', TaskGroupViewSet, basename='api-task-group')
router.register(r'tasks', TaskViewSet, basename='api-task')
router.register(r'alerts', InAppAlertViewSet, basename='api-alert')
router.register(r'notifications', NotificationOutboxViewSet, basename='api-notification')

urlpatterns = [
    # Auth
    path('auth/token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),
    path('auth/', include('apps.accounts.urls')),

    # Per-company settings
    path('', include('apps.core.urls')),

    # Generic Router
    path('', include(router.urls)),
]
