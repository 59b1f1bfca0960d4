"""API URL routing for BillingDesk."""
from rest_framework.routers import SimpleRouter

from .views import (
    AuthViewSet,
    ClientViewSet,
    CompanyViewSet,
    InvoiceViewSet,
    OrderViewSet,
    PaymentViewSet,
    ReportViewSet,
    ServiceViewSet,
    SubscriptionViewSet,
    UserViewSet,
)

router = SimpleRouter(trailing_slash=False)
router.register(r"auth", AuthViewSet, basename="api-auth")
router.register(r"clients", ClientViewSet, basename="api-clients")
router.register(r"companies", CompanyViewSet, basename="api-companies")
router.register(r"services", ServiceViewSet, basename="api-services")
router.register(r"orders", OrderViewSet, basename="api-orders")
router.register(r"invoices", InvoiceViewSet, basename="api-invoices")
router.register(r"payments", PaymentViewSet, basename="api-payments")
router.register(r"subscriptions", SubscriptionViewSet, basename="api-subscriptions")
router.register(r"reports", ReportViewSet, basename="api-reports")
router.register(r"users", UserViewSet, basename="api-users")

urlpatterns = router.urls
