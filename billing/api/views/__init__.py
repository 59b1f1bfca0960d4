from .auth_views import AuthViewSet
from .client_views import ClientViewSet
from .company_views import CompanyViewSet
from .invoice_views import InvoiceViewSet
from .order_views import OrderViewSet
from .payment_views import PaymentViewSet
from .report_views import ReportViewSet
from .service_views import ServiceViewSet
from .subscription_views import SubscriptionViewSet
from .user_views import UserViewSet

__all__ = [
    "AuthViewSet",
    "ClientViewSet",
    "CompanyViewSet",
    "InvoiceViewSet",
    "OrderViewSet",
    "PaymentViewSet",
    "ReportViewSet",
    "ServiceViewSet",
    "SubscriptionViewSet",
    "UserViewSet",
]
