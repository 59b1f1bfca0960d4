"""
Billing services layer.

Views parse requests and map responses; every business rule, transaction
and side effect lives in these services.
"""

from .auth_service import AuthService
from .catalog_service import CatalogService
from .client_service import ClientService
from .company_service import CompanyService
from .email_service import EmailService
from .invoice_service import InvoiceService
from .order_service import OrderService
from .payment_service import PaymentService
from .pdf_service import PDFService
from .reports_service import ReportsService
from .subscription_service import SubscriptionService
from .user_service import UserService

__all__ = [
    "AuthService",
    "CatalogService",
    "ClientService",
    "CompanyService",
    "EmailService",
    "InvoiceService",
    "OrderService",
    "PaymentService",
    "PDFService",
    "ReportsService",
    "SubscriptionService",
    "UserService",
]
