from decimal import Decimal

from django.contrib.auth import get_user_model
from rest_framework import serializers

from billing.billing_cycle import MAX_CUSTOM_DAYS, MAX_SCHEDULE_COUNT
from billing.models import (
    Client,
    Company,
    Currency,
    Invoice,
    Order,
    Payment,
    PaymentMethod,
    PaymentReminder,
    RecurringSubscription,
    ServiceLibrary,
)

User = get_user_model()

MONEY = {"max_digits": 12, "decimal_places": 2}
CENT = Decimal("0.01")


def _money(value) -> str:
    return str(Decimal(value or 0).quantize(CENT))


# ------------------------------
# Auth
# ------------------------------
class UserSerializer(serializers.ModelSerializer):
    name = serializers.CharField(source="first_name", read_only=True)

    class Meta:
        model = User
        fields = ["id", "email", "name", "date_joined", "last_login"]
        read_only_fields = fields


class RegisterSerializer(serializers.Serializer):
    email = serializers.EmailField(max_length=150)
    password = serializers.CharField(write_only=True, max_length=128, trim_whitespace=False)
    name = serializers.CharField(max_length=150)


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, trim_whitespace=False)


class RefreshSerializer(serializers.Serializer):
    refresh_token = serializers.CharField()


class LogoutSerializer(serializers.Serializer):
    refresh_token = serializers.CharField(required=False, allow_blank=True)


class ProfileSerializer(serializers.Serializer):
    name = serializers.CharField(
        required=False,
        min_length=2,
        max_length=150,
        error_messages={"min_length": "Name must be at least 2 characters long."},
    )


class UserUpdateSerializer(ProfileSerializer):
    email = serializers.EmailField(required=False, max_length=150)


# ------------------------------
# Clients
# ------------------------------
class ClientSerializer(serializers.ModelSerializer):
    cc_emails = serializers.ListField(child=serializers.EmailField(), required=False, max_length=20)

    class Meta:
        model = Client
        fields = [
            "id",
            "name",
            "email",
            "company",
            "phone",
            "address",
            "primary_contact_name",
            "primary_contact_email",
            "cc_emails",
            "country",
            "registration_number",
            "tax_id",
            "preferred_currency",
            "notes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]
        # Uniqueness is checked case-insensitively by ClientService and reported as a 409
        extra_kwargs = {"email": {"validators": []}}


class ClientSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Client
        fields = ["id", "name", "email", "company"]
        read_only_fields = fields


# ------------------------------
# Companies
# ------------------------------
class PaymentMethodSerializer(serializers.ModelSerializer):
    details = serializers.JSONField(required=False)

    class Meta:
        model = PaymentMethod
        fields = ["id", "company_id", "type", "name", "details", "is_default", "is_active", "created_at"]
        read_only_fields = ["id", "company_id", "is_active", "created_at"]


class CompanySerializer(serializers.ModelSerializer):
    payment_methods = PaymentMethodSerializer(many=True, read_only=True)

    class Meta:
        model = Company
        fields = [
            "id",
            "name",
            "legal_name",
            "address",
            "city",
            "postal_code",
            "country",
            "email",
            "phone",
            "tax_code",
            "bank_name",
            "iban",
            "swift",
            "default_currency",
            "is_default",
            "is_active",
            "payment_methods",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "payment_methods", "created_at", "updated_at"]


# ------------------------------
# Service library
# ------------------------------
class ServiceSerializer(serializers.ModelSerializer):
    default_price = serializers.DecimalField(min_value=Decimal("0"), **MONEY)
    billing_cycle = serializers.ChoiceField(
        choices=ServiceLibrary.BillingCycle.choices, required=False, allow_null=True
    )

    class Meta:
        model = ServiceLibrary
        fields = [
            "id",
            "name",
            "description",
            "category",
            "default_price",
            "currency",
            "is_recurring",
            "billing_cycle",
            "billing_day",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]


# ------------------------------
# Orders
# ------------------------------
class OrderSerializer(serializers.ModelSerializer):
    client = ClientSummarySerializer(read_only=True)
    service_name = serializers.CharField(source="service.name", read_only=True, default=None)
    company_name = serializers.CharField(source="company.name", read_only=True, default=None)
    frequency_display = serializers.CharField(read_only=True)
    estimated_annual_revenue = serializers.DecimalField(read_only=True, **MONEY)

    class Meta:
        model = Order
        fields = [
            "id",
            "client",
            "service_id",
            "service_name",
            "company_id",
            "company_name",
            "description",
            "amount",
            "currency",
            "frequency",
            "custom_days",
            "frequency_display",
            "estimated_annual_revenue",
            "start_date",
            "end_date",
            "next_invoice_date",
            "lead_time_days",
            "status",
            "notes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class OrderWriteSerializer(serializers.Serializer):
    client_id = serializers.IntegerField()
    service_id = serializers.IntegerField(required=False, allow_null=True)
    company_id = serializers.IntegerField(required=False, allow_null=True)
    description = serializers.CharField(max_length=500, required=False, allow_blank=True)
    amount = serializers.DecimalField(min_value=CENT, required=False, **MONEY)
    currency = serializers.ChoiceField(choices=Currency.choices, required=False)
    frequency = serializers.ChoiceField(choices=Order.Frequency.choices, required=False)
    custom_days = serializers.IntegerField(
        min_value=1, max_value=MAX_CUSTOM_DAYS, required=False, allow_null=True
    )
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False, allow_null=True)
    lead_time_days = serializers.IntegerField(min_value=0, max_value=365, required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        start_date = attrs.get("start_date")
        end_date = attrs.get("end_date")
        if start_date and end_date and end_date < start_date:
            raise serializers.ValidationError({"end_date": "End date cannot be before the start date."})
        return attrs


class OrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Order.Status.choices)


class GenerateInvoiceSerializer(serializers.Serializer):
    company_id = serializers.IntegerField(required=False, allow_null=True)


class ScheduleQuerySerializer(serializers.Serializer):
    count = serializers.IntegerField(min_value=1, max_value=MAX_SCHEDULE_COUNT, default=5)


# ------------------------------
# Invoices
# ------------------------------
class InvoiceSerializer(serializers.ModelSerializer):
    client = ClientSummarySerializer(read_only=True)
    company_name = serializers.CharField(source="company.name", read_only=True)
    total_paid = serializers.SerializerMethodField()
    remaining_amount = serializers.SerializerMethodField()
    is_fully_paid = serializers.SerializerMethodField()

    class Meta:
        model = Invoice
        fields = [
            "id",
            "invoice_number",
            "client",
            "company_id",
            "company_name",
            "order_id",
            "subscription_id",
            "amount",
            "currency",
            "issue_date",
            "due_date",
            "status",
            "sent_date",
            "paid_date",
            "description",
            "notes",
            "total_paid",
            "remaining_amount",
            "is_fully_paid",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def _paid(self, obj) -> Decimal:
        if hasattr(obj, "paid_total"):
            return obj.paid_total or Decimal("0.00")
        return obj.total_paid

    def get_total_paid(self, obj) -> str:
        return _money(self._paid(obj))

    def get_remaining_amount(self, obj) -> str:
        return _money(max(obj.amount - self._paid(obj), Decimal("0.00")))

    def get_is_fully_paid(self, obj) -> bool:
        return self._paid(obj) >= obj.amount


class InvoiceWriteSerializer(serializers.Serializer):
    invoice_number = serializers.CharField(max_length=50, required=False, allow_blank=True)
    client_id = serializers.IntegerField()
    company_id = serializers.IntegerField()
    order_id = serializers.IntegerField(required=False, allow_null=True)
    amount = serializers.DecimalField(min_value=CENT, **MONEY)
    currency = serializers.ChoiceField(choices=Currency.choices, required=False)
    issue_date = serializers.DateField(required=False)
    due_date = serializers.DateField()
    description = serializers.CharField(required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)


class ReminderSerializer(serializers.Serializer):
    reminder_type = serializers.ChoiceField(choices=PaymentReminder.ReminderType.choices, required=False)


class PaymentReminderSerializer(serializers.ModelSerializer):
    class Meta:
        model = PaymentReminder
        fields = ["id", "invoice_id", "reminder_type", "recipients", "sent_at"]
        read_only_fields = fields


# ------------------------------
# Payments
# ------------------------------
class PaymentSerializer(serializers.ModelSerializer):
    invoice_number = serializers.CharField(source="invoice.invoice_number", read_only=True)
    currency = serializers.CharField(source="invoice.currency", read_only=True)

    class Meta:
        model = Payment
        fields = [
            "id",
            "invoice_id",
            "invoice_number",
            "amount",
            "currency",
            "method",
            "paid_date",
            "reference",
            "notes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class PaymentWriteSerializer(serializers.Serializer):
    invoice_id = serializers.IntegerField()
    amount = serializers.DecimalField(min_value=CENT, **MONEY)
    method = serializers.ChoiceField(choices=Payment.Method.choices, default=Payment.Method.BANK_TRANSFER)
    paid_date = serializers.DateField(required=False)
    reference = serializers.CharField(max_length=100, required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)


class InvoicePaymentWriteSerializer(PaymentWriteSerializer):
    invoice_id = None


# ------------------------------
# Subscriptions
# ------------------------------
class SubscriptionSerializer(serializers.ModelSerializer):
    client = ClientSummarySerializer(read_only=True)
    service_name = serializers.CharField(source="service.name", read_only=True)
    company_name = serializers.CharField(source="company.name", read_only=True)
    is_paid_in_advance = serializers.BooleanField(read_only=True)

    class Meta:
        model = RecurringSubscription
        fields = [
            "id",
            "client",
            "service_id",
            "service_name",
            "company_id",
            "company_name",
            "price",
            "currency",
            "billing_day",
            "start_date",
            "next_billing_date",
            "end_date",
            "status",
            "is_paid_in_advance",
            "advance_paid_until",
            "notes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class SubscriptionWriteSerializer(serializers.Serializer):
    client_id = serializers.IntegerField()
    company_id = serializers.IntegerField()
    service_id = serializers.IntegerField()
    billing_day = serializers.IntegerField(min_value=1, max_value=31)
    price = serializers.DecimalField(min_value=Decimal("0"), required=False, allow_null=True, **MONEY)
    currency = serializers.ChoiceField(choices=Currency.choices, required=False)
    start_date = serializers.DateField(required=False)
    status = serializers.ChoiceField(choices=RecurringSubscription.Status.choices, required=False)
    advance_paid_until = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True)


class DueQuerySerializer(serializers.Serializer):
    days = serializers.IntegerField(min_value=0, max_value=365, required=False)


class RevenueQuerySerializer(serializers.Serializer):
    months = serializers.IntegerField(min_value=1, max_value=36, default=12)
