from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Sum
from django.utils import timezone

from .billing_cycle import annual_occurrences, frequency_display


class Currency(models.TextChoices):
    USD = "USD", "US Dollar"
    EUR = "EUR", "Euro"
    GBP = "GBP", "British Pound"
    BTC = "BTC", "Bitcoin"
    ETH = "ETH", "Ether"


class TimestampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class RevokedToken(models.Model):
    """A JWT that was invalidated by logout or refresh rotation."""

    jti = models.CharField(max_length=64, unique=True)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="revoked_tokens"
    )
    expires_at = models.DateTimeField(db_index=True)
    revoked_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.jti} (user {self.user_id})"


class Client(TimestampedModel):
    name = models.CharField(max_length=100)
    email = models.EmailField(unique=True)
    company = models.CharField(max_length=100, blank=True)
    phone = models.CharField(max_length=20, blank=True)
    address = models.CharField(max_length=500, blank=True)
    primary_contact_name = models.CharField(max_length=100, blank=True)
    primary_contact_email = models.EmailField(blank=True)
    cc_emails = models.JSONField(default=list, blank=True)
    country = models.CharField(max_length=100, blank=True)
    registration_number = models.CharField(max_length=100, blank=True)
    tax_id = models.CharField(max_length=100, blank=True)
    preferred_currency = models.CharField(max_length=3, choices=Currency.choices, default=Currency.USD)
    notes = models.TextField(blank=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name

    @property
    def recipient_emails(self):
        """Primary address first, then the cc list without duplicates."""
        recipients = [self.email]
        for email in self.cc_emails or []:
            if email and email not in recipients:
                recipients.append(email)
        return recipients


class Company(TimestampedModel):
    """A billing identity owned by a user. Invoices are issued in its name."""

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="companies")
    name = models.CharField(max_length=100)
    legal_name = models.CharField(max_length=200, blank=True)
    address = models.CharField(max_length=500, blank=True)
    city = models.CharField(max_length=100, blank=True)
    postal_code = models.CharField(max_length=20, blank=True)
    country = models.CharField(max_length=100, blank=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    tax_code = models.CharField(max_length=50, blank=True)
    bank_name = models.CharField(max_length=100, blank=True)
    iban = models.CharField(max_length=34, blank=True)
    swift = models.CharField(max_length=11, blank=True)
    default_currency = models.CharField(max_length=3, choices=Currency.choices, default=Currency.USD)
    is_default = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["-is_default", "name"]
        verbose_name_plural = "companies"

    def __str__(self):
        return self.name


class PaymentMethod(TimestampedModel):
    class Type(models.TextChoices):
        CRYPTO_WALLET = "CRYPTO_WALLET", "Crypto wallet"
        BANK_ACCOUNT = "BANK_ACCOUNT", "Bank account"
        OTHER = "OTHER", "Other"

    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name="payment_methods")
    type = models.CharField(max_length=20, choices=Type.choices)
    name = models.CharField(max_length=100)
    details = models.JSONField(default=dict, blank=True)
    is_default = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["-is_default", "name"]

    def __str__(self):
        return f"{self.name} ({self.get_type_display()})"


class ServiceLibrary(TimestampedModel):
    class Category(models.TextChoices):
        CONTENT_MARKETING = "CONTENT_MARKETING", "Content marketing"
        PODCAST_SPONSORSHIP = "PODCAST_SPONSORSHIP", "Podcast sponsorship"
        SOCIAL_MEDIA = "SOCIAL_MEDIA", "Social media"
        ADVERTISING = "ADVERTISING", "Advertising"
        CREATIVE_SERVICES = "CREATIVE_SERVICES", "Creative services"
        PLATFORM_MANAGEMENT = "PLATFORM_MANAGEMENT", "Platform management"
        OTHER = "OTHER", "Other"

    class BillingCycle(models.TextChoices):
        MONTHLY = "MONTHLY", "Monthly"
        QUARTERLY = "QUARTERLY", "Quarterly"
        YEARLY = "YEARLY", "Yearly"

    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=30, choices=Category.choices, default=Category.OTHER)
    default_price = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal("0"))])
    currency = models.CharField(max_length=3, choices=Currency.choices, default=Currency.USD)
    is_recurring = models.BooleanField(default=False)
    billing_cycle = models.CharField(max_length=10, choices=BillingCycle.choices, null=True, blank=True)
    billing_day = models.PositiveSmallIntegerField(
        null=True, blank=True, validators=[MinValueValidator(1), MaxValueValidator(31)]
    )
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["category", "name"]
        verbose_name = "service"
        verbose_name_plural = "services"

    def __str__(self):
        return self.name


class Order(TimestampedModel):
    class Frequency(models.TextChoices):
        WEEKLY = "WEEKLY", "Weekly"
        BIWEEKLY = "BIWEEKLY", "Every 2 weeks"
        MONTHLY = "MONTHLY", "Monthly"
        QUARTERLY = "QUARTERLY", "Quarterly"
        ANNUALLY = "ANNUALLY", "Annually"
        CUSTOM = "CUSTOM", "Custom"

    class Status(models.TextChoices):
        ACTIVE = "ACTIVE", "Active"
        PAUSED = "PAUSED", "Paused"
        CANCELLED = "CANCELLED", "Cancelled"

    client = models.ForeignKey(Client, on_delete=models.PROTECT, related_name="orders")
    service = models.ForeignKey(
        ServiceLibrary, on_delete=models.PROTECT, related_name="orders", null=True, blank=True
    )
    company = models.ForeignKey(Company, on_delete=models.PROTECT, related_name="orders", null=True, blank=True)
    description = models.CharField(max_length=500)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3, choices=Currency.choices, default=Currency.USD)
    frequency = models.CharField(max_length=10, choices=Frequency.choices, default=Frequency.MONTHLY)
    custom_days = models.PositiveSmallIntegerField(
        null=True, blank=True, validators=[MinValueValidator(1), MaxValueValidator(365)]
    )
    start_date = models.DateField()
    end_date = models.DateField(null=True, blank=True)
    next_invoice_date = models.DateField(db_index=True)
    lead_time_days = models.PositiveSmallIntegerField(null=True, blank=True)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.ACTIVE, db_index=True)
    notes = models.TextField(blank=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.description} ({self.client})"

    @property
    def frequency_display(self):
        return frequency_display(self.frequency, self.custom_days)

    @property
    def estimated_annual_revenue(self):
        return (self.amount * annual_occurrences(self.frequency, self.custom_days)).quantize(Decimal("0.01"))


class RecurringSubscription(TimestampedModel):
    class Status(models.TextChoices):
        ACTIVE = "ACTIVE", "Active"
        PAUSED = "PAUSED", "Paused"
        CANCELLED = "CANCELLED", "Cancelled"
        PAID_IN_ADVANCE = "PAID_IN_ADVANCE", "Paid in advance"

    client = models.ForeignKey(Client, on_delete=models.PROTECT, related_name="subscriptions")
    service = models.ForeignKey(ServiceLibrary, on_delete=models.PROTECT, related_name="subscriptions")
    company = models.ForeignKey(Company, on_delete=models.PROTECT, related_name="subscriptions")
    price = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3, choices=Currency.choices, default=Currency.USD)
    billing_day = models.PositiveSmallIntegerField(validators=[MinValueValidator(1), MaxValueValidator(31)])
    start_date = models.DateField()
    next_billing_date = models.DateField(db_index=True)
    end_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE, db_index=True)
    advance_paid_until = models.DateField(null=True, blank=True)
    notes = models.TextField(blank=True)

    class Meta:
        ordering = ["status", "next_billing_date"]

    def __str__(self):
        return f"{self.client} - {self.service} ({self.get_status_display()})"

    @property
    def is_paid_in_advance(self):
        return self.status == self.Status.PAID_IN_ADVANCE


class Invoice(TimestampedModel):
    class Status(models.TextChoices):
        DRAFT = "DRAFT", "Draft"
        SENT = "SENT", "Sent"
        PAID = "PAID", "Paid"
        OVERDUE = "OVERDUE", "Overdue"
        CANCELLED = "CANCELLED", "Cancelled"

    invoice_number = models.CharField(max_length=50, unique=True)
    client = models.ForeignKey(Client, on_delete=models.PROTECT, related_name="invoices")
    company = models.ForeignKey(Company, on_delete=models.PROTECT, related_name="invoices")
    order = models.ForeignKey(Order, on_delete=models.SET_NULL, related_name="invoices", null=True, blank=True)
    subscription = models.ForeignKey(
        RecurringSubscription, on_delete=models.SET_NULL, related_name="invoices", null=True, blank=True
    )
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3, choices=Currency.choices, default=Currency.USD)
    issue_date = models.DateField(default=timezone.localdate)
    due_date = models.DateField(db_index=True)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.DRAFT, db_index=True)
    sent_date = models.DateTimeField(null=True, blank=True)
    paid_date = models.DateField(null=True, blank=True)
    description = models.TextField(blank=True)
    notes = models.TextField(blank=True)

    class Meta:
        ordering = ["-issue_date", "-id"]

    def __str__(self):
        return f"{self.invoice_number} - {self.client}"

    @property
    def total_paid(self):
        return self.payments.aggregate(total=Sum("amount"))["total"] or Decimal("0.00")

    @property
    def remaining_amount(self):
        return max(self.amount - self.total_paid, Decimal("0.00"))

    @property
    def is_fully_paid(self):
        return self.total_paid >= self.amount

    @property
    def is_editable(self):
        return self.status == self.Status.DRAFT


class Payment(TimestampedModel):
    class Method(models.TextChoices):
        BANK_TRANSFER = "BANK_TRANSFER", "Bank transfer"
        CREDIT_CARD = "CREDIT_CARD", "Credit card"
        CHECK = "CHECK", "Check"
        CASH = "CASH", "Cash"
        OTHER = "OTHER", "Other"

    invoice = models.ForeignKey(Invoice, on_delete=models.PROTECT, related_name="payments")
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    method = models.CharField(max_length=20, choices=Method.choices)
    paid_date = models.DateField(default=timezone.localdate)
    reference = models.CharField(max_length=100, blank=True)
    notes = models.TextField(blank=True)

    class Meta:
        ordering = ["-paid_date", "-id"]

    def __str__(self):
        return f"{self.amount} {self.invoice.currency} for {self.invoice.invoice_number}"


class PaymentReminder(models.Model):
    class ReminderType(models.TextChoices):
        PRE_DUE = "PRE_DUE", "Before due date"
        DUE_DATE = "DUE_DATE", "On due date"
        OVERDUE_3_DAYS = "OVERDUE_3_DAYS", "3 days overdue"
        OVERDUE_7_DAYS = "OVERDUE_7_DAYS", "7 days overdue"
        OVERDUE_14_DAYS = "OVERDUE_14_DAYS", "14 days overdue"

    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name="reminders")
    reminder_type = models.CharField(max_length=20, choices=ReminderType.choices)
    recipients = models.JSONField(default=list)
    sent_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-sent_at"]

    def __str__(self):
        return f"{self.get_reminder_type_display()} for {self.invoice.invoice_number}"
