from datetime import timedelta
from decimal import Decimal

import factory
from django.contrib.auth import get_user_model
from django.utils import timezone

from billing.models import (
    Client,
    Company,
    Invoice,
    Order,
    Payment,
    PaymentMethod,
    RecurringSubscription,
    ServiceLibrary,
)

DEFAULT_PASSWORD = "Sup3r-Secret!"


class UserFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = get_user_model()
        django_get_or_create = ("username",)

    email = factory.Sequence(lambda n: f"user{n}@example.com")
    username = factory.LazyAttribute(lambda o: o.email)
    first_name = factory.Faker("first_name")
    password = factory.django.Password(DEFAULT_PASSWORD)
    is_active = True


class ClientFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Client

    name = factory.Faker("company")
    email = factory.Sequence(lambda n: f"billing{n}@client.example.com")
    company = factory.LazyAttribute(lambda o: o.name)
    country = "US"


class CompanyFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Company

    user = factory.SubFactory(UserFactory)
    name = factory.Sequence(lambda n: f"Studio {n}")
    legal_name = factory.LazyAttribute(lambda o: f"{o.name} LLC")
    email = factory.Sequence(lambda n: f"accounts{n}@studio.example.com")
    iban = "DE89370400440532013000"
    bank_name = "Example Bank"
    is_default = False


class PaymentMethodFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = PaymentMethod

    company = factory.SubFactory(CompanyFactory)
    type = PaymentMethod.Type.CRYPTO_WALLET
    name = "USDC wallet"
    details = factory.LazyFunction(lambda: {"address": "0xabc123", "currency": "USDC"})


class ServiceFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = ServiceLibrary

    name = factory.Sequence(lambda n: f"Podcast sponsorship {n}")
    category = ServiceLibrary.Category.PODCAST_SPONSORSHIP
    default_price = Decimal("500.00")
    is_recurring = True
    billing_cycle = ServiceLibrary.BillingCycle.MONTHLY


class OrderFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Order

    client = factory.SubFactory(ClientFactory)
    description = "Monthly retainer"
    amount = Decimal("100.00")
    frequency = Order.Frequency.MONTHLY
    start_date = factory.LazyFunction(timezone.localdate)
    next_invoice_date = factory.LazyAttribute(lambda o: o.start_date)


class SubscriptionFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = RecurringSubscription

    client = factory.SubFactory(ClientFactory)
    service = factory.SubFactory(ServiceFactory)
    company = factory.SubFactory(CompanyFactory)
    price = Decimal("250.00")
    billing_day = 10
    start_date = factory.LazyFunction(timezone.localdate)
    next_billing_date = factory.LazyAttribute(lambda o: o.start_date + timedelta(days=5))


class InvoiceFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Invoice

    invoice_number = factory.Sequence(lambda n: f"TEST-{n:06d}")
    client = factory.SubFactory(ClientFactory)
    company = factory.SubFactory(CompanyFactory)
    amount = Decimal("100.00")
    issue_date = factory.LazyFunction(timezone.localdate)
    due_date = factory.LazyAttribute(lambda o: o.issue_date + timedelta(days=30))
    description = "Consulting"


class PaymentFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Payment

    invoice = factory.SubFactory(InvoiceFactory)
    amount = Decimal("25.00")
    method = Payment.Method.BANK_TRANSFER
    paid_date = factory.LazyFunction(timezone.localdate)
