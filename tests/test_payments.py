from datetime import date
from decimal import Decimal

import pytest

from billing.models import Invoice, Payment
from billing.services import PaymentService
from billing.validation import ConflictError
from tests.factories import InvoiceFactory, PaymentFactory


@pytest.mark.django_db
class TestPaymentService:
    def test_partial_then_full_payment(self):
        invoice = InvoiceFactory(amount=Decimal("100.00"))

        PaymentService.apply_payment(invoice.pk, Decimal("25.00"), Payment.Method.BANK_TRANSFER)
        invoice.refresh_from_db()
        assert invoice.status == Invoice.Status.DRAFT
        assert invoice.remaining_amount == Decimal("75.00")
        assert invoice.is_fully_paid is False

        PaymentService.apply_payment(
            invoice.pk, Decimal("75.00"), Payment.Method.CASH, paid_date=date(2025, 5, 2)
        )
        invoice.refresh_from_db()
        assert invoice.status == Invoice.Status.PAID
        assert invoice.paid_date == date(2025, 5, 2)
        assert invoice.remaining_amount == Decimal("0.00")

        with pytest.raises(ConflictError) as excinfo:
            PaymentService.apply_payment(invoice.pk, Decimal("0.01"), Payment.Method.CASH)
        assert excinfo.value.code == "OVERPAYMENT"

    def test_overdue_invoice_can_be_paid(self):
        invoice = InvoiceFactory(amount=Decimal("40.00"), status=Invoice.Status.OVERDUE)
        PaymentService.apply_payment(invoice.pk, Decimal("40.00"), Payment.Method.CHECK)
        invoice.refresh_from_db()
        assert invoice.status == Invoice.Status.PAID

    def test_overpayment_rejected(self):
        invoice = InvoiceFactory(amount=Decimal("100.00"), status=Invoice.Status.SENT)
        PaymentFactory(invoice=invoice, amount=Decimal("60.00"))

        with pytest.raises(ConflictError) as excinfo:
            PaymentService.apply_payment(invoice.pk, Decimal("40.01"), Payment.Method.CASH)

        assert excinfo.value.code == "OVERPAYMENT"
        assert excinfo.value.details["max_additional_amount"] == "40.00"
        assert invoice.payments.count() == 1

    def test_cancelled_invoice_rejects_payments(self):
        invoice = InvoiceFactory(status=Invoice.Status.CANCELLED)
        with pytest.raises(ConflictError) as excinfo:
            PaymentService.apply_payment(invoice.pk, Decimal("10.00"), Payment.Method.CASH)
        assert excinfo.value.code == "INVOICE_CANCELLED"

    def test_update_completing_balance_marks_paid(self):
        invoice = InvoiceFactory(amount=Decimal("100.00"), status=Invoice.Status.SENT)
        payment = PaymentFactory(invoice=invoice, amount=Decimal("50.00"))

        PaymentService.update_payment(payment, {"amount": Decimal("100.00")})

        invoice.refresh_from_db()
        assert invoice.status == Invoice.Status.PAID

    def test_reducing_payment_on_paid_invoice(self):
        invoice = InvoiceFactory(amount=Decimal("100.00"), status=Invoice.Status.PAID)
        payment = PaymentFactory(invoice=invoice, amount=Decimal("100.00"))

        with pytest.raises(ConflictError) as excinfo:
            PaymentService.update_payment(payment, {"amount": Decimal("90.00")})
        assert excinfo.value.code == "INVOICE_ALREADY_PAID"

    def test_reference_change_on_paid_invoice_allowed(self):
        invoice = InvoiceFactory(amount=Decimal("100.00"), status=Invoice.Status.PAID)
        payment = PaymentFactory(invoice=invoice, amount=Decimal("100.00"))

        payment = PaymentService.update_payment(payment, {"reference": "WIRE-881"})
        assert payment.reference == "WIRE-881"

    def test_delete_payment_on_paid_invoice(self):
        invoice = InvoiceFactory(status=Invoice.Status.PAID)
        payment = PaymentFactory(invoice=invoice)
        with pytest.raises(ConflictError):
            PaymentService.delete_payment(payment)


@pytest.mark.django_db
class TestPaymentAPI:
    def test_record_payment(self, api_client):
        invoice = InvoiceFactory(amount=Decimal("100.00"), status=Invoice.Status.SENT)
        response = api_client.post(
            "/api/payments",
            {"invoice_id": invoice.pk, "amount": "25.00", "method": "CREDIT_CARD", "reference": "ch_1"},
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["payment"]["amount"] == "25.00"
        assert data["payment"]["method"] == "CREDIT_CARD"
        assert data["invoice"]["total_paid"] == "25.00"
        assert data["invoice"]["remaining_amount"] == "75.00"
        assert data["invoice"]["status"] == "SENT"

    def test_method_defaults_to_bank_transfer(self, api_client):
        invoice = InvoiceFactory(status=Invoice.Status.SENT)
        response = api_client.post("/api/payments", {"invoice_id": invoice.pk, "amount": "10.00"})
        assert response.json()["data"]["payment"]["method"] == "BANK_TRANSFER"

    def test_overpayment_is_conflict(self, api_client):
        invoice = InvoiceFactory(amount=Decimal("100.00"), status=Invoice.Status.SENT)
        response = api_client.post("/api/payments", {"invoice_id": invoice.pk, "amount": "120.00"})

        assert response.status_code == 409
        assert response.json()["error"] == "OVERPAYMENT"

    def test_zero_amount_is_invalid(self, api_client):
        invoice = InvoiceFactory(status=Invoice.Status.SENT)
        response = api_client.post("/api/payments", {"invoice_id": invoice.pk, "amount": "0"})

        assert response.status_code == 400
        assert response.json()["details"][0]["field"] == "amount"

    def test_unknown_invoice(self, api_client):
        response = api_client.post("/api/payments", {"invoice_id": 424242, "amount": "5.00"})
        assert response.status_code == 404

    def test_pay_through_invoice_route(self, api_client):
        invoice = InvoiceFactory(amount=Decimal("80.00"), status=Invoice.Status.SENT)
        response = api_client.post(f"/api/invoices/{invoice.pk}/payments", {"amount": "80.00"})

        assert response.status_code == 201
        assert response.json()["data"]["invoice"]["status"] == "PAID"
        assert response.json()["data"]["invoice"]["is_fully_paid"] is True

    def test_payments_for_invoice(self, api_client):
        invoice = InvoiceFactory(amount=Decimal("100.00"), status=Invoice.Status.SENT)
        PaymentFactory.create_batch(2, invoice=invoice, amount=Decimal("20.00"))
        PaymentFactory()

        for url in (f"/api/payments/invoice/{invoice.pk}", f"/api/invoices/{invoice.pk}/payments"):
            response = api_client.get(url)
            assert response.status_code == 200
            data = response.json()["data"]
            assert len(data["payments"]) == 2
            assert data["invoice"]["total_paid"] == "40.00"

    def test_list_filtered_by_invoice(self, api_client):
        invoice = InvoiceFactory()
        PaymentFactory(invoice=invoice)
        PaymentFactory()

        response = api_client.get("/api/payments", {"invoice_id": invoice.pk})
        assert response.json()["meta"]["pagination"]["total"] == 1

    def test_update_cannot_move_payment(self, api_client):
        invoice = InvoiceFactory(amount=Decimal("100.00"), status=Invoice.Status.SENT)
        other = InvoiceFactory()
        payment = PaymentFactory(invoice=invoice, amount=Decimal("10.00"))

        response = api_client.patch(f"/api/payments/{payment.pk}", {"invoice_id": other.pk, "amount": "15.00"})

        assert response.status_code == 200
        payment.refresh_from_db()
        assert payment.invoice_id == invoice.pk
        assert payment.amount == Decimal("15.00")

    def test_delete_payment(self, api_client):
        invoice = InvoiceFactory(status=Invoice.Status.SENT)
        payment = PaymentFactory(invoice=invoice)

        response = api_client.delete(f"/api/payments/{payment.pk}")

        assert response.status_code == 200
        assert not Payment.objects.filter(pk=payment.pk).exists()
