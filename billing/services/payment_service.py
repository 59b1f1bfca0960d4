"""
Payment Service - applying money received against invoices.

The invoice row is locked for the whole check-then-write sequence, so two
concurrent partial payments cannot both pass the balance check.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional

from django.db import transaction
from django.db.models import Sum
from django.utils import timezone

from ..models import Invoice, Payment
from ..validation import ConflictError, ErrorCode, ValidationError
from .invoice_service import InvoiceService
from .lookups import get_or_not_found

logger = logging.getLogger(__name__)


class PaymentService:

    @staticmethod
    def _paid_total(invoice: Invoice, exclude_pk: Optional[int] = None) -> Decimal:
        payments = Payment.objects.filter(invoice_id=invoice.pk)
        if exclude_pk is not None:
            payments = payments.exclude(pk=exclude_pk)
        return payments.aggregate(total=Sum("amount"))["total"] or Decimal("0.00")

    @staticmethod
    def _check_amount(amount: Decimal) -> None:
        if amount is None or amount <= 0:
            raise ValidationError(
                "Payment amount must be greater than zero",
                details={"amount": ["Payment amount must be greater than zero"]},
            )

    @staticmethod
    def _check_overpayment(invoice: Invoice, already_paid: Decimal, amount: Decimal) -> None:
        remaining = invoice.amount - already_paid
        if amount > remaining:
            raise ConflictError(
                f"Payment of {amount} exceeds the outstanding balance. "
                f"Maximum additional payment is {max(remaining, Decimal('0.00'))} {invoice.currency}.",
                code=ErrorCode.OVERPAYMENT,
                details={
                    "invoice_amount": str(invoice.amount),
                    "total_paid": str(already_paid),
                    "max_additional_amount": str(max(remaining, Decimal("0.00"))),
                },
            )

    @classmethod
    @transaction.atomic
    def apply_payment(
        cls,
        invoice_id: int,
        amount: Decimal,
        method: str,
        paid_date: Optional[date] = None,
        reference: str = "",
        notes: str = "",
    ) -> Payment:
        invoice = get_or_not_found(Invoice.objects.select_for_update(), invoice_id, "Invoice")
        cls._check_amount(amount)
        if invoice.status == Invoice.Status.CANCELLED:
            raise ConflictError(
                "Payments cannot be recorded against a cancelled invoice",
                code=ErrorCode.INVOICE_CANCELLED,
            )

        already_paid = cls._paid_total(invoice)
        cls._check_overpayment(invoice, already_paid, amount)

        payment = Payment.objects.create(
            invoice=invoice,
            amount=amount,
            method=method,
            paid_date=paid_date or timezone.localdate(),
            reference=reference,
            notes=notes,
        )
        logger.info(
            f"Payment {payment.pk} of {amount} {invoice.currency} applied to invoice "
            f"{invoice.invoice_number} ({already_paid + amount}/{invoice.amount})"
        )

        if already_paid + amount >= invoice.amount:
            InvoiceService.transition_status(invoice, Invoice.Status.PAID, paid_date=payment.paid_date)

        return payment

    @classmethod
    @transaction.atomic
    def update_payment(cls, payment: Payment, data: Dict[str, Any]) -> Payment:
        invoice = Invoice.objects.select_for_update().get(pk=payment.invoice_id)
        payment = Payment.objects.get(pk=payment.pk)

        new_amount = data.get("amount", payment.amount)
        cls._check_amount(new_amount)

        if invoice.status == Invoice.Status.CANCELLED:
            raise ConflictError(
                "Payments on a cancelled invoice cannot be changed",
                code=ErrorCode.INVOICE_CANCELLED,
            )
        if invoice.status == Invoice.Status.PAID and new_amount < payment.amount:
            raise ConflictError(
                "This invoice is paid; reducing a payment would reopen it",
                code=ErrorCode.INVOICE_ALREADY_PAID,
            )

        other_paid = cls._paid_total(invoice, exclude_pk=payment.pk)
        cls._check_overpayment(invoice, other_paid, new_amount)

        for name in ("amount", "method", "paid_date", "reference", "notes"):
            if name in data:
                setattr(payment, name, data[name])
        payment.save()
        logger.info(f"Payment {payment.pk} on invoice {invoice.invoice_number} updated")

        if invoice.status != Invoice.Status.PAID and other_paid + new_amount >= invoice.amount:
            InvoiceService.transition_status(invoice, Invoice.Status.PAID, paid_date=payment.paid_date)

        return payment

    @staticmethod
    @transaction.atomic
    def delete_payment(payment: Payment) -> None:
        invoice = Invoice.objects.select_for_update().get(pk=payment.invoice_id)
        if invoice.status == Invoice.Status.PAID:
            raise ConflictError(
                "Payments on a paid invoice cannot be deleted",
                code=ErrorCode.INVOICE_ALREADY_PAID,
            )
        payment_id = payment.pk
        payment.delete()
        logger.info(f"Payment {payment_id} removed from invoice {invoice.invoice_number}")

    @staticmethod
    def filter_payments(queryset, params: Dict[str, Any]):
        invoice_id = params.get("invoice_id")
        if invoice_id:
            queryset = queryset.filter(invoice_id=invoice_id)
        client_id = params.get("client_id")
        if client_id:
            queryset = queryset.filter(invoice__client_id=client_id)
        method = params.get("method")
        if method:
            queryset = queryset.filter(method=method.upper())
        return queryset
