import logging
import re
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Sum
from django.utils import timezone

from ..models import Client, Company, Invoice, Order, PaymentReminder
from ..validation import ConflictError, ErrorCode, ValidationError
from .email_service import EmailService
from .lookups import get_or_not_found
from .pdf_service import PDFService

logger = logging.getLogger(__name__)

MAX_NUMBERING_ATTEMPTS = 5
EDITABLE_FIELDS = ("amount", "currency", "issue_date", "due_date", "description", "notes")


class InvoiceService:
    VALID_TRANSITIONS = {
        Invoice.Status.DRAFT: [Invoice.Status.SENT, Invoice.Status.PAID, Invoice.Status.CANCELLED],
        Invoice.Status.SENT: [Invoice.Status.PAID, Invoice.Status.OVERDUE, Invoice.Status.CANCELLED],
        Invoice.Status.OVERDUE: [Invoice.Status.PAID],
        Invoice.Status.PAID: [],
        Invoice.Status.CANCELLED: [],
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def transition_status(cls, invoice: Invoice, new_status: str, paid_date: Optional[date] = None) -> Invoice:
        old_status = invoice.status
        if not cls.can_transition(old_status, new_status):
            raise ConflictError(
                f"Cannot change invoice status from {old_status} to {new_status}",
                code=ErrorCode.INVALID_STATE_TRANSITION,
                details={
                    "from": old_status,
                    "to": new_status,
                    "allowed": [str(s) for s in cls.VALID_TRANSITIONS.get(old_status, [])],
                },
            )

        invoice.status = new_status
        update_fields = ["status", "updated_at"]
        if new_status == Invoice.Status.SENT:
            invoice.sent_date = timezone.now()
            update_fields.append("sent_date")
        elif new_status == Invoice.Status.PAID:
            invoice.paid_date = paid_date or timezone.localdate()
            update_fields.append("paid_date")

        invoice.save(update_fields=update_fields)
        logger.info(f"Invoice {invoice.invoice_number} transitioned from {old_status} to {new_status}")
        return invoice

    @staticmethod
    def generate_invoice_number(year: Optional[int] = None, prefix: Optional[str] = None) -> str:
        """Next ``PREFIX-YYYY-NNNNNN`` number after the highest one issued this year."""
        year = year or timezone.localdate().year
        prefix = prefix or settings.INVOICE_NUMBER_PREFIX
        base = f"{prefix}-{year}-"

        last_number = (
            Invoice.objects.filter(invoice_number__regex=rf"^{re.escape(base)}[0-9]{{6}}$")
            .order_by("-invoice_number")
            .values_list("invoice_number", flat=True)
            .first()
        )
        next_seq = int(last_number[len(base):]) + 1 if last_number else 1
        return f"{base}{next_seq:06d}"

    @staticmethod
    def validate_dates(issue_date: date, due_date: date) -> None:
        if due_date <= issue_date:
            raise ValidationError(
                "Due date must be after the issue date",
                details={"due_date": ["Due date must be after the issue date"]},
            )

    @staticmethod
    def _resolve_references(user, data: Dict[str, Any], client: Optional[Client] = None) -> Dict[str, Any]:
        resolved = {}
        if "client_id" in data:
            client = get_or_not_found(Client.objects.all(), data["client_id"], "Client")
            resolved["client"] = client
        if "company_id" in data:
            resolved["company"] = get_or_not_found(
                Company.objects.filter(user=user, is_active=True), data["company_id"], "Company"
            )
        if data.get("order_id"):
            order = get_or_not_found(Order.objects.all(), data["order_id"], "Order")
            if client is not None and order.client_id != client.id:
                raise ValidationError(
                    "Order does not belong to this client",
                    details={"order_id": ["Order does not belong to this client"]},
                )
            resolved["order"] = order
        elif "order_id" in data:
            resolved["order"] = None
        return resolved

    @classmethod
    def create_invoice(cls, user, data: Dict[str, Any]) -> Invoice:
        fields = cls._resolve_references(user, data)
        fields["issue_date"] = data.get("issue_date") or timezone.localdate()
        fields["due_date"] = data["due_date"]
        cls.validate_dates(fields["issue_date"], fields["due_date"])

        fields["amount"] = data["amount"]
        fields["currency"] = data.get("currency") or fields["company"].default_currency
        fields["description"] = data.get("description", "")
        fields["notes"] = data.get("notes", "")
        fields["subscription"] = data.get("subscription")

        invoice = cls._create_with_number((data.get("invoice_number") or "").strip(), fields)
        logger.info(
            f"Invoice {invoice.invoice_number} created for client {invoice.client_id} "
            f"({invoice.amount} {invoice.currency})"
        )
        return invoice

    @classmethod
    def _create_with_number(cls, custom_number: str, fields: Dict[str, Any]) -> Invoice:
        if custom_number:
            cls._ensure_number_available(custom_number)
            try:
                with transaction.atomic():
                    return Invoice.objects.create(invoice_number=custom_number, **fields)
            except IntegrityError:
                raise cls._duplicate_number_error(custom_number)

        for attempt in range(MAX_NUMBERING_ATTEMPTS):
            number = cls.generate_invoice_number(year=fields["issue_date"].year)
            try:
                with transaction.atomic():
                    return Invoice.objects.create(invoice_number=number, **fields)
            except IntegrityError:
                logger.warning(f"Invoice number {number} taken concurrently, retrying (attempt {attempt + 1})")

        raise ConflictError(
            "Could not allocate a unique invoice number. Please retry.",
            code=ErrorCode.DUPLICATE_INVOICE_NUMBER,
        )

    @staticmethod
    def _duplicate_number_error(number: str) -> ConflictError:
        return ConflictError(
            f"Invoice number {number} already exists",
            code=ErrorCode.DUPLICATE_INVOICE_NUMBER,
            details={"invoice_number": number},
        )

    @classmethod
    def _ensure_number_available(cls, number: str, exclude_pk: Optional[int] = None) -> None:
        existing = Invoice.objects.filter(invoice_number=number)
        if exclude_pk is not None:
            existing = existing.exclude(pk=exclude_pk)
        if existing.exists():
            raise cls._duplicate_number_error(number)

    @classmethod
    @transaction.atomic
    def update_invoice(cls, user, invoice: Invoice, data: Dict[str, Any]) -> Invoice:
        invoice = Invoice.objects.select_for_update().get(pk=invoice.pk)
        if not invoice.is_editable:
            raise ValidationError(
                f"Only draft invoices can be edited; this invoice is {invoice.status}",
                code=ErrorCode.INVOICE_NOT_EDITABLE,
                details={"status": invoice.status},
            )

        client = None if "client_id" in data else invoice.client
        resolved = cls._resolve_references(user, data, client=client)
        if "client_id" in data and "order_id" not in data and invoice.order_id:
            if invoice.order.client_id != resolved["client"].id:
                raise ValidationError(
                    "Order does not belong to this client",
                    details={"order_id": ["Order does not belong to this client"]},
                )
        for name, value in resolved.items():
            setattr(invoice, name, value)

        for name in EDITABLE_FIELDS:
            if name in data:
                setattr(invoice, name, data[name])
        cls.validate_dates(invoice.issue_date, invoice.due_date)

        new_number = (data.get("invoice_number") or "").strip()
        if new_number and new_number != invoice.invoice_number:
            cls._ensure_number_available(new_number, exclude_pk=invoice.pk)
            invoice.invoice_number = new_number

        total_paid = invoice.payments.aggregate(total=Sum("amount"))["total"] or Decimal("0.00")
        if invoice.amount < total_paid:
            raise ConflictError(
                f"Amount cannot be lower than the {total_paid} already paid",
                code=ErrorCode.OVERPAYMENT,
                details={"total_paid": str(total_paid)},
            )

        try:
            with transaction.atomic():
                invoice.save()
        except IntegrityError:
            raise cls._duplicate_number_error(invoice.invoice_number)

        if total_paid and total_paid >= invoice.amount:
            cls.transition_status(invoice, Invoice.Status.PAID)

        logger.info(f"Invoice {invoice.invoice_number} updated")
        return invoice

    @staticmethod
    @transaction.atomic
    def delete_invoice(invoice: Invoice) -> None:
        if invoice.payments.exists():
            raise ConflictError(
                "Cannot delete an invoice that has payments recorded against it",
                code=ErrorCode.INVOICE_HAS_PAYMENTS,
                details={"payment_count": invoice.payments.count()},
            )
        number = invoice.invoice_number
        invoice.delete()
        logger.info(f"Invoice {number} deleted")

    @classmethod
    def send_invoice(cls, invoice: Invoice) -> Invoice:
        """
        Email the invoice PDF to the client.

        A draft moves to SENT once the email has gone out; resending a sent,
        overdue or paid invoice only re-delivers it. PDF and email failures
        propagate and leave the status untouched.
        """
        if invoice.status == Invoice.Status.CANCELLED:
            raise ConflictError("Cancelled invoices cannot be sent", code=ErrorCode.INVOICE_CANCELLED)

        pdf_bytes = PDFService.generate_pdf_bytes(invoice)
        EmailService.send_invoice_email(invoice, pdf_bytes)

        # A payment may have landed while the email was going out
        with transaction.atomic():
            invoice = Invoice.objects.select_for_update().get(pk=invoice.pk)
            if invoice.status == Invoice.Status.DRAFT:
                cls.transition_status(invoice, Invoice.Status.SENT)
            else:
                logger.info(f"Invoice {invoice.invoice_number} re-sent while {invoice.status}")
        return invoice

    @classmethod
    @transaction.atomic
    def cancel_invoice(cls, invoice: Invoice) -> Invoice:
        invoice = Invoice.objects.select_for_update().get(pk=invoice.pk)
        return cls.transition_status(invoice, Invoice.Status.CANCELLED)

    @staticmethod
    def send_reminder(invoice: Invoice, reminder_type: str) -> PaymentReminder:
        if invoice.status not in (Invoice.Status.SENT, Invoice.Status.OVERDUE):
            raise ConflictError(
                f"Reminders can only be sent for sent or overdue invoices; this invoice is {invoice.status}",
                code=ErrorCode.INVALID_STATE_TRANSITION,
            )

        recipients = EmailService.send_reminder_email(invoice, reminder_type)
        reminder = PaymentReminder.objects.create(
            invoice=invoice,
            reminder_type=reminder_type,
            recipients=recipients,
        )
        logger.info(f"Reminder {reminder_type} sent for invoice {invoice.invoice_number}")
        return reminder

    @staticmethod
    def overdue_candidates(today: Optional[date] = None):
        today = today or timezone.localdate()
        return Invoice.objects.filter(status=Invoice.Status.SENT, due_date__lt=today).select_related("client")

    @classmethod
    def mark_overdue_invoices(cls, today: Optional[date] = None) -> int:
        today = today or timezone.localdate()
        count = 0
        for candidate in cls.overdue_candidates(today):
            with transaction.atomic():
                invoice = Invoice.objects.select_for_update().get(pk=candidate.pk)
                if invoice.status != Invoice.Status.SENT or invoice.due_date >= today:
                    logger.info(f"Invoice {invoice.invoice_number} is {invoice.status} now, not marking overdue")
                    continue
                cls.transition_status(invoice, Invoice.Status.OVERDUE)
            count += 1
        if count:
            logger.info(f"Marked {count} invoice(s) overdue")
        return count

    @staticmethod
    def payment_summary(invoice: Invoice) -> Dict[str, Any]:
        total_paid = invoice.total_paid
        return {
            "total_paid": total_paid,
            "remaining_amount": max(invoice.amount - total_paid, Decimal("0.00")),
            "is_fully_paid": total_paid >= invoice.amount,
        }

    @staticmethod
    def invoice_queryset():
        return Invoice.objects.select_related("client", "company", "order").annotate(
            paid_total=Sum("payments__amount")
        )

    @staticmethod
    def filter_invoices(queryset, params: Dict[str, Any]) -> Any:
        status = params.get("status")
        if status:
            queryset = queryset.filter(status=status.upper())
        client_id = params.get("client_id")
        if client_id:
            queryset = queryset.filter(client_id=client_id)
        company_id = params.get("company_id")
        if company_id:
            queryset = queryset.filter(company_id=company_id)
        order_id = params.get("order_id")
        if order_id:
            queryset = queryset.filter(order_id=order_id)
        return queryset
