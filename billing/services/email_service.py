"""
Email Service - Transactional email over SMTP.

Sends are synchronous. Delivery failures raise ``EmailDeliveryError`` so
the caller sees the request fail and can retry; nothing is queued.
"""

from __future__ import annotations

import logging
import smtplib
from typing import TYPE_CHECKING, List

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string

from ..validation import EmailDeliveryError

if TYPE_CHECKING:
    from billing.models import Invoice

logger = logging.getLogger(__name__)


class EmailService:

    @staticmethod
    def _from_address(invoice: "Invoice") -> str:
        company = invoice.company
        if company.email:
            return f"{company.name} <{settings.DEFAULT_FROM_EMAIL}>"
        return settings.DEFAULT_FROM_EMAIL

    @staticmethod
    def _send(message: EmailMultiAlternatives, invoice: "Invoice", kind: str) -> None:
        try:
            message.send(fail_silently=False)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send {kind} email for invoice {invoice.invoice_number}: {e}")
            raise EmailDeliveryError(f"Could not deliver the {kind} email: {e}")

    @staticmethod
    def _build(invoice: "Invoice", subject: str, template: str, context: dict) -> EmailMultiAlternatives:
        recipients = invoice.client.recipient_emails
        context = {
            "invoice": invoice,
            "client": invoice.client,
            "company": invoice.company,
            **context,
        }
        message = EmailMultiAlternatives(
            subject=subject,
            body=render_to_string(f"billing/emails/{template}.txt", context),
            from_email=EmailService._from_address(invoice),
            to=recipients[:1],
            cc=recipients[1:],
            reply_to=[invoice.company.email] if invoice.company.email else None,
        )
        message.attach_alternative(render_to_string(f"billing/emails/{template}.html", context), "text/html")
        return message

    @classmethod
    def send_invoice_email(cls, invoice: "Invoice", pdf_bytes: bytes) -> List[str]:
        """Email the invoice with its PDF attached; returns the recipient list."""
        subject = f"Invoice {invoice.invoice_number} from {invoice.company.name}"
        message = cls._build(invoice, subject, "invoice", {})
        message.attach(f"{invoice.invoice_number}.pdf", pdf_bytes, "application/pdf")

        cls._send(message, invoice, "invoice")
        recipients = invoice.client.recipient_emails
        logger.info(f"Invoice {invoice.invoice_number} emailed to {len(recipients)} recipient(s)")
        return recipients

    @classmethod
    def send_reminder_email(cls, invoice: "Invoice", reminder_type: str) -> List[str]:
        from .invoice_service import InvoiceService

        summary = InvoiceService.payment_summary(invoice)
        if reminder_type == "PRE_DUE":
            subject = f"Reminder: invoice {invoice.invoice_number} is due on {invoice.due_date:%Y-%m-%d}"
        elif reminder_type == "DUE_DATE":
            subject = f"Invoice {invoice.invoice_number} is due today"
        else:
            subject = f"Overdue: invoice {invoice.invoice_number}"

        message = cls._build(
            invoice,
            subject,
            "reminder",
            {"reminder_type": reminder_type, "remaining_amount": summary["remaining_amount"]},
        )
        cls._send(message, invoice, "reminder")
        logger.info(f"{reminder_type} reminder for invoice {invoice.invoice_number} emailed")
        return invoice.client.recipient_emails
