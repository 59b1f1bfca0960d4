"""
PDF Service - Invoice PDF rendering.

Responsibilities:
- Invoice PDF generation through WeasyPrint
- Capping how many renders run at once in this process
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Optional

from django.conf import settings
from django.template.loader import render_to_string

from ..validation import PDFGenerationError, ServiceUnavailableError

if TYPE_CHECKING:
    from billing.models import Invoice

logger = logging.getLogger(__name__)

_render_slots: Optional[threading.BoundedSemaphore] = None
_render_slots_lock = threading.Lock()


def _get_render_slots() -> threading.BoundedSemaphore:
    global _render_slots
    with _render_slots_lock:
        if _render_slots is None:
            _render_slots = threading.BoundedSemaphore(max(1, settings.PDF_MAX_CONCURRENT_RENDERS))
        return _render_slots


class PDFService:
    """Renders invoice PDFs with a bounded number of concurrent renders."""

    TEMPLATE_NAME = "billing/invoice_pdf.html"

    @staticmethod
    def render_html(invoice: "Invoice") -> str:
        from .invoice_service import InvoiceService

        context = {
            "invoice": invoice,
            "client": invoice.client,
            "company": invoice.company,
            "payment_methods": invoice.company.payment_methods.filter(is_active=True),
            "summary": InvoiceService.payment_summary(invoice),
        }
        return render_to_string(PDFService.TEMPLATE_NAME, context)

    @staticmethod
    def generate_pdf_bytes(invoice: "Invoice") -> bytes:
        """
        Generate PDF bytes for an invoice.

        Raises:
            ServiceUnavailableError: if no render slot frees up within
                ``PDF_RENDER_QUEUE_TIMEOUT`` seconds
            PDFGenerationError: if WeasyPrint is missing or rendering fails
        """
        try:
            from weasyprint import HTML
        except (ImportError, OSError) as e:
            logger.error(f"WeasyPrint unavailable: {e}")
            raise PDFGenerationError(
                "PDF generation is currently unavailable due to missing system dependencies."
            )

        html_string = PDFService.render_html(invoice)

        slots = _get_render_slots()
        if not slots.acquire(timeout=settings.PDF_RENDER_QUEUE_TIMEOUT):
            logger.warning(f"PDF render queue full, rejecting invoice {invoice.invoice_number}")
            raise ServiceUnavailableError("PDF renderer is busy. Please try again shortly.")

        try:
            pdf_bytes = HTML(string=html_string, base_url=settings.SITE_URL).write_pdf()
        except Exception as e:
            logger.error(f"PDF generation failed for invoice {invoice.invoice_number}: {e}")
            raise PDFGenerationError("PDF generation failed.")
        finally:
            slots.release()

        logger.info(f"Generated PDF for invoice {invoice.invoice_number} ({len(pdf_bytes)} bytes)")
        return pdf_bytes

    @staticmethod
    def get_invoice_filename(invoice: "Invoice") -> str:
        return f"{invoice.invoice_number}.pdf"
