from io import BytesIO

from django.http import FileResponse
from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework.decorators import action

from billing.models import Invoice, Payment, PaymentReminder
from billing.services import InvoiceService, PaymentService, PDFService

from ..response import APIResponse
from ..serializers import (
    InvoicePaymentWriteSerializer,
    InvoiceSerializer,
    InvoiceWriteSerializer,
    PaymentReminderSerializer,
    PaymentSerializer,
    ReminderSerializer,
)
from .base import ID_PARAM, PAGINATION_PARAMS, BillingViewSet, clean_params


@extend_schema_view(
    list=extend_schema(
        summary="List invoices",
        parameters=[
            OpenApiParameter(name="status", required=False, type=str),
            OpenApiParameter(name="client_id", required=False, type=int),
            OpenApiParameter(name="company_id", required=False, type=int),
            OpenApiParameter(name="order_id", required=False, type=int),
            *PAGINATION_PARAMS,
        ],
    ),
    retrieve=extend_schema(summary="Get invoice", parameters=[ID_PARAM]),
    create=extend_schema(summary="Create invoice", request=InvoiceWriteSerializer),
    update=extend_schema(
        summary="Update draft invoice",
        description="Only DRAFT invoices can be edited.",
        request=InvoiceWriteSerializer,
        parameters=[ID_PARAM],
    ),
    partial_update=extend_schema(
        summary="Partially update draft invoice", request=InvoiceWriteSerializer, parameters=[ID_PARAM]
    ),
    destroy=extend_schema(summary="Delete invoice", parameters=[ID_PARAM]),
)
class InvoiceViewSet(BillingViewSet):
    serializer_class = InvoiceSerializer
    not_found_label = "Invoice"

    def get_queryset(self):
        return InvoiceService.invoice_queryset()

    def _fresh(self, invoice: Invoice) -> dict:
        return InvoiceSerializer(self.get_queryset().get(pk=invoice.pk)).data

    def list(self, request):
        params = clean_params(request.query_params, int_names=("client_id", "company_id", "order_id"))
        queryset = InvoiceService.filter_invoices(self.get_queryset(), params)
        return self.paginate(queryset, message="Invoices retrieved.")

    def retrieve(self, request, pk=None):
        return APIResponse.success(InvoiceSerializer(self.get_object()).data, message="Invoice retrieved.")

    def create(self, request):
        invoice = InvoiceService.create_invoice(request.user, self.validated(InvoiceWriteSerializer))
        return APIResponse.created(self._fresh(invoice), message="Invoice created.")

    def update(self, request, pk=None):
        invoice = self.get_object()
        data = self.validated(InvoiceWriteSerializer, partial=True)
        invoice = InvoiceService.update_invoice(request.user, invoice, data)
        return APIResponse.success(self._fresh(invoice), message="Invoice updated.")

    def partial_update(self, request, pk=None):
        return self.update(request, pk=pk)

    def destroy(self, request, pk=None):
        InvoiceService.delete_invoice(self.get_object())
        return APIResponse.success(message="Invoice deleted.")

    @extend_schema(summary="Email invoice to client", request=None, parameters=[ID_PARAM])
    @action(detail=True, methods=["post"], url_path="send")
    def send(self, request, pk=None):
        invoice = InvoiceService.send_invoice(self.get_object())
        return APIResponse.success(self._fresh(invoice), message="Invoice sent.")

    @extend_schema(summary="Cancel invoice", request=None, parameters=[ID_PARAM])
    @action(detail=True, methods=["post"], url_path="cancel")
    def cancel(self, request, pk=None):
        invoice = InvoiceService.cancel_invoice(self.get_object())
        return APIResponse.success(self._fresh(invoice), message="Invoice cancelled.")

    @extend_schema(
        summary="Send payment reminder",
        request=ReminderSerializer,
        responses={201: PaymentReminderSerializer},
        parameters=[ID_PARAM],
    )
    @action(detail=True, methods=["post"], url_path="reminder")
    def reminder(self, request, pk=None):
        invoice = self.get_object()
        reminder_type = self.validated(ReminderSerializer).get("reminder_type")
        if not reminder_type:
            reminder_type = (
                PaymentReminder.ReminderType.OVERDUE_3_DAYS
                if invoice.status == Invoice.Status.OVERDUE
                else PaymentReminder.ReminderType.PRE_DUE
            )
        reminder = InvoiceService.send_reminder(invoice, reminder_type)
        return APIResponse.created(PaymentReminderSerializer(reminder).data, message="Reminder sent.")

    @extend_schema(
        summary="Download invoice PDF",
        responses={200: {"type": "string", "format": "binary"}},
        parameters=[ID_PARAM],
    )
    @action(detail=True, methods=["get"], url_path="pdf")
    def pdf(self, request, pk=None):
        invoice = self.get_object()
        pdf_bytes = PDFService.generate_pdf_bytes(invoice)
        return FileResponse(
            BytesIO(pdf_bytes),
            as_attachment=True,
            filename=PDFService.get_invoice_filename(invoice),
            content_type="application/pdf",
        )

    @extend_schema(
        summary="List or record payments for this invoice",
        request=InvoicePaymentWriteSerializer,
        responses={200: PaymentSerializer(many=True), 201: PaymentSerializer},
        parameters=[ID_PARAM],
    )
    @action(detail=True, methods=["get", "post"], url_path="payments")
    def payments(self, request, pk=None):
        invoice = self.get_object()
        if request.method == "GET":
            payments = Payment.objects.filter(invoice=invoice).select_related("invoice")
            return APIResponse.success(
                {
                    "payments": PaymentSerializer(payments, many=True).data,
                    "invoice": self._fresh(invoice),
                },
                message="Payments retrieved.",
            )

        data = self.validated(InvoicePaymentWriteSerializer)
        payment = PaymentService.apply_payment(invoice.pk, **data)
        return APIResponse.created(
            {"payment": PaymentSerializer(payment).data, "invoice": self._fresh(invoice)},
            message="Payment recorded.",
        )
