from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework.decorators import action

from billing.models import Invoice, Payment
from billing.services import InvoiceService, PaymentService
from billing.services.lookups import get_or_not_found

from ..response import APIResponse
from ..serializers import InvoiceSerializer, PaymentSerializer, PaymentWriteSerializer
from .base import ID_PARAM, PAGINATION_PARAMS, BillingViewSet, clean_params


def _invoice_data(invoice_id: int) -> dict:
    return InvoiceSerializer(InvoiceService.invoice_queryset().get(pk=invoice_id)).data


@extend_schema_view(
    list=extend_schema(
        summary="List payments",
        parameters=[
            OpenApiParameter(name="invoice_id", required=False, type=int),
            OpenApiParameter(name="client_id", required=False, type=int),
            OpenApiParameter(name="method", required=False, type=str),
            *PAGINATION_PARAMS,
        ],
    ),
    retrieve=extend_schema(summary="Get payment", parameters=[ID_PARAM]),
    create=extend_schema(summary="Record payment", request=PaymentWriteSerializer),
    update=extend_schema(summary="Update payment", request=PaymentWriteSerializer, parameters=[ID_PARAM]),
    partial_update=extend_schema(summary="Partially update payment", request=PaymentWriteSerializer, parameters=[ID_PARAM]),
    destroy=extend_schema(summary="Delete payment", parameters=[ID_PARAM]),
)
class PaymentViewSet(BillingViewSet):
    serializer_class = PaymentSerializer
    not_found_label = "Payment"

    def get_queryset(self):
        return Payment.objects.select_related("invoice")

    def list(self, request):
        params = clean_params(request.query_params, int_names=("invoice_id", "client_id"))
        queryset = PaymentService.filter_payments(self.get_queryset(), params)
        return self.paginate(queryset, message="Payments retrieved.")

    def retrieve(self, request, pk=None):
        return APIResponse.success(PaymentSerializer(self.get_object()).data, message="Payment retrieved.")

    def create(self, request):
        data = self.validated(PaymentWriteSerializer)
        payment = PaymentService.apply_payment(data.pop("invoice_id"), **data)
        return APIResponse.created(
            {"payment": PaymentSerializer(payment).data, "invoice": _invoice_data(payment.invoice_id)},
            message="Payment recorded.",
        )

    def update(self, request, pk=None):
        payment = self.get_object()
        data = self.validated(PaymentWriteSerializer, partial=True)
        # Payments cannot move between invoices
        data.pop("invoice_id", None)
        payment = PaymentService.update_payment(payment, data)
        return APIResponse.success(
            {"payment": PaymentSerializer(payment).data, "invoice": _invoice_data(payment.invoice_id)},
            message="Payment updated.",
        )

    def partial_update(self, request, pk=None):
        return self.update(request, pk=pk)

    def destroy(self, request, pk=None):
        PaymentService.delete_payment(self.get_object())
        return APIResponse.success(message="Payment deleted.")

    @extend_schema(
        summary="Payments for an invoice",
        responses={200: PaymentSerializer(many=True)},
        parameters=[OpenApiParameter(name="invoice_id", type=int, location=OpenApiParameter.PATH)],
    )
    @action(detail=False, methods=["get"], url_path=r"invoice/(?P<invoice_id>\d+)")
    def for_invoice(self, request, invoice_id=None):
        invoice = get_or_not_found(Invoice.objects.all(), invoice_id, "Invoice")
        payments = self.get_queryset().filter(invoice=invoice)
        return APIResponse.success(
            {"payments": PaymentSerializer(payments, many=True).data, "invoice": _invoice_data(invoice.pk)},
            message="Payments retrieved.",
        )
