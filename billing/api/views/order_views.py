from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework.decorators import action

from billing.models import Order
from billing.services import OrderService

from ..response import APIResponse
from ..serializers import (
    GenerateInvoiceSerializer,
    InvoiceSerializer,
    OrderSerializer,
    OrderStatusSerializer,
    OrderWriteSerializer,
    ScheduleQuerySerializer,
)
from .base import ID_PARAM, PAGINATION_PARAMS, BillingViewSet, clean_params


@extend_schema_view(
    list=extend_schema(
        summary="List orders",
        parameters=[
            OpenApiParameter(name="status", required=False, type=str),
            OpenApiParameter(name="client_id", required=False, type=int),
            OpenApiParameter(name="frequency", required=False, type=str),
            *PAGINATION_PARAMS,
        ],
    ),
    retrieve=extend_schema(summary="Get order", parameters=[ID_PARAM]),
    create=extend_schema(summary="Create order", request=OrderWriteSerializer),
    update=extend_schema(summary="Update order", request=OrderWriteSerializer, parameters=[ID_PARAM]),
    partial_update=extend_schema(summary="Partially update order", request=OrderWriteSerializer, parameters=[ID_PARAM]),
    destroy=extend_schema(summary="Delete or cancel order", parameters=[ID_PARAM]),
)
class OrderViewSet(BillingViewSet):
    serializer_class = OrderSerializer
    not_found_label = "Order"

    def get_queryset(self):
        return Order.objects.select_related("client", "service", "company")

    def list(self, request):
        params = clean_params(request.query_params, int_names=("client_id",))
        return self.paginate(OrderService.filter_orders(self.get_queryset(), params), message="Orders retrieved.")

    def retrieve(self, request, pk=None):
        return APIResponse.success(OrderSerializer(self.get_object()).data, message="Order retrieved.")

    def create(self, request):
        order = OrderService.create_order(request.user, self.validated(OrderWriteSerializer))
        return APIResponse.created(OrderSerializer(order).data, message="Order created.")

    def update(self, request, pk=None):
        order = self.get_object()
        order = OrderService.update_order(request.user, order, self.validated(OrderWriteSerializer, partial=True))
        return APIResponse.success(OrderSerializer(order).data, message="Order updated.")

    def partial_update(self, request, pk=None):
        return self.update(request, pk=pk)

    def destroy(self, request, pk=None):
        order = self.get_object()
        if OrderService.delete_order(order):
            return APIResponse.success(message="Order deleted.")
        order.refresh_from_db()
        return APIResponse.success(
            OrderSerializer(order).data,
            message="Order has invoices and was cancelled instead of deleted.",
        )

    @extend_schema(summary="Change order status", request=OrderStatusSerializer, parameters=[ID_PARAM])
    @action(detail=True, methods=["post"], url_path="status")
    def change_status(self, request, pk=None):
        data = self.validated(OrderStatusSerializer)
        order = OrderService.change_status(self.get_object(), data["status"])
        return APIResponse.success(OrderSerializer(order).data, message=f"Order is now {order.status}.")

    @extend_schema(
        summary="Generate the next invoice",
        request=GenerateInvoiceSerializer,
        responses={201: InvoiceSerializer},
        parameters=[ID_PARAM],
    )
    @action(detail=True, methods=["post"], url_path="generate-invoice")
    def generate_invoice(self, request, pk=None):
        data = self.validated(GenerateInvoiceSerializer)
        invoice = OrderService.generate_invoice(request.user, self.get_object(), company_id=data.get("company_id"))
        return APIResponse.created(InvoiceSerializer(invoice).data, message="Invoice generated from order.")

    @extend_schema(
        summary="Upcoming invoice dates",
        parameters=[ID_PARAM, OpenApiParameter(name="count", required=False, type=int)],
    )
    @action(detail=True, methods=["get"], url_path="schedule")
    def schedule(self, request, pk=None):
        count = self.validated(ScheduleQuerySerializer, data=request.query_params)["count"]
        order = self.get_object()
        dates = OrderService.schedule(order, count)
        return APIResponse.success(
            {
                "order_id": order.pk,
                "frequency": order.frequency,
                "frequency_display": order.frequency_display,
                "dates": [d.isoformat() for d in dates],
            },
            message="Schedule computed.",
        )
