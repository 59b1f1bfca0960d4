from decimal import Decimal

from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework.decorators import action

from billing.models import RecurringSubscription
from billing.services import SubscriptionService

from ..response import APIResponse
from ..serializers import DueQuerySerializer, SubscriptionSerializer, SubscriptionWriteSerializer
from .base import ID_PARAM, PAGINATION_PARAMS, BillingViewSet, clean_params


@extend_schema_view(
    list=extend_schema(
        summary="List subscriptions",
        description="Cancelled subscriptions are hidden unless status=CANCELLED is requested.",
        parameters=[
            OpenApiParameter(name="status", required=False, type=str),
            OpenApiParameter(name="client_id", required=False, type=int),
            *PAGINATION_PARAMS,
        ],
    ),
    retrieve=extend_schema(summary="Get subscription", parameters=[ID_PARAM]),
    create=extend_schema(summary="Create subscription", request=SubscriptionWriteSerializer),
    update=extend_schema(summary="Update subscription", request=SubscriptionWriteSerializer, parameters=[ID_PARAM]),
    partial_update=extend_schema(
        summary="Partially update subscription", request=SubscriptionWriteSerializer, parameters=[ID_PARAM]
    ),
    destroy=extend_schema(summary="Cancel subscription", parameters=[ID_PARAM]),
)
class SubscriptionViewSet(BillingViewSet):
    serializer_class = SubscriptionSerializer
    not_found_label = "Subscription"

    def get_queryset(self):
        return RecurringSubscription.objects.select_related("client", "service", "company")

    def list(self, request):
        params = clean_params(request.query_params, int_names=("client_id",))
        queryset = SubscriptionService.filter_subscriptions(self.get_queryset(), params)
        return self.paginate(queryset, message="Subscriptions retrieved.")

    def retrieve(self, request, pk=None):
        return APIResponse.success(SubscriptionSerializer(self.get_object()).data, message="Subscription retrieved.")

    def create(self, request):
        subscription = SubscriptionService.create_subscription(request.user, self.validated(SubscriptionWriteSerializer))
        return APIResponse.created(SubscriptionSerializer(subscription).data, message="Subscription created.")

    def update(self, request, pk=None):
        subscription = self.get_object()
        data = self.validated(SubscriptionWriteSerializer, partial=True)
        subscription = SubscriptionService.update_subscription(request.user, subscription, data)
        return APIResponse.success(SubscriptionSerializer(subscription).data, message="Subscription updated.")

    def partial_update(self, request, pk=None):
        return self.update(request, pk=pk)

    def destroy(self, request, pk=None):
        subscription = SubscriptionService.cancel_subscription(self.get_object())
        return APIResponse.success(SubscriptionSerializer(subscription).data, message="Subscription cancelled.")

    @extend_schema(
        summary="Subscriptions due soon",
        description="Active subscriptions whose next billing date falls within [today, today + days].",
        parameters=[OpenApiParameter(name="days", required=False, type=int)],
    )
    @action(detail=False, methods=["get"], url_path="due")
    def due(self, request):
        days = self.validated(DueQuerySerializer, data=request.query_params).get("days")
        result = SubscriptionService.due_subscriptions(days=days)
        subscriptions = list(result["subscriptions"])
        return APIResponse.success(
            {
                "subscriptions": SubscriptionSerializer(subscriptions, many=True).data,
                "total_due": len(subscriptions),
                "total_amount": str(sum((s.price for s in subscriptions), Decimal("0.00"))),
                "from": result["from"].isoformat(),
                "to": result["to"].isoformat(),
            },
            message="Due subscriptions retrieved.",
        )
