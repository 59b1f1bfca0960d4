from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import viewsets
from rest_framework.decorators import action

from billing.services import ReportsService

from ..response import APIResponse
from ..serializers import RevenueQuerySerializer


class ReportViewSet(viewsets.ViewSet):
    """Read-only analytics across the whole installation."""

    @extend_schema(summary="Business overview")
    @action(detail=False, methods=["get"])
    def overview(self, request):
        return APIResponse.success(ReportsService.overview(), message="Overview report generated.")

    @extend_schema(
        summary="Revenue by month",
        parameters=[OpenApiParameter(name="months", required=False, type=int)],
    )
    @action(detail=False, methods=["get"])
    def revenue(self, request):
        query = RevenueQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        return APIResponse.success(
            ReportsService.revenue(months=query.validated_data["months"]),
            message="Revenue report generated.",
        )

    @extend_schema(summary="Client statistics")
    @action(detail=False, methods=["get"])
    def clients(self, request):
        return APIResponse.success(ReportsService.clients(), message="Client report generated.")
