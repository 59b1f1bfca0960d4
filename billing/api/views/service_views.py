from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view

from billing.models import ServiceLibrary
from billing.services import CatalogService

from ..response import APIResponse
from ..serializers import ServiceSerializer
from .base import ID_PARAM, PAGINATION_PARAMS, BillingViewSet


@extend_schema_view(
    list=extend_schema(
        summary="List services",
        parameters=[
            OpenApiParameter(name="include_inactive", required=False, type=bool),
            OpenApiParameter(name="category", required=False, type=str),
            OpenApiParameter(name="is_recurring", required=False, type=bool),
            *PAGINATION_PARAMS,
        ],
    ),
    retrieve=extend_schema(summary="Get service", parameters=[ID_PARAM]),
    create=extend_schema(summary="Create service"),
    update=extend_schema(summary="Update service", parameters=[ID_PARAM]),
    partial_update=extend_schema(summary="Partially update service", parameters=[ID_PARAM]),
    destroy=extend_schema(summary="Deactivate service", parameters=[ID_PARAM]),
)
class ServiceViewSet(BillingViewSet):
    serializer_class = ServiceSerializer
    not_found_label = "Service"

    def get_queryset(self):
        return ServiceLibrary.objects.all()

    def list(self, request):
        queryset = CatalogService.filter_services(self.get_queryset(), request.query_params)
        return self.paginate(queryset, message="Services retrieved.")

    def retrieve(self, request, pk=None):
        return APIResponse.success(ServiceSerializer(self.get_object()).data, message="Service retrieved.")

    def create(self, request):
        service = CatalogService.create_service(self.validated(ServiceSerializer))
        return APIResponse.created(ServiceSerializer(service).data, message="Service created.")

    def update(self, request, pk=None):
        service = self.get_object()
        service = CatalogService.update_service(service, self.validated(ServiceSerializer, partial=True))
        return APIResponse.success(ServiceSerializer(service).data, message="Service updated.")

    def partial_update(self, request, pk=None):
        return self.update(request, pk=pk)

    def destroy(self, request, pk=None):
        service = CatalogService.deactivate_service(self.get_object())
        return APIResponse.success(ServiceSerializer(service).data, message="Service deactivated.")
