from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view

from billing.models import Client
from billing.services import ClientService

from ..response import APIResponse
from ..serializers import ClientSerializer
from .base import ID_PARAM, PAGINATION_PARAMS, BillingViewSet


@extend_schema_view(
    list=extend_schema(
        summary="List clients",
        parameters=[
            OpenApiParameter(name="search", description="Match name, email or company", required=False, type=str),
            *PAGINATION_PARAMS,
        ],
    ),
    retrieve=extend_schema(summary="Get client", parameters=[ID_PARAM]),
    create=extend_schema(summary="Create client"),
    update=extend_schema(summary="Update client", parameters=[ID_PARAM]),
    partial_update=extend_schema(summary="Partially update client", parameters=[ID_PARAM]),
    destroy=extend_schema(summary="Delete client", parameters=[ID_PARAM]),
)
class ClientViewSet(BillingViewSet):
    serializer_class = ClientSerializer
    not_found_label = "Client"

    def get_queryset(self):
        return Client.objects.all()

    def list(self, request):
        queryset = ClientService.search(self.get_queryset(), request.query_params.get("search", "").strip())
        return self.paginate(queryset, message="Clients retrieved.")

    def retrieve(self, request, pk=None):
        return APIResponse.success(ClientSerializer(self.get_object()).data, message="Client retrieved.")

    def create(self, request):
        client = ClientService.create_client(self.validated(ClientSerializer))
        return APIResponse.created(ClientSerializer(client).data, message="Client created.")

    def update(self, request, pk=None):
        client = self.get_object()
        data = self.validated(ClientSerializer, partial=True)
        client = ClientService.update_client(client, data)
        return APIResponse.success(ClientSerializer(client).data, message="Client updated.")

    def partial_update(self, request, pk=None):
        return self.update(request, pk=pk)

    def destroy(self, request, pk=None):
        ClientService.delete_client(self.get_object())
        return APIResponse.success(message="Client deleted.")
