from drf_spectacular.utils import extend_schema, extend_schema_view
from rest_framework.decorators import action

from billing.models import Company
from billing.services import CompanyService

from ..response import APIResponse
from ..serializers import CompanySerializer, PaymentMethodSerializer
from .base import ID_PARAM, PAGINATION_PARAMS, BillingViewSet


@extend_schema_view(
    list=extend_schema(summary="List your companies", parameters=PAGINATION_PARAMS),
    retrieve=extend_schema(summary="Get company", parameters=[ID_PARAM]),
    create=extend_schema(summary="Create company"),
    update=extend_schema(summary="Update company", parameters=[ID_PARAM]),
    partial_update=extend_schema(summary="Partially update company", parameters=[ID_PARAM]),
    destroy=extend_schema(summary="Delete company", parameters=[ID_PARAM]),
)
class CompanyViewSet(BillingViewSet):
    """Companies are scoped to the authenticated user."""

    serializer_class = CompanySerializer
    not_found_label = "Company"

    def get_queryset(self):
        return Company.objects.filter(user=self.request.user).prefetch_related("payment_methods")

    def list(self, request):
        return self.paginate(self.get_queryset(), message="Companies retrieved.")

    def retrieve(self, request, pk=None):
        return APIResponse.success(CompanySerializer(self.get_object()).data, message="Company retrieved.")

    def create(self, request):
        company = CompanyService.create_company(request.user, self.validated(CompanySerializer))
        return APIResponse.created(CompanySerializer(company).data, message="Company created.")

    def update(self, request, pk=None):
        company = self.get_object()
        company = CompanyService.update_company(company, self.validated(CompanySerializer, partial=True))
        return APIResponse.success(CompanySerializer(company).data, message="Company updated.")

    def partial_update(self, request, pk=None):
        return self.update(request, pk=pk)

    def destroy(self, request, pk=None):
        CompanyService.delete_company(self.get_object())
        return APIResponse.success(message="Company deleted.")

    @extend_schema(summary="Make this the default company", request=None, parameters=[ID_PARAM])
    @action(detail=True, methods=["put", "post"], url_path="default")
    def set_default(self, request, pk=None):
        company = CompanyService.set_default(self.get_object())
        return APIResponse.success(CompanySerializer(company).data, message="Default company updated.")

    @extend_schema(
        summary="List or add payment methods",
        request=PaymentMethodSerializer,
        responses={200: PaymentMethodSerializer(many=True), 201: PaymentMethodSerializer},
        parameters=[ID_PARAM],
    )
    @action(detail=True, methods=["get", "post"], url_path="payment-methods")
    def payment_methods(self, request, pk=None):
        company = self.get_object()
        if request.method == "GET":
            methods = company.payment_methods.filter(is_active=True)
            return APIResponse.success(
                PaymentMethodSerializer(methods, many=True).data, message="Payment methods retrieved."
            )

        method = CompanyService.add_payment_method(company, self.validated(PaymentMethodSerializer))
        return APIResponse.created(PaymentMethodSerializer(method).data, message="Payment method added.")
