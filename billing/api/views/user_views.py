from django.contrib.auth import get_user_model
from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view

from billing.services import UserService

from ..permissions import IsSelfOrStaff
from ..response import APIResponse
from ..serializers import UserSerializer, UserUpdateSerializer
from .base import ID_PARAM, PAGINATION_PARAMS, BillingViewSet

User = get_user_model()


@extend_schema_view(
    list=extend_schema(
        summary="List users",
        description="Staff only.",
        parameters=[
            OpenApiParameter(name="search", description="Match email or name", required=False, type=str),
            *PAGINATION_PARAMS,
        ],
    ),
    retrieve=extend_schema(summary="Get user", parameters=[ID_PARAM]),
    update=extend_schema(summary="Update user", request=UserUpdateSerializer, parameters=[ID_PARAM]),
    partial_update=extend_schema(summary="Partially update user", request=UserUpdateSerializer, parameters=[ID_PARAM]),
    destroy=extend_schema(summary="Delete user", parameters=[ID_PARAM]),
)
class UserViewSet(BillingViewSet):
    """Account administration. Non-staff users may only see and change their own account."""

    serializer_class = UserSerializer
    permission_classes = [IsSelfOrStaff]
    not_found_label = "User"

    def get_queryset(self):
        return User.objects.order_by("-date_joined")

    def get_object(self):
        user = super().get_object()
        self.check_object_permissions(self.request, user)
        return user

    def list(self, request):
        queryset = UserService.search(self.get_queryset(), request.query_params.get("search", "").strip())
        return self.paginate(queryset, message="Users retrieved.")

    def retrieve(self, request, pk=None):
        return APIResponse.success(UserSerializer(self.get_object()).data, message="User retrieved.")

    def update(self, request, pk=None):
        user = self.get_object()
        user = UserService.update_user(user, self.validated(UserUpdateSerializer, partial=True))
        return APIResponse.success(UserSerializer(user).data, message="User updated.")

    def partial_update(self, request, pk=None):
        return self.update(request, pk=pk)

    def destroy(self, request, pk=None):
        UserService.delete_user(self.get_object())
        return APIResponse.success(message="User deleted.")
