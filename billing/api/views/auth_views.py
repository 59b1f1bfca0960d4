from drf_spectacular.utils import extend_schema
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated

from billing.services import AuthService, UserService

from ..response import APIResponse
from ..serializers import (
    LoginSerializer,
    LogoutSerializer,
    ProfileSerializer,
    RefreshSerializer,
    RegisterSerializer,
    UserSerializer,
)


class AuthViewSet(viewsets.GenericViewSet):
    """Registration, login and bearer-token lifecycle."""

    serializer_class = UserSerializer
    public_actions = ("register", "login", "refresh")

    def get_permissions(self):
        if self.action in self.public_actions:
            return [AllowAny()]
        return [IsAuthenticated()]

    def _validated(self, serializer_class):
        serializer = serializer_class(data=self.request.data)
        serializer.is_valid(raise_exception=True)
        return serializer.validated_data

    @staticmethod
    def _session(user, tokens):
        return {"user": UserSerializer(user).data, **tokens}

    @extend_schema(summary="Register", request=RegisterSerializer, responses={201: UserSerializer})
    @action(detail=False, methods=["post"])
    def register(self, request):
        data = self._validated(RegisterSerializer)
        user, tokens = AuthService.register(data["email"], data["password"], data["name"])
        return APIResponse.created(self._session(user, tokens), message="Registration successful.")

    @extend_schema(summary="Log in", request=LoginSerializer, responses={200: UserSerializer})
    @action(detail=False, methods=["post"])
    def login(self, request):
        data = self._validated(LoginSerializer)
        user, tokens = AuthService.login(data["email"], data["password"])
        return APIResponse.success(self._session(user, tokens), message="Login successful.")

    @extend_schema(summary="Rotate tokens", request=RefreshSerializer, responses={200: UserSerializer})
    @action(detail=False, methods=["post"])
    def refresh(self, request):
        data = self._validated(RefreshSerializer)
        user, tokens = AuthService.refresh(data["refresh_token"])
        return APIResponse.success(self._session(user, tokens), message="Token refreshed.")

    @extend_schema(summary="Log out", request=LogoutSerializer, responses={200: None})
    @action(detail=False, methods=["post"])
    def logout(self, request):
        data = self._validated(LogoutSerializer)
        AuthService.logout(request.user, request.auth, data.get("refresh_token"))
        return APIResponse.success(message="Logged out.")

    @extend_schema(summary="Current user", responses={200: UserSerializer})
    @action(detail=False, methods=["get"])
    def me(self, request):
        return APIResponse.success(UserSerializer(request.user).data, message="Current user.")

    @extend_schema(summary="Update profile", request=ProfileSerializer, responses={200: UserSerializer})
    @action(detail=False, methods=["put", "patch"])
    def profile(self, request):
        data = self._validated(ProfileSerializer)
        user = UserService.update_profile(request.user, name=data.get("name"))
        return APIResponse.success(UserSerializer(user).data, message="Profile updated.")
