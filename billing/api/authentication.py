"""Bearer-token authentication for the REST API."""

import logging

from rest_framework import exceptions
from rest_framework.authentication import BaseAuthentication, get_authorization_header

from billing.services.auth_service import AuthService
from billing.validation import AuthenticationError

logger = logging.getLogger(__name__)


class JWTAuthentication(BaseAuthentication):
    """
    ``Authorization: Bearer <token>`` with an access JWT.

    ``request.auth`` is the decoded payload so logout can revoke it.
    """

    keyword = "Bearer"

    def authenticate(self, request):
        auth = get_authorization_header(request).split()
        if not auth or auth[0].lower() != self.keyword.lower().encode():
            return None

        if len(auth) != 2:
            raise exceptions.AuthenticationFailed(
                "Invalid Authorization header. Expected 'Bearer <token>'.", code="TOKEN_INVALID"
            )

        try:
            token = auth[1].decode()
        except UnicodeError:
            raise exceptions.AuthenticationFailed("Invalid token encoding.", code="TOKEN_INVALID")

        try:
            payload = AuthService.decode(token)
            user = AuthService.user_for_payload(payload)
        except AuthenticationError as e:
            raise exceptions.AuthenticationFailed(e.message, code=e.code)

        return user, payload

    def authenticate_header(self, request):
        return self.keyword
