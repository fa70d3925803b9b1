"""
Bearer token authentication for the REST API.

Integrations send a PersonalAccessToken issued in the admin:
    Authorization: Bearer <token>
"""

from rest_framework import authentication, exceptions

from apps.scheduling.models import PersonalAccessToken


class PersonalAccessTokenAuthentication(authentication.BaseAuthentication):
    """
    Only the SHA-256 hash of a token is stored, so the incoming value is
    hashed and looked up. Revoked or expired tokens are rejected with 401.
    """

    keyword = "Bearer"

    def authenticate(self, request):
        header = request.META.get("HTTP_AUTHORIZATION", "")
        parts = header.split()
        if len(parts) != 2 or parts[0].lower() != self.keyword.lower():
            # Not ours; let session authentication have a go.
            return None

        token = PersonalAccessToken.authenticate_raw_token(parts[1])
        if token is None:
            raise exceptions.AuthenticationFailed("Invalid or expired token")

        return (token.user, token)

    def authenticate_header(self, request):
        return self.keyword
