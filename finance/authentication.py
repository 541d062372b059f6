from rest_framework import exceptions
from rest_framework.authentication import TokenAuthentication


class BearerTokenAuthentication(TokenAuthentication):
    """
    Token authentication reading ``Authorization: Bearer <token>``.

    Tokens are opaque keys bound to a single user; the role is always read
    from the user row so a promotion takes effect on the next request.
    """
    keyword = 'Bearer'

    def authenticate_credentials(self, key):
        user, token = super().authenticate_credentials(key)
        if not user.is_active:
            raise exceptions.AuthenticationFailed('User account is deactivated.')
        return (user, token)
