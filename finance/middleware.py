from django.utils.deprecation import MiddlewareMixin


class AddUserRoleMiddleware(MiddlewareMixin):
    """
    Middleware to stamp the authenticated caller's role on API responses.
    DRF copies the token-authenticated user back onto the Django request,
    so the role is visible here even without a session.
    """

    def process_response(self, request, response):
        user = getattr(request, 'user', None)
        if user is not None and user.is_authenticated and request.path.startswith('/api/'):
            response['X-User-Role'] = user.role
        return response
