# Overview: Authentication and role decorators for API routes.

from functools import wraps

from flask import current_app, request

from .errors import Unauthorized
from .models import Role
from .services import access_service

CLAIMS_KWARG = "claims"


def require_auth(f):
    """
    Require a valid bearer token.

    The resolved IdentityClaims are handed to the view as the keyword
    argument `claims`; nothing is stored on flask.g. Raises Unauthorized
    (401) before the view runs when the header is missing or malformed or
    the token does not validate.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = access_service.extract_bearer_token(request.headers.get("Authorization"))
        kwargs[CLAIMS_KWARG] = access_service.authorize(token, current_app.config["JWT_SECRET"])
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: Role):
    """
    Require the authenticated caller to hold one of `roles`.

    Stack below @require_auth so the claims are already resolved.
    """
    allowed = frozenset(Role.parse(r) for r in roles)

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            claims = kwargs.get(CLAIMS_KWARG)
            if claims is None:
                raise Unauthorized("require_role used without require_auth")
            access_service.authorize_role(claims, allowed)
            return f(*args, **kwargs)

        return decorated_function
    return decorator


ALL_ROLES = (Role.ADMIN, Role.MANAGER, Role.VIEWER)
EDITOR_ROLES = (Role.ADMIN, Role.MANAGER)
ADMIN_ONLY = (Role.ADMIN,)
