from functools import wraps
from flask import abort
from flask_jwt_extended import verify_jwt_in_request
from parabellum.services.policy import has_permissions, has_role


def require_permissions(*codes: str):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            if not has_permissions(*codes):
                abort(403, description='Missing permission')
            return fn(*args, **kwargs)
        return wrapper
    return outer


def require_roles(*roles: str):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            if not has_role(roles):
                abort(403, description='Role not allowed')
            return fn(*args, **kwargs)
        return wrapper
    return outer
