"""View guards keyed on the society role of the logged-in household."""
from functools import wraps

from flask import abort, current_app, request
from flask_login import current_user, login_required


def roles_required(*roles):
    """Allow the view only for the given roles (RESIDENT, ADMIN, SUPER_ADMIN); others get 403."""
    allowed = frozenset(role.upper() for role in roles)

    def decorator(view_func):
        @wraps(view_func)
        @login_required
        def guarded(*args, **kwargs):
            if current_user.role not in allowed:
                current_app.logger.warning(
                    "Role check failed",
                    extra={
                        "house_number": current_user.house_number,
                        "role": current_user.role,
                        "required": sorted(allowed),
                        "path": request.path,
                    },
                )
                abort(403)
            return view_func(*args, **kwargs)

        return guarded

    return decorator
