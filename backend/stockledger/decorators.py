# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .validation import ValidationError, coerce_int


ACTOR_HEADER = "X-Actor-Id"


def require_actor(f):
    """
    Require an authenticated actor id and expose it as g.actor_id.

    Authentication happens upstream (gateway / identity provider), which
    forwards the resolved user id in the X-Actor-Id header. The id is
    attributed to created_by / cancelled_by fields.

    Returns 401 if the header is missing and 400 if it is not an integer.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get(ACTOR_HEADER)
        if not raw:
            return jsonify({"error": "Authentication required"}), 401

        try:
            g.actor_id = coerce_int(raw, ACTOR_HEADER, min_value=1)
        except ValidationError as e:
            return jsonify({"error": "validation_error", "message": str(e)}), 400

        return f(*args, **kwargs)

    return decorated_function


def current_actor_id() -> int | None:
    return getattr(g, "actor_id", None)
