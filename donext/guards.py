"""Request guard shared by every API handler.

``api_route`` resolves the caller from the session, parses the request
against a schema and passes both to the view. Errors raised anywhere in
the view bubble up to the ``AppError`` handler registered in ``create_app``.
"""

from __future__ import annotations

from functools import wraps

from flask import jsonify, request

from donext.auth import current_user
from donext.errors import ValidationError
from donext.models import db
from donext.schemas import parse


def json_body() -> dict:
    if not request.data:
        return {}
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def query_args() -> dict:
    return request.args.to_dict()


def api_route(schema=None, source="json"):
    """Wrap a view as ``view(user, *args, payload=..., **kwargs)``."""

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            user = current_user(db.session)
            if schema is not None:
                data = query_args() if source == "query" else json_body()
                kwargs["payload"] = parse(schema, data)
            return view(user, *args, **kwargs)

        return wrapper

    return decorator


def respond(status=200, **payload):
    return jsonify({"success": True, **payload}), status


def int_arg(name: str, default: int | None = None, required: bool = False) -> int | None:
    raw = request.args.get(name)
    if raw is None or raw == "":
        if required:
            raise ValidationError(f"{name} is required")
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")
