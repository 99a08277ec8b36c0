import math

from flask import jsonify, request

from .errors import InvalidInputError


def api_success(data=None, meta=None, status=200):
    body = {"success": True, "data": data if data is not None else {}, "meta": meta or {}}
    return jsonify(body), status


def api_error(code="error", message="", status=400):
    body = {"success": False, "error": {"code": code, "message": message}}
    return jsonify(body), status


def request_payload():
    """JSON body if sent, else form fields."""
    if request.is_json:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise InvalidInputError("Request body must be a JSON object.")
        return data
    return request.form.to_dict()


def parse_float(payload, key, required=True, default=None):
    raw = payload.get(key)
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        if required:
            raise InvalidInputError(f"'{key}' is required.")
        return default
    if isinstance(raw, bool):
        raise InvalidInputError(f"'{key}' must be a number.")
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise InvalidInputError(f"'{key}' must be a number.")
    if not math.isfinite(value):
        raise InvalidInputError(f"'{key}' must be a finite number.")
    return value


def parse_int(payload, key, required=True, default=None):
    raw = payload.get(key)
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        if required:
            raise InvalidInputError(f"'{key}' is required.")
        return default
    if isinstance(raw, bool):
        raise InvalidInputError(f"'{key}' must be an integer.")
    try:
        return int(raw)
    except (TypeError, ValueError, OverflowError):
        raise InvalidInputError(f"'{key}' must be an integer.")


def parse_text(payload, key, required=True):
    raw = payload.get(key)
    value = raw.strip() if isinstance(raw, str) else None
    if not value:
        if required:
            raise InvalidInputError(f"'{key}' is required.")
        return None
    return value
