# --- storefront/utils/api.py ---
from flask import jsonify, request


def api_ok(message, data=None):
    return {
        "status": True,
        "message": message,
        "data": data if data is not None else {},
    }


def api_error(message, status_code=400, data=None):
    return {
        "status": False,
        "message": message,
        "statusCode": status_code,
        "data": data if data is not None else {},
    }


def ok(msg, data=None, status=200):
    r = jsonify(api_ok(msg, data)); r.status_code = status; return r


def request_payload() -> dict:
    """JSON body, or the form fields of a form / multipart request."""
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict(flat=True)
