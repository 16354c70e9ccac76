from flask import jsonify, request


def envelope(data=None, message=None, status=200):
    """Wrap a payload in the ``{success, message, data}`` envelope."""
    body = {"success": 200 <= status < 400}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return jsonify(body), status


def error_envelope(message, status, error=None):
    body = {"success": False, "message": message}
    if error is not None:
        body["error"] = error
    return jsonify(body), status


def json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}
