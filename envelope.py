"""
Project: Restaurant POS Service (RPOS)

Description:
Response shaping shared by every handler: the fixed CORS header set, the
{success, data?, error?} JSON envelope, and HandlerError, which handlers
raise to short-circuit with a status code and message.
"""

from flask import Response, jsonify

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}


class HandlerError(Exception):
    def __init__(self, status, message):
        super().__init__(message)
        self.status = status
        self.message = message


def preflight():
    return Response("ok", status=200, headers=CORS_HEADERS)


def _envelope(status, body):
    resp = jsonify(body)
    resp.status_code = status
    resp.headers.update(CORS_HEADERS)
    return resp


def ok(data, status=200):
    return _envelope(status, {"success": True, "data": data})


def fail(status, message):
    return _envelope(status, {"success": False, "error": message})
