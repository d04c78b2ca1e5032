from flask import jsonify

from services.results import ErrorKind

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.SLOT_UNAVAILABLE: 409,
    ErrorKind.ILLEGAL_TRANSITION: 409,
    ErrorKind.DUPLICATE: 409,
    ErrorKind.NOT_ELIGIBLE: 409,
}


def error_response(err):
    """JSON body + status for a core Failure."""
    body = {"error": err.message, "code": err.kind.value}
    if err.details:
        body["details"] = err.details
    return jsonify(body), STATUS_BY_KIND.get(err.kind, 400)
