"""
Error taxonomy and JSON error handlers.

Every failure leaves the API as {"ok": false, "error": <message>} with an
optional "detail" (upstream body for LLM failures).
"""
from typing import Any, Optional

from flask import jsonify, request
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge


class ApiError(Exception):
    status_code = 500
    message = "Internal Server Error"

    def __init__(self, message: Optional[str] = None, detail: Any = None):
        super().__init__(message or self.message)
        if message:
            self.message = message
        self.detail = detail

    def to_dict(self):
        payload = {"ok": False, "error": self.message}
        if self.detail is not None:
            payload["detail"] = self.detail
        return payload


class BadRequest(ApiError):
    status_code = 400
    message = "Bad request"


class Unauthorized(ApiError):
    status_code = 401
    message = "Unauthorized"


class Forbidden(ApiError):
    status_code = 403
    message = "Forbidden"


class NotFound(ApiError):
    status_code = 404
    message = "Not found"


class Conflict(ApiError):
    status_code = 409
    message = "Conflict"


# ============ Extraction ============

class ExtractionError(ApiError):
    """Base for every failure that rejects an uploaded file."""
    status_code = 422
    message = "Unable to extract text from the provided file"


class UnsupportedFormat(ExtractionError):
    status_code = 415
    message = "Unsupported file type"


class ImageContentRejected(ExtractionError):
    message = "PDF contains images which are not allowed"


class NoExtractableText(ExtractionError):
    message = "PDF appears to be scanned or contains no extractable text"


class ExtractionIOError(ExtractionError):
    message = "Unable to extract text from the provided file"


# ============ Upstream LLM ============

class UpstreamUnavailable(ApiError):
    status_code = 500
    message = "LLM API key not configured"


class UpstreamError(ApiError):
    status_code = 502
    message = "LLM API error"

    def __init__(self, message: Optional[str] = None, detail: Any = None, upstream_status: Optional[int] = None):
        super().__init__(message, detail)
        self.upstream_status = upstream_status


def json_object(message: str = "Request body must be a JSON object") -> dict:
    """Parsed JSON body; missing or malformed bodies read as {}."""
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise BadRequest(message)
    return payload


def register_error_handlers(app):
    """Render ApiError and werkzeug HTTP errors as JSON."""

    @app.errorhandler(ApiError)
    def handle_api_error(err: ApiError):
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(err):
        limit_mb = (app.config.get("MAX_CONTENT_LENGTH") or 0) // (1024 * 1024)
        app.logger.warning("upload:rejected reason=too_large limit_mb=%d", limit_mb)
        return jsonify({"ok": False, "error": f"File too large (max {limit_mb}MB)"}), 413

    @app.errorhandler(HTTPException)
    def handle_http_error(err: HTTPException):
        return jsonify({"ok": False, "error": err.description or err.name}), err.code
