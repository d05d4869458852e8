import math
from typing import Any, Dict

from flask import current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from engine.errors import BacktestCancelled, EngineError
from marketdata.client import MarketDataError
from persistence.store import JsonStateStore


class BadRequest(EngineError):
    kind = "bad_request"


def error_response(kind: str, message: str, status: int):
    return jsonify({"error": {"kind": kind, "message": message}}), status


def get_store() -> JsonStateStore:
    return JsonStateStore(current_app.config["STATE_DIR"])


def get_feed():
    return current_app.config["MARKET_FEED"]


def read_only_response():
    """403 response when mutations are disabled, else None."""
    if current_app.config.get("READ_ONLY"):
        return error_response("read_only", "Read-only mode: this operation is disabled", 403)
    return None


def json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def int_field(data: Dict[str, Any], name: str, default: int, minimum: int = 1) -> int:
    value = data.get(name, default)
    if (
        isinstance(value, bool)
        or not isinstance(value, (int, float))
        or not math.isfinite(value)
        or int(value) != value
    ):
        raise BadRequest(f"'{name}' must be an integer")
    if value < minimum:
        raise BadRequest(f"'{name}' must be >= {minimum}")
    return int(value)


def float_field(data: Dict[str, Any], name: str, default: float) -> float:
    value = data.get(name, default)
    if (
        isinstance(value, bool)
        or not isinstance(value, (int, float))
        or not math.isfinite(value)
        or value <= 0
    ):
        raise BadRequest(f"'{name}' must be a positive number")
    return float(value)


def register_error_handlers(app) -> None:
    @app.errorhandler(EngineError)
    def _engine_error(e: EngineError):
        status = 409 if isinstance(e, BacktestCancelled) else 400
        return error_response(e.kind, str(e), status)

    @app.errorhandler(MarketDataError)
    def _market_data_error(e: MarketDataError):
        return error_response(e.kind, str(e), 502)

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):
        return error_response("http_error", e.description or e.name, e.code or 500)

    @app.errorhandler(Exception)
    def _unexpected(e: Exception):
        print(f"[app] ERROR unhandled {type(e).__name__}: {e!r}")
        return error_response("internal_error", str(e) or type(e).__name__, 500)
