"""Helper functions for the application."""
import time
from datetime import datetime
from flask import jsonify
from typing import Any, Optional


def now_ms() -> int:
    """Current wall clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def ms_from_iso(value: Optional[str]) -> Optional[int]:
    """Parse an ISO date/datetime string into epoch milliseconds."""
    if not value:
        return None
    return int(datetime.fromisoformat(value).timestamp() * 1000)


def round_half_up(value: float) -> int:
    """Round like JavaScript's Math.round for non-negative values."""
    return int(value + 0.5)


def handle_error(error, status_code: int):
    """Handle application errors with consistent format."""
    return jsonify({
        'error': True,
        'message': str(error),
        'status_code': status_code
    }), status_code


def success_response(data: Any = None, message: str = "Success", status_code: int = 200):
    """Return consistent success response."""
    response = {
        'error': False,
        'message': message
    }

    if data is not None:
        response['data'] = data

    return jsonify(response), status_code


def error_response(message: str, status_code: int = 400):
    """Return consistent error response."""
    return jsonify({
        'error': True,
        'message': message,
        'status_code': status_code
    }), status_code
