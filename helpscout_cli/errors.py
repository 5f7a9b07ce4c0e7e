"""Error types and the JSON error envelope printed on failure."""

from __future__ import annotations

import re
from typing import Any, Dict, List, NoReturn, Optional

from helpscout_cli.output import OutputOptions, emit

REDACTED = "[REDACTED]"
MAX_DETAIL_LENGTH = 500
RATE_LIMIT_HINT = "Help Scout API limit: 200 requests/minute. Wait a moment and retry."

ERROR_STATUS_CODES: Dict[str, int] = {
    "bad_request": 400,
    "unauthorized": 401,
    "forbidden": 403,
    "not_found": 404,
    "conflict": 409,
    "too_many_requests": 429,
    "internal_server_error": 500,
    "service_unavailable": 503,
}

_SENSITIVE_PATTERNS = [
    re.compile(r"authorization:\s*bearer\s+[\w\-._~+/]+=*", re.IGNORECASE),
    re.compile(r"Bearer\s+[\w\-._~+/]+=*", re.IGNORECASE),
    re.compile(r"client[_-]?secret[=:]\s*[\w\-._~+/]+=*", re.IGNORECASE),
    re.compile(r"token[=:]\s*[\w\-._~+/]+=*", re.IGNORECASE),
]


class HelpScoutError(Exception):
    pass


class CliError(HelpScoutError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ConfigurationError(CliError):
    def __init__(self, message: str = "Not configured. Please run: helpscout auth login"):
        super().__init__(message, 401)


class ValidationError(CliError):
    def __init__(self, message: str):
        super().__init__(message, 400)


class NetworkError(CliError):
    def __init__(self, message: str):
        super().__init__(message, 0)


class ApiError(HelpScoutError):
    """Non-2xx response from Help Scout; carries the parsed error body."""

    def __init__(self, message: str, api_error: Any, status_code: int):
        super().__init__(message)
        self.message = message
        self.api_error = api_error
        self.status_code = status_code


def sanitize_error_message(message: str) -> str:
    sanitized = message
    for pattern in _SENSITIVE_PATTERNS:
        sanitized = pattern.sub(REDACTED, sanitized)
    if len(sanitized) > MAX_DETAIL_LENGTH:
        return sanitized[:MAX_DETAIL_LENGTH] + "..."
    return sanitized


def sanitize_api_error(api_error: Any) -> Dict[str, str]:
    """Pull a ``name``/``detail`` pair out of a Help Scout error body.

    OAuth errors carry ``error``/``error_description``; resource errors
    carry ``message`` and, for validation failures, a list under
    ``_embedded.errors``.
    """
    if not isinstance(api_error, dict):
        return {"name": "api_error", "detail": "An error occurred"}

    detail = "An error occurred"
    embedded = api_error.get("_embedded")
    errors: List[Any] = (embedded.get("errors") or []) if isinstance(embedded, dict) else []
    if api_error.get("error_description"):
        detail = str(api_error["error_description"])
    elif api_error.get("message"):
        detail = str(api_error["message"])
    elif isinstance(errors, list) and errors:
        parts = []
        for item in errors:
            if not isinstance(item, dict):
                continue
            part = item.get("message") or item.get("path")
            if part:
                parts.append(str(part))
        if parts:
            detail = "; ".join(parts)

    return {
        "name": str(api_error.get("error") or "api_error"),
        "detail": sanitize_error_message(detail),
    }


def build_error_envelope(name: str, detail: str, status_code: int) -> Dict[str, Any]:
    envelope: Dict[str, Any] = {"error": {"name": name, "detail": detail, "statusCode": status_code}}
    if name == "too_many_requests":
        envelope["hint"] = RATE_LIMIT_HINT
    return envelope


def classify_error(exc: BaseException) -> Dict[str, Any]:
    if isinstance(exc, CliError):
        return build_error_envelope("cli_error", sanitize_error_message(exc.message), exc.status_code or 1)
    if isinstance(exc, ApiError):
        info = sanitize_api_error(exc.api_error)
        status = exc.status_code or ERROR_STATUS_CODES.get(info["name"]) or 500
        return build_error_envelope(info["name"], info["detail"], status)
    message = str(exc) or "An unexpected error occurred"
    return build_error_envelope("unknown_error", sanitize_error_message(message), 1)


def handle_error(exc: BaseException, options: Any = None) -> NoReturn:
    """Print the error envelope on stdout and exit with status 1. Never returns."""
    # Error envelopes skip the field/format options; they must stay readable JSON.
    compact = bool(getattr(options, "compact", False))
    emit(classify_error(exc), OutputOptions(compact=compact, slim=False))
    raise SystemExit(1)
