import logging
import json
from typing import Any, Optional

REDACTED_FIELDS = ("password", "token")


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger with the appropriate name.

    Args:
        name: Optional specific logger name. If not provided, uses the package logger.

    Returns:
        A logger instance for the specified name
    """
    if name is None:
        return logging.getLogger("omada_controller_api")
    elif name.startswith("omada_controller_api"):
        return logging.getLogger(name)
    else:
        return logging.getLogger(f"omada_controller_api.{name}")


def redact(payload: Any) -> Any:
    """
    Return a copy of a request/response payload with credential fields masked.

    Args:
        payload: Dictionary (possibly nested) about to be logged.

    Returns:
        The same structure with the values of password/token keys replaced.
    """
    if isinstance(payload, dict):
        return {
            k: "***" if k in REDACTED_FIELDS else redact(v)
            for k, v in payload.items()
        }
    if isinstance(payload, list):
        return [redact(item) for item in payload]
    return payload


def log_api_response(
    logger: logging.Logger,
    url: str,
    response_data: Any,
    status_code: int,
    truncate: bool = True,
    max_length: int = 500,
):
    """
    Log API response data using the provided logger.

    Args:
        logger: Logger to use
        url: The API URL that was called.
        response_data: The decoded response envelope.
        status_code: HTTP status code.
        truncate: Whether to truncate large response values. Default is True.
        max_length: Maximum length for response in the log if truncated. Default is 500.
    """
    if not logger.isEnabledFor(logging.DEBUG):
        return
    try:
        response_str = json.dumps(redact(response_data))
        if truncate and len(response_str) > max_length:
            response_str = response_str[:max_length] + "... [truncated]"

        logger.debug(
            f"API Response from {url} (Status: {status_code}):\n{response_str}"
        )
    except (TypeError, ValueError) as e:
        logger.debug(
            f"API Response from {url} (Status: {status_code}) - Error serializing: {e}"
        )
