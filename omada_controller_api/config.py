"""
Configuration for the Omada poller.

Values come from constructor arguments or, via :meth:`PollerConfig.from_env`,
from ``OMADA_*`` environment variables with optional ``.env`` file support.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv

from .api_client import DEFAULT_REQUEST_TIMEOUT
from .poller import DEFAULT_INTERVAL

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


def _parse_bool(key: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Environment variable {key} must be a boolean, got {value!r}")


@dataclass
class PollerConfig:
    """Connection and scheduling settings for one controller."""
    server: str
    username: str
    password: str = field(repr=False)
    ssl: bool = True
    verify_ssl: Union[bool, str] = True
    interval: float = DEFAULT_INTERVAL
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    log_level: str = "INFO"

    def __post_init__(self):
        if not self.server:
            raise ValueError("server must not be empty")
        if self.interval <= 0:
            raise ValueError("interval must be a positive number of seconds")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be a positive number of seconds")

    @classmethod
    def from_env(cls, env_file: Optional[Union[str, Path]] = None) -> "PollerConfig":
        """
        Load configuration from the environment.

        Args:
            env_file: Optional path to a ``.env`` file. Defaults to ``.env`` in the
                      working directory when it exists. Variables already set in
                      the environment take precedence over the file.

        Returns:
            PollerConfig: The loaded configuration.

        Raises:
            ValueError: If a required variable is missing or a value is invalid.
        """
        env_path = Path(env_file) if env_file else Path(".env")
        if env_path.exists():
            load_dotenv(env_path)

        verify_ssl: Union[bool, str] = True
        raw_verify = os.getenv("OMADA_VERIFY_SSL")
        if raw_verify:
            lowered = raw_verify.strip().lower()
            if lowered in _TRUE_VALUES or lowered in _FALSE_VALUES:
                verify_ssl = _parse_bool("OMADA_VERIFY_SSL", raw_verify)
            else:
                # Path to a CA bundle
                verify_ssl = raw_verify

        return cls(
            server=_get_required_env("OMADA_SERVER"),
            username=_get_required_env("OMADA_USERNAME"),
            password=_get_required_env("OMADA_PASSWORD"),
            ssl=_parse_bool("OMADA_SSL", os.getenv("OMADA_SSL", "true")),
            verify_ssl=verify_ssl,
            interval=float(os.getenv("OMADA_INTERVAL", str(DEFAULT_INTERVAL))),
            request_timeout=float(
                os.getenv("OMADA_REQUEST_TIMEOUT", str(DEFAULT_REQUEST_TIMEOUT))),
            log_level=os.getenv("OMADA_LOG_LEVEL", "INFO").upper(),
        )


def _get_required_env(key: str) -> str:
    value = os.getenv(key)
    if not value:
        raise ValueError(f"Required environment variable {key} is not set")
    return value
