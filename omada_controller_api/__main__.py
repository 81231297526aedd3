"""
Command line entry point: ``omada-poller`` / ``python -m omada_controller_api``.

Polls the controller and writes every event to standard output as one JSON
document per line. Settings come from ``OMADA_*`` environment variables (or a
``.env`` file) and can be overridden by options.
"""

import argparse
import logging
import signal
import sys
from typing import List, Optional

from .api_client import OmadaController
from .config import PollerConfig
from .export import JsonLinesSink
from .logging import get_logger
from .poller import OmadaPoller

logger = get_logger(__name__)


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="omada-poller",
        description="Poll an Omada SDN controller and emit events as JSON lines.",
    )
    parser.add_argument("--server", help="Controller host[:port] (OMADA_SERVER)")
    parser.add_argument("--username", help="Controller username (OMADA_USERNAME)")
    parser.add_argument("--interval", type=float, help="Seconds between sweeps (OMADA_INTERVAL)")
    parser.add_argument(
        "--no-ssl", action="store_true", help="Use plain HTTP instead of HTTPS")
    parser.add_argument(
        "--insecure", action="store_true", help="Do not verify the controller's TLS certificate")
    parser.add_argument("--env-file", help="Path to a .env file (default: ./.env)")
    parser.add_argument(
        "--once", action="store_true", help="Run a single sweep and exit")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (OMADA_LOG_LEVEL, default INFO)",
    )
    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> PollerConfig:
    """Merge command line overrides on top of the environment configuration."""
    config = PollerConfig.from_env(args.env_file)
    if args.server:
        config.server = args.server
    if args.username:
        config.username = args.username
    if args.interval is not None:
        config.interval = args.interval
    if args.no_ssl:
        config.ssl = False
    if args.insecure:
        config.verify_ssl = False
    if args.log_level:
        config.log_level = args.log_level
    # Re-run validation after overrides
    config.__post_init__()
    return config


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_arguments(argv)
    try:
        config = load_config(args)
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        stream=sys.stderr,
    )

    logger.info(f"Connecting to Omada API at {config.server}")
    with OmadaController(
        config.server,
        config.username,
        config.password,
        ssl=config.ssl,
        verify_ssl=config.verify_ssl,
        request_timeout=config.request_timeout,
    ) as controller:
        poller = OmadaPoller(controller, JsonLinesSink(), interval=config.interval)

        if args.once:
            poller.run_sweep()
            return 0

        def _handle_signal(signum, frame):
            logger.info(f"Received {signal.Signals(signum).name}, shutting down")
            poller.stop()

        signal.signal(signal.SIGINT, _handle_signal)
        signal.signal(signal.SIGTERM, _handle_signal)

        poller.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
