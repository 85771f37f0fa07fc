"""
powledger - Main Entry Point

Runs a ledger node until SIGINT or SIGTERM, then flushes the chain one
last time and exits.

Usage:
    powledger --config config/default.yaml
    powledger --difficulty 12 --storage-path ./blocks --log-level DEBUG
"""

import argparse
import logging
import signal
import threading
from typing import List, Optional

from .config import LedgerConfig
from .exceptions import ConfigError, LedgerError
from .integration.node import LedgerNode


logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for the process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="powledger", description="Proof-of-work ledger node")
    parser.add_argument("--config", "-c", type=str, help="Path to YAML config file")
    parser.add_argument("--difficulty", "-d", type=int, help="Leading zero bits required (1-256)")
    parser.add_argument("--storage-path", type=str, help="Block storage directory")
    parser.add_argument("--flush-interval", type=float, help="Seconds between background flushes")
    parser.add_argument("--workers", type=int, help="Mining threads (default: one per CPU)")
    parser.add_argument("--log-level", type=str, help="Log level (default: INFO)")
    parser.add_argument("--no-extend", action="store_true",
                        help="Do not mine a new block at startup")
    return parser


def load_config(args: argparse.Namespace) -> LedgerConfig:
    """Merge the config file (if any) with command-line overrides."""
    return LedgerConfig.load(args.config, overrides={
        'difficulty': args.difficulty,
        'storage_path': args.storage_path,
        'flush_interval': args.flush_interval,
        'workers': args.workers,
        'log_level': args.log_level,
    })


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for powledger."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args)
    except ConfigError as e:
        configure_logging()
        logger.error("%s", e)
        return 2

    configure_logging(config.log_level)

    node = LedgerNode(config)
    try:
        node.start(extend=not args.no_extend)
    except LedgerError as e:
        logger.error("Startup failed: %s", e)
        return 1

    shutdown_event = threading.Event()

    def signal_handler(signum, frame):
        logger.info("Received signal %d", signum)
        shutdown_event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    logger.info("Node running, press Ctrl+C to stop")
    shutdown_event.wait()

    return 0 if node.stop() else 1


if __name__ == "__main__":
    raise SystemExit(main())
