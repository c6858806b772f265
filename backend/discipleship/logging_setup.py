"""Logging bootstrap shared by the API and the CLI scripts."""

import json
import logging


def configure_logging(level: str = "INFO") -> None:
    """Apply `basicConfig` once; leave existing handlers alone."""
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
    logging.getLogger("discipleship").setLevel(level)


def log_event(logger: logging.Logger, event: str, payload: dict, level: int = logging.INFO) -> None:
    logger.log(level, "%s %s", event, json.dumps(payload, ensure_ascii=True, default=str))
