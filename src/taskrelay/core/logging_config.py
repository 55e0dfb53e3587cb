"""Centralized logging configuration for taskrelay.

Sets up Python's logging system to write to both stdout and rotating
log files in the configured log directory. Also provides a dedicated
JSONL logger recording every push-channel broadcast.

Log directory structure::

    ~/.taskrelay/.logs/
    ├── taskrelay.log          # All Python logger output (rotating)
    └── broadcasts.log         # One JSON line per broadcast message
"""
from __future__ import annotations

import glob
import json
import logging
import logging.handlers
import os
import time

broadcast_logger = logging.getLogger("taskrelay._broadcasts")


def clear_logs(log_dir: str) -> None:
    """Remove all ``*.log`` files from the log directory.

    Called **before** any handlers are attached so there are no
    open-file conflicts.
    """
    if not os.path.isdir(log_dir):
        return
    for path in glob.glob(os.path.join(log_dir, "*.log*")):
        try:
            os.remove(path)
        except OSError:
            pass


def setup_logging(log_dir: str, log_level: str = "info", *, clear_on_launch: bool = False) -> None:
    """Configure the logging system with both stdout and file handlers.

    Safe to call more than once; handlers are cleared and re-created.
    """
    if clear_on_launch:
        clear_logs(log_dir)

    os.makedirs(log_dir, exist_ok=True)

    level = getattr(logging, log_level.upper(), logging.INFO)

    # ── Root logger: stdout + rotating file ──────────────────
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    fmt = logging.Formatter(
        "%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )

    stdout_handler = logging.StreamHandler()
    stdout_handler.setLevel(level)
    stdout_handler.setFormatter(fmt)
    root.addHandler(stdout_handler)

    file_handler = logging.handlers.RotatingFileHandler(
        os.path.join(log_dir, "taskrelay.log"),
        maxBytes=10 * 1024 * 1024,  # 10 MB
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    # ── Broadcasts logger (JSONL) ────────────────────────────
    _setup_jsonl_logger(
        broadcast_logger,
        os.path.join(log_dir, "broadcasts.log"),
    )

    logging.getLogger("taskrelay").info(
        "Logging initialized: log_dir=%s, level=%s", log_dir, log_level
    )


def _setup_jsonl_logger(logger_instance: logging.Logger, path: str) -> None:
    """Configure a logger to write raw JSONL messages to a rotating file."""
    logger_instance.setLevel(logging.INFO)
    logger_instance.propagate = False
    logger_instance.handlers.clear()

    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=10 * 1024 * 1024,  # 10 MB
        backupCount=5,
        encoding="utf-8",
    )
    # Message is already JSON
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger_instance.addHandler(handler)


def log_broadcast(
    msg_type: str,
    delivered: int,
    connected: int,
    task_ids: list[str] | None = None,
) -> None:
    """Log one broadcast to the dedicated broadcasts log."""
    record: dict = {
        "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "type": msg_type,
        "delivered": delivered,
        "connected": connected,
    }
    if task_ids:
        record["tasks"] = task_ids[:200]
    try:
        broadcast_logger.info(json.dumps(record, default=str))
    except Exception:  # noqa: BLE001
        pass
