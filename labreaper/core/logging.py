"""Structured logging with JSON support, run IDs and the per-run audit log."""
import json
import logging
import uuid
import functools
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

SUCCESS = 25
logging.addLevelName(SUCCESS, 'SUCCESS')

AUDIT_LOGGER = 'labreaper.audit'
AUDIT_FORMAT = '[%(asctime)s] [%(levelname)s] %(message)s'

_RUN_ID: Optional[str] = None
_FACTORY_INSTALLED = False


def get_run_id() -> str:
    """Get or create the current run ID."""
    global _RUN_ID
    if _RUN_ID is None:
        _RUN_ID = str(uuid.uuid4())[:8]
    return _RUN_ID


def get_audit_logger() -> logging.Logger:
    """Logger whose records only go to the audit file, never to the console."""
    logger = logging.getLogger(AUDIT_LOGGER)
    logger.propagate = False
    return logger


class JSONFormatter(logging.Formatter):
    """JSON log formatter with structured fields."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "run_id": get_run_id(),
            "message": record.getMessage(),
        }
        for key in ("region", "resource_type", "resource_id", "action"):
            if hasattr(record, key):
                log_entry[key] = getattr(record, key)
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def _install_record_factory() -> None:
    global _FACTORY_INSTALLED
    if _FACTORY_INSTALLED:
        return
    old_factory = logging.getLogRecordFactory()

    def record_factory(*args, **kwargs):
        record = old_factory(*args, **kwargs)
        record.run_id = get_run_id()
        return record
    logging.setLogRecordFactory(record_factory)
    _FACTORY_INSTALLED = True


def setup_logging(verbosity: int = 0, json_format: bool = False,
                  log_file: Optional[Path] = None) -> Optional[logging.Handler]:
    """Configure console logging and, if ``log_file`` is given, the audit log.

    Args:
        verbosity: 0=WARNING, 1=INFO, 2=DEBUG on the console
        json_format: Use JSON formatter on the console if True
        log_file: Append-only audit log; receives every record at DEBUG

    Returns:
        The audit file handler, or None when no log file was requested
    """
    level = {0: logging.WARNING, 1: logging.INFO}.get(verbosity, logging.DEBUG)
    _install_record_factory()

    console = logging.StreamHandler()
    console.setLevel(level)
    if json_format:
        console.setFormatter(JSONFormatter())
    else:
        console.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)s] [%(run_id)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    root.setLevel(logging.DEBUG)
    # boto internals are noisy at DEBUG
    for name in ('botocore', 'boto3', 'urllib3'):
        logging.getLogger(name).setLevel(logging.WARNING)

    audit = get_audit_logger()
    audit.handlers.clear()
    audit.setLevel(logging.DEBUG)

    if log_file is None:
        return None

    log_file = Path(log_file)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(AUDIT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(file_handler)
    audit.addHandler(file_handler)
    return file_handler


def timed(func):
    """Decorator to log function execution time."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start = time.time()
        result = func(*args, **kwargs)
        elapsed = time.time() - start
        logging.info(f"{func.__name__} took {elapsed:.2f}s")
        return result
    return wrapper
