"""
Structured JSON logging for lifecycle job observability.

Provides structured logging with trace IDs for correlating logs across
sweep stages, plus a stage timing context manager.
"""

import json
import logging
import sys
import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime

# Context variables for trace correlation
trace_id_var: ContextVar[str | None] = ContextVar("trace_id", default=None)
stage_var: ContextVar[str | None] = ContextVar("stage", default=None)

# Extra record attributes copied into the JSON payload
EXTRA_FIELDS = (
    "event",
    "duration_ms",
    "items_processed",
    "items_failed",
    "listing_id",
    "listing_ids",
    "user_id",
    "account_tier",
    "reason",
    "batch_number",
    "initiated_by",
)


# -----------------------------------------------------------------------------
# JSON Formatter
# -----------------------------------------------------------------------------


class JSONFormatter(logging.Formatter):
    """
    Format log records as single-line JSON for the hosting platform.

    Output format:
    {"timestamp": "...", "level": "INFO", "message": "...", "trace_id": "...", ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        trace_id = trace_id_var.get()
        if trace_id:
            log_data["trace_id"] = trace_id

        stage = stage_var.get()
        if stage:
            log_data["stage"] = stage

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key in EXTRA_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        return json.dumps(log_data, default=str)


def configure_logging(json_format: bool = True, level: str = "INFO") -> None:
    """
    Configure root logging.

    Args:
        json_format: If True, use JSON format. If False, use human-readable format.
        level: Log level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level.upper()))

    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))

    root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)


def new_trace_id() -> str:
    """Start a new trace for the current execution context and return its id."""
    trace_id = uuid.uuid4().hex
    trace_id_var.set(trace_id)
    return trace_id


# -----------------------------------------------------------------------------
# Context Managers
# -----------------------------------------------------------------------------


@contextmanager
def log_stage(stage: str, trace_id: str | None = None):
    """
    Context manager for stage-level logging.

    Logs stage start and end with duration, automatically tracks timing.

    Usage:
        with log_stage("load_active", trace_id=trace_id):
            listings = store.fetch_active_listings()
    """
    if trace_id:
        trace_id_var.set(trace_id)
    stage_var.set(stage)

    start_time = time.time()
    logger = logging.getLogger("lifecycle")

    logger.info(f"Stage {stage} started", extra={"event": "stage_start"})

    try:
        yield
        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Stage {stage} completed",
            extra={"event": "stage_complete", "duration_ms": duration_ms},
        )
    except Exception as e:
        duration_ms = int((time.time() - start_time) * 1000)
        logger.error(
            f"Stage {stage} failed: {e}",
            extra={"event": "stage_failed", "duration_ms": duration_ms},
            exc_info=True,
        )
        raise
    finally:
        stage_var.set(None)
