"""Structured JSON logging for notarization runs.

Records are pushed through a bounded queue and rendered on a background
listener so that ledger coroutines never block on stream I/O.
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from queue import Full, Queue
from typing import Iterable
from uuid import uuid4

if sys.version_info >= (3, 12):
    from typing import override
else:
    from typing_extensions import override

__all__ = [
    "BoundedQueueHandler",
    "JsonFormatter",
    "REDACTED",
    "configure_structured_logging",
    "shutdown_listeners",
]

LOGGER = logging.getLogger(__name__)

REDACTED = "[redacted]"

_STRUCTURED_RESERVED_KEYS: frozenset[str] = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "message",
    }
)

# Context keys whose values must never reach a log sink.
_SECRET_KEYS: frozenset[str] = frozenset(
    {
        "private_key",
        "private_key_b64",
        "recovery_phrase",
        "mnemonic",
        "signer_mnemonic",
        "journal_key_hex",
        "algod_token",
        "indexer_token",
    }
)


class JsonFormatter(logging.Formatter):
    """Render log records as JSON with contextual metadata.

    Values passed through ``extra`` land in a ``context`` object; keys naming
    key material or API tokens are replaced with :data:`REDACTED`.
    """

    def __init__(self, *, default_run_id: str | None = None) -> None:
        super().__init__()
        self._default_run_id = default_run_id

    @override
    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        run_id = getattr(record, "run_id", None) or self._default_run_id

        exception_text: str | None = None
        if record.exc_info:
            exception_text = self.formatException(record.exc_info)
        elif record.exc_text:
            exception_text = record.exc_text

        context: dict[str, object] = {}
        for key, value in record.__dict__.items():
            if key in _STRUCTURED_RESERVED_KEYS or key == "run_id":
                continue
            context[key] = REDACTED if key in _SECRET_KEYS else value

        payload: dict[str, object] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": message,
            "run_id": run_id,
            "context": context,
        }
        if exception_text:
            payload["exception"] = exception_text

        return json.dumps(payload, default=str)


class BoundedQueueHandler(logging.handlers.QueueHandler):
    """Queue handler that drops records when the queue is full."""

    @override
    def enqueue(self, record: logging.LogRecord) -> None:
        try:
            self.queue.put_nowait(record)
        except Full:
            self.handleError(record)

    @override
    def handleError(self, record: logging.LogRecord) -> None:
        """Drop the record when the queue is full."""

        return


def configure_structured_logging(
    logger: logging.Logger,
    *,
    run_id: str | None = None,
    level: int = logging.INFO,
    queue_size: int = 1024,
) -> logging.handlers.QueueListener:
    """Attach a queued JSON stream handler to ``logger``.

    Args:
        logger: Target logger, usually the ``docnotary`` package logger.
        run_id: Identifier stamped on every record that does not carry its
            own ``run_id``. A random UUID is used when omitted.
        level: Logging verbosity level.
        queue_size: Capacity of the record queue; overflow is dropped.

    Returns:
        The started queue listener. Pass it to :func:`shutdown_listeners`
        before the process exits so buffered records are flushed.
    """

    logger.setLevel(level)
    effective_run_id = run_id or str(uuid4())

    record_queue: Queue[logging.LogRecord] = Queue(maxsize=queue_size)
    logger.addHandler(BoundedQueueHandler(record_queue))

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(JsonFormatter(default_run_id=effective_run_id))

    listener = logging.handlers.QueueListener(record_queue, stream_handler)
    listener.start()
    return listener


def shutdown_listeners(listeners: Iterable[logging.handlers.QueueListener]) -> None:
    """Stop queue listeners, logging rather than raising on failure."""

    for listener in listeners:
        try:
            listener.stop()
        except Exception as exc:  # pragma: no cover - listener already stopped
            LOGGER.warning("Failed to stop logging listener", exc_info=exc)
