"""Shared helpers for structured operation logging."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from time import perf_counter
from typing import Dict, Generator

from .errors import AgentError


@contextmanager
def log_operation(
    logger: logging.Logger,
    operation: str,
    **context: object,
) -> Generator[Dict[str, object], None, None]:
    """Log one record when ``operation`` completes or fails.

    ``AgentError`` failures log a warning with their detail, anything else a
    traceback. Keys added to the yielded dict land in the completion record.
    """

    start = perf_counter()
    fields: Dict[str, object] = {"operation": operation, **context}

    def finish(status: str, **extra: object) -> Dict[str, object]:
        elapsed = round((perf_counter() - start) * 1000, 3)
        return {**fields, **extra, "status": status, "duration_ms": elapsed}

    try:
        yield fields
    except AgentError as exc:
        logger.warning("%s failed", operation, extra=finish("error", error=str(exc), detail=exc.detail))
        raise
    except Exception as exc:
        logger.exception("%s failed", operation, extra=finish("error", error=str(exc)))
        raise
    logger.info("%s completed", operation, extra=finish("success"))


__all__ = ["log_operation"]
