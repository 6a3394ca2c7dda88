from __future__ import annotations

import os
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator

from loguru import logger as _logger

LOG_DIR_ENV = "APP_LOG_DIR"
LOG_LEVEL_ENV = "APP_LOG_LEVEL"
LOG_FILE_PATTERN = "pr-line-counter-{time:YYYY-MM-DD}.log"

_state: Dict[str, bool] = {"configured": False}


def render_context(extra: Dict[str, Any]) -> str:
    """Render bound context as sorted ``key=value`` pairs."""

    return " ".join(f"{key}={value}" for key, value in sorted(extra.items()))


def _format_record(record: Dict[str, Any]) -> str:
    context = render_context(record["extra"]).replace("{", "{{").replace("}", "}}")
    line = "{time:HH:mm:ss.SSS} {level.name:<7} [{module}] {message}"
    if context:
        line += f" | {context}"
    return line + "\n{exception}"


def configure_logger(*, log_dir: str | Path | None = None, level: str | None = None) -> None:
    """Install the stdout sink, plus a daily file sink when a log directory is known.

    Configuration happens once per process; later calls are no-ops.
    """

    if _state["configured"]:
        return

    _logger.remove()
    _logger.add(
        sys.stdout,
        level=(level or os.getenv(LOG_LEVEL_ENV) or "INFO").upper(),
        format=_format_record,
        colorize=False,
    )

    directory = log_dir if log_dir is not None else os.getenv(LOG_DIR_ENV)
    if directory:
        path = Path(directory).expanduser().resolve()
        path.mkdir(parents=True, exist_ok=True)
        _logger.add(
            path / LOG_FILE_PATTERN,
            level="DEBUG",
            format=_format_record,
            rotation="50 MB",
            retention="10 days",
            enqueue=True,
            diagnose=False,
        )

    _state["configured"] = True


def get_logger(*, log_dir: str | Path | None = None, level: str | None = None):
    configure_logger(log_dir=log_dir, level=level)
    return _logger


def log_with_context(logger_instance, **context: Any) -> Any:
    """Bind the non-empty context fields (delivery_id, repository, pull_number, ...)."""
    return logger_instance.bind(**{k: v for k, v in context.items() if v is not None})


@contextmanager
def log_timing(logger_instance, operation: str, **context: Any) -> Iterator[Any]:
    """Time a pipeline step; the bound logger is yielded to the block.

        with log_timing(logger, "fetch_changed_files", repository="acme/widgets") as step_logger:
            ...
    """
    step_logger = log_with_context(logger_instance, step=operation, **context)
    started = time.perf_counter()
    step_logger.debug("step started")
    try:
        yield step_logger
    except Exception as exc:
        step_logger.warning(f"step failed after {time.perf_counter() - started:.3f}s ({type(exc).__name__})")
        raise
    step_logger.debug(f"step finished in {time.perf_counter() - started:.3f}s")


def log_success(logger_instance, message: str, **context: Any) -> None:
    log_with_context(logger_instance, **context).success(message)


def log_failure(logger_instance, message: str, error: Exception | None = None, **context: Any) -> None:
    ctx_logger = log_with_context(logger_instance, **context)
    if error is None:
        ctx_logger.error(message)
        return
    ctx_logger.bind(error_type=type(error).__name__).error(f"{message}: {error}")
