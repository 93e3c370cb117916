"""Loguru setup plus structured log lines for model calls, agent slots and storage."""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from app.config import settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"

# Chatty third-party loggers, held at settings.noisy_log_level
QUIET_LOGGERS = (
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "fastapi",
    "sse_starlette.sse",
    "httpx",
    "httpcore",
    "openai._base_client",
    "postgrest",
    "asyncio",
)

_configured = False


def configure_logging(level: str | None = None, log_dir: str | None = None) -> None:
    """Install the console and daily-rotated file sinks once per process."""
    global _configured
    if _configured:
        return

    directory = Path(log_dir or settings.log_dir)
    directory.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        level=(level or settings.app_log_level).upper(),
        colorize=True,
    )
    logger.add(
        directory / "reviewpanel_{time:YYYY-MM-DD}.log",
        format=FILE_FORMAT,
        level="DEBUG",
        rotation="00:00",
        retention="7 days",
        compression="zip",
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(settings.noisy_log_level.upper())
    _configured = True


configure_logging()


def _emit(tag: str, level: str, **fields: Any) -> None:
    record = {"timestamp": datetime.now(timezone.utc).isoformat(), **fields}
    logger.opt(depth=2).log(level, f"{tag}: {record}")


def log_llm_call(
    model: str,
    caller: str,
    input_tokens: int = 0,
    output_tokens: int = 0,
    duration_ms: int = 0,
    status: str = "success",
    error: Optional[str] = None,
) -> None:
    """One line per gateway call; ``status`` is success, mock or error."""
    _emit(
        "LLM_CALL_FAILED" if error else "LLM_CALL",
        "ERROR" if error else "INFO",
        model=model,
        caller=caller,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        total_tokens=input_tokens + output_tokens,
        duration_ms=duration_ms,
        status=status,
        error=error,
    )


def log_agent_transition(
    project_id: str,
    role: str,
    status: str,
    error: Optional[str] = None,
) -> None:
    level = "WARNING" if status == "ERROR" else "INFO"
    _emit("AGENT_TRANSITION", level, project_id=project_id, role=role, status=status, error=error)


def log_db_operation(
    operation: str,
    table: str,
    status: str,
    details: Optional[str] = None,
    error: Optional[str] = None,
) -> None:
    """Store writes are best-effort, so failures surface as warnings only."""
    _emit(
        "DB_OPERATION_FAILED" if error else "DB_OPERATION",
        "WARNING" if error else "DEBUG",
        operation=operation,
        table=table,
        status=status,
        details=details,
        error=error,
    )


def log_event(event_type: str, message: str, **kwargs) -> None:
    _emit("EVENT", "INFO", event_type=event_type, message=message, **kwargs)
