"""structlog setup shared by the CLI commands and the slash-command server."""

import logging
import sys
from typing import TextIO

import structlog


def configure_logging(
    level: int = logging.INFO,
    output: TextIO = sys.stderr,
    json_format: bool = True,
) -> None:
    """Route structlog and stdlib logging to ``output``.

    Logs go to stderr by default so command output on stdout (pass
    summaries, history tables, ``--json`` documents) stays machine-readable.
    ``json_format=False`` switches to the colored console renderer used by
    the interactive commands.
    """
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if json_format:
        processors.append(structlog.processors.JSONRenderer(sort_keys=True))
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=output),
        cache_logger_on_first_use=True,
    )

    # httpx and uvicorn log through the standard library
    logging.basicConfig(format="%(message)s", stream=output, level=level)


def bind_pass_context(pass_id: str) -> None:
    """Tag every log line emitted during a reconciliation pass."""
    structlog.contextvars.bind_contextvars(pass_id=pass_id)


def clear_pass_context() -> None:
    structlog.contextvars.unbind_contextvars("pass_id")
