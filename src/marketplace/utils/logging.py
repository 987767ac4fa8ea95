"""Logging setup for the marketplace.

Records go through the standard library (console, plus rotating files when
``log_dir`` is set) and are rendered by structlog: JSON in production and
staging, a coloured console with rich tracebacks elsewhere.
"""

import logging
import logging.handlers
import sys
from pathlib import Path

import structlog

_LEVELS = {
    "production": "INFO",
    "staging": "INFO",
    "development": "DEBUG",
    "test": "WARNING",
}

_MAX_BYTES = 10 * 1024 * 1024

# Third-party loggers that drown out request-level logs
_QUIET = ("protean", "urllib3", "asyncio", "httpx")


def level_for(environment: str, override: str | None = None) -> str:
    return (override or _LEVELS.get(environment.lower(), "INFO")).upper()


def _rotating(path: Path, level) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(path, maxBytes=_MAX_BYTES, backupCount=5, encoding="utf-8")
    handler.setLevel(level)
    return handler


def _install_handlers(level: str, log_dir: str | None) -> None:
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [logging.StreamHandler(sys.stdout)]

    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        root.addHandler(_rotating(path / "marketplace.log", level))
        root.addHandler(_rotating(path / "marketplace_error.log", logging.ERROR))

    for name in _QUIET:
        logging.getLogger(name).setLevel(logging.WARNING)


def _renderer(environment: str):
    if environment in ("production", "staging"):
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=True,
        exception_formatter=structlog.dev.RichTracebackFormatter(show_locals=False, max_frames=4),
    )


def configure_logging(environment: str, level: str | None = None, log_dir: str | None = "logs") -> None:
    """Configure stdlib handlers and structlog for ``environment``."""
    environment = environment.lower()
    _install_handlers(level_for(environment, level), log_dir)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.CallsiteParameterAdder(
                parameters=[
                    structlog.processors.CallsiteParameter.MODULE,
                    structlog.processors.CallsiteParameter.LINENO,
                ]
            ),
            _renderer(environment),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_request(**context) -> None:
    """Attach request-scoped values (request id, path, actor) to every log line."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**context)


def clear_request() -> None:
    structlog.contextvars.clear_contextvars()
