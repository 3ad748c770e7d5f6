import logging
import sys
import contextvars
import uuid
from typing import Optional

# Context variable to carry the current request id across a call and its nested token grant
_REQUEST_ID: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="-")

TRANSPORT_LOGGERS = ("httpx", "httpcore")


class _RequestFilter(logging.Filter):
    """Logging filter that injects the request_id from contextvars into the record."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        record.request_id = _REQUEST_ID.get()
        return True


class _StderrHandler(logging.StreamHandler):
    """StreamHandler bound to whatever sys.stderr is at emit time."""

    def __init__(self) -> None:
        super().__init__(sys.stderr)

    @property
    def stream(self):  # type: ignore[override]
        return sys.stderr

    @stream.setter
    def stream(self, value) -> None:
        pass


def _build_formatter() -> logging.Formatter:
    return logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | req=%(request_id)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def configure_root_logger(level: str = "WARNING") -> None:
    """
    Configure root logger and cpapi-specific logger.

    Logs go to stderr; stdout is reserved for the JSON result printed by the CLI.
    Only the cpapi namespace is set to the requested level.

    Args:
        level: Log level for cpapi logs (DEBUG, INFO, WARNING, ERROR).

    Safe to call multiple times; it will not duplicate handlers (idempotent).
    """
    root = logging.getLogger()

    for h in root.handlers:
        if isinstance(h, logging.StreamHandler) and any(isinstance(f, _RequestFilter) for f in h.filters):
            # Already configured; just update cpapi logger level
            logging.getLogger("cpapi").setLevel(getattr(logging, level.upper(), logging.WARNING))
            return

    handler = _StderrHandler()
    handler.setFormatter(_build_formatter())
    handler.addFilter(_RequestFilter())
    root.addHandler(handler)
    root.setLevel(logging.WARNING)

    logging.getLogger("cpapi").setLevel(getattr(logging, level.upper(), logging.WARNING))


def get_logger(name: str = "cpapi") -> logging.Logger:
    """Get a module-specific logger; handlers are left to configure_root_logger()."""
    return logging.getLogger(name)


def enable_transport_tracing() -> None:
    """Turn on connection traces from the HTTP transport (``--debug``)."""
    configure_root_logger(logging.getLevelName(logging.getLogger("cpapi").getEffectiveLevel()))
    for name in TRANSPORT_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG)


def new_request_id() -> str:
    return uuid.uuid4().hex[:8]


def push_request_id(request_id: Optional[str]) -> Optional[contextvars.Token]:
    """Set the current request id in context and return a token for later reset."""
    if not request_id:
        return None
    return _REQUEST_ID.set(request_id)


def reset_request_id(token: Optional[contextvars.Token]) -> None:
    """Reset the request id context using the provided token (if any)."""
    if token is None:
        return
    _REQUEST_ID.reset(token)


def current_request_id() -> str:
    return _REQUEST_ID.get()
