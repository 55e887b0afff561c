"""
Logging configuration for the block-editor agent.

One named logger (``gutenberg_agent``), two destinations:

  - Console (stderr):
    - DEBUG if --verbose, WARNING+ otherwise
    - Config console_format options:
      - "full"    - same structured format as the file handler
      - "simple"  - (default) bare messages for DEBUG/INFO, [LEVEL] prefix for WARNING+
      - "tagged"  - curated tagged records only (tool calls, delegation, errors)
      - "clean"   - no console output at all (file logging still active)
  - File (optional, attached by ``attach_log_file()``):
    - Always DEBUG level, no truncation
    - Format: "timestamp | level | name | conversation_id | tag | message"

Every record carries the id of the conversation being processed, taken from
a context variable so concurrent turns on the event loop don't mix them up.

Log files are stored in ~/.gutenberg-agent/logs/.
"""

import logging
import sys
import traceback
from contextvars import ContextVar
from datetime import datetime
from pathlib import Path
from typing import Optional

from config import get_data_dir


LOGGER_NAME = "gutenberg_agent"

# Log directory
LOG_DIR = get_data_dir() / "logs"

# Tags shown by the "tagged" console format.
# To show a new category, tag the log call with ``extra=tagged("my_tag")``
# and add ``"my_tag"`` here.
CURATED_TAGS = frozenset({
    "tool_call",        # "[Orchestrator] Tool: insert_block_realtime"
    "tool_result",      # "[Orchestrator] insert_block_realtime -> success"
    "editor_command",   # Deferred command forwarded to the live editor
    "delegation",       # "[Router] Delegating to seo specialist"
    "delegation_done",  # "[Router] seo specialist finished"
    "plan_event",       # Plan proposed / approved
    "error",            # log_error() - real errors with context/stack traces
})

_FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(conversation_id)s | %(log_tag)s | %(message)s"

_conversation_id: ContextVar[str] = ContextVar("conversation_id", default="")


def tagged(tag: str) -> dict:
    """Return ``extra`` dict for logger calls: ``logger.debug("...", extra=tagged("x"))``."""
    return {"log_tag": tag}


# Module-level state (shared across re-inits)
_conversation_filter: Optional["_ConversationFilter"] = None


class _ConversationFilter(logging.Filter):
    """Injects conversation_id into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.conversation_id = _conversation_id.get() or "-"
        if not hasattr(record, "log_tag"):
            record.log_tag = ""
        return True


class _ConsoleFormatter(logging.Formatter):
    """Console formatter: shows [LEVEL] prefix only for WARNING and above.

    DEBUG/INFO messages print bare (e.g. ``  [Orchestrator] Iteration 1/20``).
    WARNING/ERROR messages include the level (e.g. ``  [WARNING] ...``).
    """

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno >= logging.WARNING:
            return f"  [{record.levelname}] {record.getMessage()}"
        return f"  {record.getMessage()}"


class _CuratedTagFilter(logging.Filter):
    """Pass only records tagged with a key in CURATED_TAGS."""

    def filter(self, record: logging.LogRecord) -> bool:
        tag = getattr(record, "log_tag", "")
        return tag in CURATED_TAGS


def attach_log_file(name: str | None = None) -> Path:
    """Attach a file handler writing to ``LOG_DIR/agent_{name}.log``.

    ``name`` defaults to a timestamp. Replaces any previously attached
    file handler.
    """
    LOG_DIR.mkdir(parents=True, exist_ok=True)

    name = name or datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = LOG_DIR / f"agent_{name}.log"

    logger = get_logger()
    logger.handlers = [h for h in logger.handlers if not isinstance(h, logging.FileHandler)]

    file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(file_handler)

    logger.info("=" * 60)
    logger.info(f"Server log started at {datetime.now().isoformat()}")
    logger.info(f"Log file: {log_file}")
    return log_file


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Configure console logging for the agent.

    A file handler is attached separately by ``attach_log_file()``.

    Args:
        verbose: If True, show DEBUG level on console; otherwise WARNING+.

    Returns:
        Configured logger instance.
    """
    global _conversation_filter

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)  # Capture everything, filter at handler level
    logger.propagate = False

    # Clear existing handlers (in case of re-init)
    logger.handlers.clear()

    if _conversation_filter is None:
        _conversation_filter = _ConversationFilter()
    logger.addFilter(_conversation_filter)

    import config as _config
    console_format = _config.get("console_format", "simple")

    if console_format != "clean":
        console_handler = logging.StreamHandler(sys.stderr)

        if console_format == "tagged":
            console_handler.setLevel(logging.DEBUG)
            console_handler.addFilter(_CuratedTagFilter())
            console_handler.setFormatter(_ConsoleFormatter())
        elif console_format == "simple":
            console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
            console_handler.setFormatter(_ConsoleFormatter())
        else:
            # "full"
            console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
            console_handler.setFormatter(
                logging.Formatter(_FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
            )

        logger.addHandler(console_handler)
    # "clean" - no console handler at all

    return logger


def get_logger() -> logging.Logger:
    """Get the agent logger instance.

    Returns:
        The gutenberg_agent logger (creates with defaults if not configured)
    """
    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        return setup_logging(verbose=False)
    return logger


def set_conversation_id(conversation_id: str | None) -> None:
    """Set the conversation id included in log lines for the current task.

    Args:
        conversation_id: The conversation being processed, or None to clear.
    """
    _conversation_id.set(conversation_id or "")


def log_error(
    message: str,
    exc: Optional[BaseException] = None,
    context: Optional[dict] = None,
) -> None:
    """Log an error with full details including stack trace.

    Args:
        message: Error description
        exc: Optional exception to include stack trace from
        context: Optional dict of additional context (tool name, args, etc.)
    """
    lines = [message]

    if context:
        lines.append("Context:")
        for key, value in context.items():
            lines.append(f"  {key}: {value}")

    if exc:
        lines.append(f"Exception type: {type(exc).__name__}")
        lines.append(f"Exception message: {exc}")
        lines.append("Stack trace:")
        lines.append("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))

    get_logger().error("\n".join(lines), extra=tagged("error"))


def log_tool_call(agent_name: str, tool_name: str, tool_args: dict) -> None:
    """Log a tool call for debugging."""
    get_logger().debug(
        f"[{agent_name}] Tool: {tool_name}({tool_args})", extra=tagged("tool_call")
    )


def log_tool_result(agent_name: str, tool_name: str, success: bool, error: str = "") -> None:
    """Log a tool result; failures go out at WARNING."""
    logger = get_logger()
    if success:
        logger.debug(f"[{agent_name}] {tool_name} -> success", extra=tagged("tool_result"))
    else:
        logger.warning(
            f"[{agent_name}] {tool_name} -> error: {error or 'Unknown error'}",
            extra=tagged("tool_result"),
        )
