"""Logging setup for the promptreg command line.

Library modules only create `logging.getLogger(__name__)` loggers;
handlers are installed here, once, by the CLI.
"""

import json
import logging
import re
import time
from typing import Any

from rich.console import Console
from rich.logging import RichHandler

_CONFIGURED = False

_SECRET_PATTERNS = (
    re.compile(r"(Bearer\s+)[A-Za-z0-9_\-.=]+"),
    re.compile(
        r"((?:PRIVATE-TOKEN|Authorization)['\"]?\s*[:=]\s*['\"]?)"
        r"(?!(?:Bearer|token)\s)[^'\",\s}]+",
        re.IGNORECASE,
    ),
    re.compile(r"\b(gh[pousr]_)[A-Za-z0-9]{20,}"),
    re.compile(r"\b(github_pat_)[A-Za-z0-9_]{20,}"),
    re.compile(r"\b(glpat-)[A-Za-z0-9_\-]{20,}"),
)


def redact_string(text: str) -> str:
    """Mask credentials in a log line, keeping the scheme or token prefix.

    Examples:
        >>> redact_string("Authorization: Bearer abc123")
        'Authorization: Bearer ***'
        >>> redact_string("token ghp_0123456789abcdefghijklmn")
        'token ghp_***'
    """
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(lambda m: m.group(1) + "***", text)
    return text


class RedactionFilter(logging.Filter):
    """Rewrite each record's message with credentials masked."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_string(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


class JsonFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__()
        self.converter = time.gmtime

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%SZ"),
            "level": record.levelname,
            "logger": record.name,
            "message": redact_string(record.getMessage()),
        }
        if record.exc_info:
            payload["exc_info"] = redact_string(self.formatException(record.exc_info))
        return json.dumps(payload, ensure_ascii=False)


def _resolve_level(level: str | int | None) -> int:
    if isinstance(level, int):
        return level
    if level is None:
        return logging.WARNING
    return logging.getLevelNamesMapping().get(str(level).upper(), logging.WARNING)


def configure_logging(
    *, level: str | int | None = None, fmt: str = "text", force: bool = False
) -> None:
    """Install one handler on the root logger.

    Args:
        level: Level name or number (default WARNING)
        fmt: "text" for rich console output, "json" for one JSON object per line
        force: Replace a previously installed handler
    """
    global _CONFIGURED
    if _CONFIGURED and not force:
        return

    root = logging.getLogger()
    root.setLevel(_resolve_level(level))
    for handler in list(root.handlers):
        if getattr(handler, "_promptreg", False):
            root.removeHandler(handler)

    if fmt.lower() == "json":
        handler: logging.Handler = logging.StreamHandler()
        handler.setFormatter(JsonFormatter())
    else:
        handler = RichHandler(
            console=Console(stderr=True), show_path=False, rich_tracebacks=False
        )
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    handler.addFilter(RedactionFilter())
    handler._promptreg = True
    root.addHandler(handler)

    _CONFIGURED = True
