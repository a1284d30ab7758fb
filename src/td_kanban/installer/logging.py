"""Logging for the installer.

The CLI talks to the user on stdout: template paths, one line per board,
option and label resolution, and the final verdict. Everything else goes
through `logging` as one JSON object per line on stderr, so a run can be piped
or captured in CI without the two mixing. Resolution context (`resource`,
`reason`, `field_id`, ...) travels in `extra=` and lands under `"extra"`.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any, TextIO

# Whatever a bare LogRecord already has; the rest came in through `extra=`.
_RECORD_BUILTINS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}

# Third-party loggers that echo every request at DEBUG.
_NOISY_LOGGERS = ("github", "urllib3")


def _context(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _RECORD_BUILTINS and not key.startswith("_")
    }


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (record)
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = _context(record)
        if context:
            entry["extra"] = context
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        # Values such as Path or ResolutionKind fall back to str().
        return json.dumps(entry, ensure_ascii=False, default=str)


def configure_logging(level: str, *, stream: TextIO | None = None) -> None:
    """Route all records to `stream` (stderr by default) at `level`.

    Safe to call more than once: earlier root handlers are replaced.
    """

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream=stream or sys.stderr)
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)
    root.setLevel(level.upper())

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(root.level, logging.INFO))
