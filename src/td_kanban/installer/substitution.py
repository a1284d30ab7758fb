"""Fill workflow placeholder tokens with resolved IDs."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from td_kanban.td_statuses import (
    PROJECT_ID_PLACEHOLDER,
    STATUS_FIELD_ID_PLACEHOLDER,
    TD_STATUS_SPECS,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"__[A-Z][A-Z0-9_]*__")


class UnresolvedPlaceholdersError(RuntimeError):
    """Raised when a file still contains placeholder tokens after substitution."""

    def __init__(self, path: Path, remaining: list[str]) -> None:
        super().__init__(f"{path} still contains placeholders: {', '.join(remaining)}")
        self.path = path
        self.remaining = remaining


@dataclass(frozen=True, slots=True)
class SubstitutionReport:
    path: Path
    replacements: dict[str, int]
    remaining: list[str]

    @property
    def complete(self) -> bool:
        return not self.remaining


def placeholder_values(
    *, project_id: str | None, field_id: str | None, option_ids: dict[str, str]
) -> dict[str, str]:
    """Map every workflow token to its resolved ID ("" when unresolved).

    Args:
        project_id: Board node ID.
        field_id: Status field node ID.
        option_ids: Status name -> option ID for the options that resolved.
    """

    values = {
        PROJECT_ID_PLACEHOLDER: project_id or "",
        STATUS_FIELD_ID_PLACEHOLDER: field_id or "",
    }
    for spec in TD_STATUS_SPECS:
        values[spec.placeholder] = option_ids.get(spec.name, "")
    return values


def find_placeholders(text: str) -> list[str]:
    """Distinct placeholder tokens in `text`, in order of first appearance."""

    seen: dict[str, None] = {}
    for match in PLACEHOLDER_PATTERN.finditer(text):
        seen.setdefault(match.group(0), None)
    return list(seen)


def substitute_placeholders(path: Path, values: dict[str, str]) -> SubstitutionReport:
    """Replace each token in `values` with its value, rewriting `path` in place.

    Tokens without a value (or with an empty one) are left as-is and reported in
    `SubstitutionReport.remaining`.
    """

    text = path.read_text(encoding="utf-8")
    replacements: dict[str, int] = {}
    for token, value in values.items():
        if not value:
            continue
        count = text.count(token)
        if count:
            text = text.replace(token, value)
        replacements[token] = count

    path.write_text(text, encoding="utf-8")
    remaining = find_placeholders(text)
    if remaining:
        logger.warning(
            "Placeholders left after substitution",
            extra={"path": str(path), "remaining": remaining},
        )
    else:
        logger.info("Placeholders substituted", extra={"path": str(path)})
    return SubstitutionReport(path=path, replacements=replacements, remaining=remaining)


def ensure_no_placeholders(report: SubstitutionReport) -> None:
    if report.remaining:
        raise UnresolvedPlaceholdersError(report.path, report.remaining)
