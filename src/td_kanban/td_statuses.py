"""Technical Debt status conventions.

The eight statuses form a closed enumeration. Each one is materialised twice:
- as a repository label (applied to issues by people and the issue form)
- as an option of the board's single-select "Status" field (the Kanban column)

The workflow maps labels to options through placeholder tokens that are replaced
with the resolved option IDs at install time.
"""

from __future__ import annotations

from dataclasses import dataclass

PROJECT_ID_PLACEHOLDER = "__PROJECT_ID__"
STATUS_FIELD_ID_PLACEHOLDER = "__STATUS_FIELD_ID__"

DEFAULT_PROJECT_TITLE = "Technical Debt Management"
DEFAULT_STATUS_FIELD_NAME = "Status"


@dataclass(frozen=True, slots=True)
class StatusSpec:
    name: str
    label_color: str
    option_color: str
    description: str

    @property
    def placeholder(self) -> str:
        """Workflow token replaced by this status' option ID, e.g. `__TD_IN_REPAYMENT__`."""

        slug = self.name.strip().upper().replace(" ", "_")
        return f"__{slug}__"


STATUS_IDENTIFIED = "TD identified"
STATUS_DOCUMENTED = "TD documented"
STATUS_COMMUNICATED = "TD communicated"
STATUS_PRIORITIZED = "TD prioritized"
STATUS_IN_REPAYMENT = "TD in repayment"
STATUS_IN_MONITORING = "TD in monitoring"
STATUS_ARCHIVED = "TD archived"
STATUS_IGNORED = "TD ignored"


TD_STATUS_SPECS: tuple[StatusSpec, ...] = (
    StatusSpec(
        name=STATUS_IDENTIFIED,
        label_color="d73a4a",
        option_color="RED",
        description="Technical debt spotted and registered",
    ),
    StatusSpec(
        name=STATUS_DOCUMENTED,
        label_color="fbca04",
        option_color="YELLOW",
        description="Context, impact and evidences written down",
    ),
    StatusSpec(
        name=STATUS_COMMUNICATED,
        label_color="0075ca",
        option_color="BLUE",
        description="Shared with the team and stakeholders",
    ),
    StatusSpec(
        name=STATUS_PRIORITIZED,
        label_color="d93f0b",
        option_color="ORANGE",
        description="Ranked against the rest of the backlog",
    ),
    StatusSpec(
        name=STATUS_IN_REPAYMENT,
        label_color="5319e7",
        option_color="PURPLE",
        description="Being paid back",
    ),
    StatusSpec(
        name=STATUS_IN_MONITORING,
        label_color="0e8a16",
        option_color="GREEN",
        description="Repaid; watching for regressions",
    ),
    StatusSpec(
        name=STATUS_ARCHIVED,
        label_color="cfd3d7",
        option_color="GRAY",
        description="Closed out and kept for reference",
    ),
    StatusSpec(
        name=STATUS_IGNORED,
        label_color="f9d0c4",
        option_color="PINK",
        description="Consciously accepted; no repayment planned",
    ),
)


def td_status_names() -> list[str]:
    return [spec.name for spec in TD_STATUS_SPECS]


def td_status_spec_by_name(name: str) -> StatusSpec | None:
    normalized = name.strip()
    for spec in TD_STATUS_SPECS:
        if spec.name == normalized:
            return spec
    return None


def all_placeholders() -> list[str]:
    """Every token the workflow template declares, board tokens first."""

    return [PROJECT_ID_PLACEHOLDER, STATUS_FIELD_ID_PLACEHOLDER] + [
        spec.placeholder for spec in TD_STATUS_SPECS
    ]
