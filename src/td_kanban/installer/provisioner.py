"""Provision the Technical Debt board, status options, labels and seed issue.

The steps run strictly in sequence, each taking the `InstallResult` produced so
far and returning an updated copy. Remote calls are not transactional: when a
step aborts, everything resolved before it stays in place and a re-run picks it
up through the lookup-first resolution.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace

from td_kanban.installer.github.client import (
    FieldRef,
    GitHubClient,
    IssueRef,
    LabelRef,
    OptionInput,
    OptionRef,
    ProjectRef,
)
from td_kanban.installer.resolver import Resolution, ResolutionKind, ensure_resource
from td_kanban.installer.substitution import placeholder_values
from td_kanban.installer.templates import ISSUE_TITLE_PREFIX
from td_kanban.td_statuses import STATUS_IDENTIFIED, TD_STATUS_SPECS, StatusSpec

logger = logging.getLogger(__name__)

# Options GitHub puts on the Status field of every new board.
BUILTIN_STATUS_OPTIONS = frozenset({"Todo", "In Progress", "Done"})

SEED_ISSUE_TITLE = f"{ISSUE_TITLE_PREFIX}Example technical debt item"
SEED_ISSUE_BODY = """### Context

Example entry created by the Technical Debt Kanban installer. Replace it with a
real item or close it.

### Impact

None; it only shows how a TD issue lands in the "TD identified" column.

### Evidences

_No response_

### Additional details

_No response_
"""


def leftover_default_options(
    status_field: FieldRef, statuses: tuple[StatusSpec, ...] = TD_STATUS_SPECS
) -> list[str]:
    """Built-in options still on the field beside the TD options.

    Empty when there are none, or when the field also holds options of its own
    (a curated field is never rewritten).
    """

    names = {spec.name for spec in statuses}
    foreign = [o.name for o in status_field.options if o.name not in names]
    if foreign and set(foreign) <= BUILTIN_STATUS_OPTIONS:
        return foreign
    return []


class ProvisioningError(RuntimeError):
    """A resource could not be resolved and the run stopped."""

    def __init__(self, message: str, result: InstallResult) -> None:
        super().__init__(message)
        self.result = result


@dataclass(frozen=True, slots=True)
class InstallResult:
    """Everything resolved during one run, passed from step to step."""

    repository: str
    project_title: str
    status_field_name: str
    project: Resolution[ProjectRef] | None = None
    status_field: Resolution[FieldRef] | None = None
    options: dict[str, Resolution[OptionRef]] = field(default_factory=dict)
    labels: dict[str, Resolution[LabelRef]] = field(default_factory=dict)
    seed_issue: Resolution[IssueRef] | None = None

    @property
    def project_id(self) -> str | None:
        if self.project is None or not self.project.ok:
            return None
        return self.project.require().id

    @property
    def field_id(self) -> str | None:
        if self.status_field is None or not self.status_field.ok:
            return None
        return self.status_field.require().id

    def option_ids(self) -> dict[str, str]:
        return {name: res.require().id for name, res in self.options.items() if res.ok}

    def placeholder_values(self) -> dict[str, str]:
        return placeholder_values(
            project_id=self.project_id, field_id=self.field_id, option_ids=self.option_ids()
        )

    def resolutions(self) -> list[Resolution[object]]:
        out: list[Resolution[object]] = []
        for single in (self.project, self.status_field):
            if single is not None:
                out.append(single)
        out.extend(self.options.values())
        out.extend(self.labels.values())
        if self.seed_issue is not None:
            out.append(self.seed_issue)
        return out

    def failures(self) -> list[Resolution[object]]:
        return [r for r in self.resolutions() if r.kind is ResolutionKind.FAILED]

    def created(self) -> list[Resolution[object]]:
        return [r for r in self.resolutions() if r.kind is ResolutionKind.CREATED]

    @property
    def complete(self) -> bool:
        """Board, field, and one option and label per status all resolved."""

        if self.project_id is None or self.field_id is None:
            return False
        if leftover_default_options(self.status_field.require(), TD_STATUS_SPECS):
            return False
        names = {spec.name for spec in TD_STATUS_SPECS}
        options_ok = {n for n, r in self.options.items() if r.ok}
        labels_ok = {n for n, r in self.labels.items() if r.ok}
        return options_ok == names and labels_ok == names


class TechnicalDebtProvisioner:
    """Ensure the remote side of the Technical Debt workflow exists."""

    def __init__(
        self,
        *,
        github: GitHubClient,
        project_title: str,
        status_field_name: str,
        statuses: tuple[StatusSpec, ...] = TD_STATUS_SPECS,
        keep_going: bool = False,
    ) -> None:
        self._github = github
        self._project_title = project_title
        self._status_field_name = status_field_name
        self._statuses = statuses
        self._keep_going = keep_going

    def new_result(self) -> InstallResult:
        return InstallResult(
            repository=self._github.repository,
            project_title=self._project_title,
            status_field_name=self._status_field_name,
        )

    def _check(self, resolution: Resolution[object], result: InstallResult, *, fatal: bool) -> None:
        if resolution.kind is not ResolutionKind.FAILED:
            return
        if fatal or not self._keep_going:
            raise ProvisioningError(
                f"Could not resolve {resolution.resource}: {resolution.reason}", result
            )
        logger.warning(
            "Continuing after failed resolution",
            extra={"resource": resolution.resource, "reason": resolution.reason},
        )

    def install(self, *, seed_issue: bool = False) -> InstallResult:
        result = self.new_result()
        result = self.ensure_project(result)
        result = self.ensure_status_field(result)
        result = self.ensure_status_options(result)
        result = self.ensure_labels(result)
        if seed_issue:
            result = self.ensure_seed_issue(result)
        logger.info(
            "Provisioning finished",
            extra={
                "repo": result.repository,
                "created": [r.resource for r in result.created()],
                "failed": [r.resource for r in result.failures()],
            },
        )
        return result

    def ensure_project(self, result: InstallResult) -> InstallResult:
        owner_login = self._github.owner_login
        title = self._project_title

        def create() -> ProjectRef:
            owner = self._github.get_owner(owner_login)
            return self._github.create_project(
                owner_id=owner.id,
                title=title,
                repository_id=self._github.repository_node_id,
            )

        resolution = ensure_resource(
            resource=f"project {title!r}",
            lookup=lambda: self._github.find_project(owner_login=owner_login, title=title),
            create=create,
        )
        result = replace(result, project=resolution)
        self._check(resolution, result, fatal=True)
        return result

    def ensure_status_field(self, result: InstallResult) -> InstallResult:
        project_id = result.project_id
        if project_id is None:
            raise ProvisioningError("Status field requires a resolved project", result)

        name = self._status_field_name
        initial_options = [self._option_input(spec) for spec in self._statuses]
        resolution = ensure_resource(
            resource=f"field {name!r}",
            lookup=lambda: self._github.find_single_select_field(
                project_id=project_id, name=name
            ),
            create=lambda: self._github.create_single_select_field(
                project_id=project_id, name=name, options=initial_options
            ),
        )
        result = replace(result, status_field=resolution)
        self._check(resolution, result, fatal=True)
        return result

    def ensure_status_options(self, result: InstallResult) -> InstallResult:
        field_id = result.field_id
        if field_id is None:
            raise ProvisioningError("Status options require a resolved field", result)

        # A new board ships a built-in Status field (Todo / In Progress / Done).
        # While nothing but those defaults sits beside the TD options, the list
        # is replaced outright; any other option means someone curated it.
        assert result.status_field is not None
        foreign = leftover_default_options(result.status_field.require(), self._statuses)
        if foreign:
            logger.info(
                "Replacing default Status options",
                extra={"field_id": field_id, "dropped": foreign},
            )
            try:
                self._github.replace_single_select_options(
                    field_id=field_id, options=[self._option_input(s) for s in self._statuses]
                )
            except Exception as e:
                raise ProvisioningError(
                    f"Could not replace default options on field {self._status_field_name!r}: {e}",
                    result,
                ) from e

        options: dict[str, Resolution[OptionRef]] = {}
        for spec in self._statuses:
            option_input = self._option_input(spec)
            resolution = ensure_resource(
                resource=f"option {spec.name!r}",
                lookup=lambda name=spec.name: self._github.get_single_select_field(
                    field_id=field_id
                ).option_by_name(name),
                create=lambda option=option_input: self._github.add_single_select_option(
                    field_id=field_id, option=option
                ),
            )
            options[spec.name] = resolution
            result = replace(result, options=dict(options))
            self._check(resolution, result, fatal=False)

        # Rewriting the option list may re-issue option IDs; trust only a fresh read.
        refreshed = self._github.get_single_select_field(field_id=field_id)
        remapped: dict[str, Resolution[OptionRef]] = {}
        for name, resolution in options.items():
            if not resolution.ok:
                remapped[name] = resolution
                continue
            current = refreshed.option_by_name(name)
            if current is None:
                remapped[name] = Resolution.failed(
                    resolution.resource, "option missing when the field was re-read"
                )
            else:
                remapped[name] = resolution.with_value(current)

        result = replace(
            result, status_field=result.status_field.with_value(refreshed), options=remapped
        )
        for resolution in remapped.values():
            self._check(resolution, result, fatal=False)
        return result

    def ensure_labels(self, result: InstallResult) -> InstallResult:
        labels: dict[str, Resolution[LabelRef]] = {}
        for spec in self._statuses:
            resolution = ensure_resource(
                resource=f"label {spec.name!r}",
                lookup=lambda name=spec.name: self._github.find_label(name=name),
                create=lambda s=spec: self._github.create_label(
                    name=s.name, color=s.label_color, description=s.description
                ),
            )
            labels[spec.name] = resolution
            result = replace(result, labels=dict(labels))
            self._check(resolution, result, fatal=False)
        return result

    def ensure_seed_issue(self, result: InstallResult) -> InstallResult:
        resolution = ensure_resource(
            resource=f"issue {SEED_ISSUE_TITLE!r}",
            lookup=lambda: self._github.find_issue_by_title(title=SEED_ISSUE_TITLE),
            create=lambda: self._github.create_issue(
                title=SEED_ISSUE_TITLE, body=SEED_ISSUE_BODY, labels=[STATUS_IDENTIFIED]
            ),
        )
        result = replace(result, seed_issue=resolution)
        self._check(resolution, result, fatal=False)
        return result

    def verify(self) -> InstallResult:
        """Look everything up without creating anything."""

        result = self.new_result()
        title = self._project_title
        project = self._github.find_project(owner_login=self._github.owner_login, title=title)
        result = replace(result, project=_lookup_only(f"project {title!r}", project))
        if project is None:
            return result

        name = self._status_field_name
        status_field = self._github.find_single_select_field(project_id=project.id, name=name)
        result = replace(result, status_field=_lookup_only(f"field {name!r}", status_field))

        options: dict[str, Resolution[OptionRef]] = {}
        labels: dict[str, Resolution[LabelRef]] = {}
        for spec in self._statuses:
            if status_field is not None:
                options[spec.name] = _lookup_only(
                    f"option {spec.name!r}", status_field.option_by_name(spec.name)
                )
            labels[spec.name] = _lookup_only(
                f"label {spec.name!r}", self._github.find_label(name=spec.name)
            )
        return replace(result, options=options, labels=labels)

    @staticmethod
    def _option_input(spec: StatusSpec) -> OptionInput:
        return OptionInput(name=spec.name, color=spec.option_color, description=spec.description)


def _lookup_only(resource: str, value: object | None) -> Resolution[object]:
    if value is None:
        return Resolution.failed(resource, "not found")
    return Resolution.found(resource, value)
