"""Test configuration and fixtures."""

from __future__ import annotations

import itertools
from pathlib import Path

import pytest

from td_kanban.installer.github.client import (
    FieldRef,
    IssueRef,
    LabelRef,
    OptionInput,
    OptionRef,
    OwnerRef,
    ProjectRef,
)

_ENV_VARS = (
    "TD_GITHUB_TOKEN",
    "GH_TOKEN",
    "GITHUB_TOKEN",
    "GITHUB_BASE_URL",
    "LOG_LEVEL",
    "TD_REPOSITORY",
    "TD_PROJECT_TITLE",
    "TD_STATUS_FIELD_NAME",
    "TD_GH_EXECUTABLE",
)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep host credentials and any stray .env out of the tests."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


class FakeGitHub:
    """In-memory stand-in for `GitHubClient` with the same method surface.

    Names are unique per scope, as on GitHub: creating a duplicate raises.
    """

    def __init__(self, repository: str = "octo-org/octo-repo") -> None:
        self.repository = repository
        self.owner_login = repository.split("/", 1)[0]
        self.repository_node_id = "R_repo"
        self._ids = itertools.count(1)
        self.projects: dict[str, ProjectRef] = {}
        self.fields: dict[str, list[FieldRef]] = {}
        self.labels: dict[str, LabelRef] = {}
        self.issues: list[IssueRef] = []
        self.calls: list[str] = []
        self.fail_create: set[str] = set()  # "project", "option", "replace", "label"
        self.builtin_status_options: tuple[str, ...] = ()

    def _next(self, prefix: str) -> str:
        return f"{prefix}_{next(self._ids)}"

    def _field(self, field_id: str) -> FieldRef:
        for fields in self.fields.values():
            for f in fields:
                if f.id == field_id:
                    return f
        raise ValueError(f"Single-select field not found: {field_id}")

    def _store_field(self, updated: FieldRef) -> None:
        for fields in self.fields.values():
            for i, f in enumerate(fields):
                if f.id == updated.id:
                    fields[i] = updated
                    return

    def get_owner(self, login: str | None = None) -> OwnerRef:
        self.calls.append("get_owner")
        return OwnerRef(id="O_owner", login=login or self.owner_login, kind="Organization")

    def find_project(self, *, owner_login: str, title: str) -> ProjectRef | None:
        self.calls.append("find_project")
        return self.projects.get(title)

    def create_project(
        self, *, owner_id: str, title: str, repository_id: str | None = None
    ) -> ProjectRef:
        self.calls.append("create_project")
        if "project" in self.fail_create:
            raise RuntimeError("GitHub GraphQL error: something went wrong")
        project = ProjectRef(id=self._next("PVT"), title=title, number=len(self.projects) + 1)
        self.projects[title] = project
        self.fields[project.id] = []
        if self.builtin_status_options:
            builtin = tuple(
                OptionRef(id=self._next("opt"), name=name) for name in self.builtin_status_options
            )
            self.fields[project.id].append(
                FieldRef(id=self._next("PVTSSF"), name="Status", options=builtin)
            )
        return project

    def find_single_select_field(self, *, project_id: str, name: str) -> FieldRef | None:
        self.calls.append("find_single_select_field")
        for f in self.fields.get(project_id, []):
            if f.name == name:
                return f
        return None

    def get_single_select_field(self, *, field_id: str) -> FieldRef:
        self.calls.append("get_single_select_field")
        return self._field(field_id)

    def create_single_select_field(
        self, *, project_id: str, name: str, options: list[OptionInput]
    ) -> FieldRef:
        self.calls.append("create_single_select_field")
        for f in self.fields.get(project_id, []):
            if f.name == name:
                raise RuntimeError("GitHub GraphQL error: Name has already been taken")
        created = FieldRef(
            id=self._next("PVTSSF"),
            name=name,
            options=tuple(
                OptionRef(id=self._next("opt"), name=o.name, color=o.color) for o in options
            ),
        )
        self.fields.setdefault(project_id, []).append(created)
        return created

    def replace_single_select_options(
        self, *, field_id: str, options: list[OptionInput]
    ) -> FieldRef:
        self.calls.append("replace_single_select_options")
        if "replace" in self.fail_create:
            raise RuntimeError("GitHub GraphQL error: something went wrong")
        updated = FieldRef(
            id=field_id,
            name=self._field(field_id).name,
            options=tuple(
                OptionRef(id=self._next("opt"), name=o.name, color=o.color) for o in options
            ),
        )
        self._store_field(updated)
        return updated

    def add_single_select_option(self, *, field_id: str, option: OptionInput) -> OptionRef:
        self.calls.append("add_single_select_option")
        if "option" in self.fail_create:
            raise RuntimeError("GitHub GraphQL error: something went wrong")
        current = self._field(field_id)
        # Like GitHub, rewriting the option list re-issues every option ID.
        options = [OptionRef(id=self._next("opt"), name=o.name) for o in current.options]
        added = OptionRef(id=self._next("opt"), name=option.name, color=option.color)
        options.append(added)
        self._store_field(FieldRef(id=field_id, name=current.name, options=tuple(options)))
        return added

    def find_label(self, *, name: str) -> LabelRef | None:
        self.calls.append("find_label")
        return self.labels.get(name)

    def create_label(self, *, name: str, color: str, description: str = "") -> LabelRef:
        self.calls.append("create_label")
        if "label" in self.fail_create or name in self.labels:
            raise RuntimeError("422 Validation Failed: already_exists")
        label = LabelRef(name=name, color=color, description=description)
        self.labels[name] = label
        return label

    def find_issue_by_title(self, *, title: str) -> IssueRef | None:
        self.calls.append("find_issue_by_title")
        for issue in self.issues:
            if issue.title == title:
                return issue
        return None

    def create_issue(self, *, title: str, body: str, labels: list[str]) -> IssueRef:
        self.calls.append("create_issue")
        issue = IssueRef(number=len(self.issues) + 1, title=title, url=None)
        self.issues.append(issue)
        return issue

    def close(self) -> None:
        self.calls.append("close")


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()
