"""GitHub API client wrapper for the installer.

Projects (V2) are only reachable through GraphQL, which we call with a plain
`requests` session. Repository-scoped REST operations (labels, issues) go through
PyGithub. Keeping both behind this class keeps API calls out of the orchestration
code and makes tests easy.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlparse, urlunparse

import requests
from github import Auth, Github, GithubException, UnknownObjectException
from github.Repository import Repository

logger = logging.getLogger(__name__)

_SINGLE_SELECT_FIELD_SELECTION = """
... on ProjectV2SingleSelectField {
  id
  name
  options { id name color description }
}
"""

OWNER_QUERY = """
query($login: String!) {
  repositoryOwner(login: $login) {
    id
    login
    __typename
  }
}
"""

PROJECTS_QUERY = """
query($login: String!, $after: String) {
  repositoryOwner(login: $login) {
    ... on ProjectV2Owner {
      projectsV2(first: 100, after: $after) {
        nodes { id title number url }
        pageInfo { hasNextPage endCursor }
      }
    }
  }
}
"""

CREATE_PROJECT_MUTATION = """
mutation($owner: ID!, $title: String!, $repository: ID) {
  createProjectV2(input: {ownerId: $owner, title: $title, repositoryId: $repository}) {
    projectV2 { id title number url }
  }
}
"""

PROJECT_FIELDS_QUERY = (
    """
query($project: ID!, $after: String) {
  node(id: $project) {
    ... on ProjectV2 {
      fields(first: 100, after: $after) {
        nodes {"""
    + _SINGLE_SELECT_FIELD_SELECTION
    + """}
        pageInfo { hasNextPage endCursor }
      }
    }
  }
}
"""
)

FIELD_QUERY = (
    """
query($field: ID!) {
  node(id: $field) {"""
    + _SINGLE_SELECT_FIELD_SELECTION
    + """}
}
"""
)

CREATE_FIELD_MUTATION = (
    """
mutation($project: ID!, $name: String!, $options: [ProjectV2SingleSelectFieldOptionInput!]) {
  createProjectV2Field(
    input: {projectId: $project, dataType: SINGLE_SELECT, name: $name, singleSelectOptions: $options}
  ) {
    projectV2Field {"""
    + _SINGLE_SELECT_FIELD_SELECTION
    + """}
  }
}
"""
)

UPDATE_FIELD_OPTIONS_MUTATION = (
    """
mutation($field: ID!, $options: [ProjectV2SingleSelectFieldOptionInput!]) {
  updateProjectV2Field(input: {fieldId: $field, singleSelectOptions: $options}) {
    projectV2Field {"""
    + _SINGLE_SELECT_FIELD_SELECTION
    + """}
  }
}
"""
)


class GitHubGraphQLError(RuntimeError):
    """Raised when a GraphQL response carries an `errors` array."""


@dataclass(frozen=True, slots=True)
class OwnerRef:
    id: str
    login: str
    kind: str


@dataclass(frozen=True, slots=True)
class ProjectRef:
    id: str
    title: str
    number: int | None = None
    url: str | None = None


@dataclass(frozen=True, slots=True)
class OptionRef:
    id: str
    name: str
    color: str = "GRAY"
    description: str = ""


@dataclass(frozen=True, slots=True)
class OptionInput:
    """A single-select option as sent to `ProjectV2SingleSelectFieldOptionInput`."""

    name: str
    color: str
    description: str = ""

    def to_graphql(self) -> dict[str, str]:
        return {"name": self.name, "color": self.color, "description": self.description}


@dataclass(frozen=True, slots=True)
class FieldRef:
    id: str
    name: str
    options: tuple[OptionRef, ...] = field(default_factory=tuple)

    def option_by_name(self, name: str) -> OptionRef | None:
        for option in self.options:
            if option.name == name:
                return option
        return None


@dataclass(frozen=True, slots=True)
class LabelRef:
    name: str
    color: str
    description: str


@dataclass(frozen=True, slots=True)
class IssueRef:
    number: int
    title: str
    url: str | None


class GitHubClient:
    """Small wrapper around GraphQL (Projects V2) and PyGithub (labels, issues)."""

    def __init__(
        self,
        *,
        token: str,
        repository: str,
        base_url: str = "https://api.github.com",
        repo: Repository | None = None,
        github_api: Github | None = None,
        session: requests.Session | None = None,
    ) -> None:
        if not token:
            raise ValueError("GitHub token is required")
        if not repository:
            raise ValueError("GitHub repository is required")

        self._repository_name = repository.strip().strip("/")
        self._rest_base_url = base_url.rstrip("/")
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": "td-kanban",
            }
        )

        if repo is not None:
            self._repo = repo
            self._github = None
            logger.debug("Using injected Repository instance")
            return

        auth = Auth.Token(token)
        self._github = github_api or Github(auth=auth, base_url=self._rest_base_url)

        self._repo = self._github.get_repo(self._repository_name)
        logger.info(
            "Authenticated with GitHub and connected to repository",
            extra={"repo": self._repository_name},
        )

    @property
    def repository(self) -> str:
        """Return the configured repository name ("owner/name")."""

        return self._repository_name

    @property
    def owner_login(self) -> str:
        return self._repository_name.split("/", 1)[0]

    @property
    def repository_node_id(self) -> str | None:
        node_id = getattr(self._repo, "node_id", None)
        if isinstance(node_id, str) and node_id.strip():
            return node_id
        return None

    def _graphql_url(self) -> str:
        """Derive the GitHub GraphQL endpoint from the configured REST base URL.

        GitHub.com:
            REST: https://api.github.com
            GQL:  https://api.github.com/graphql

        GitHub Enterprise:
            REST: https://github.example.com/api/v3
            GQL:  https://github.example.com/api/graphql
        """

        parsed = urlparse(self._rest_base_url)
        path = parsed.path.rstrip("/")

        if path.endswith("/api/v3"):
            path = path[: -len("/api/v3")] + "/api/graphql"
        elif path.endswith("/api"):
            path = path + "/graphql"
        elif path == "":
            path = "/graphql"
        else:
            path = path + "/graphql"

        return urlunparse(parsed._replace(path=path))

    def _graphql(self, *, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        url = self._graphql_url()
        resp = self._session.post(url, json={"query": query, "variables": variables}, timeout=30)
        resp.raise_for_status()
        payload: dict[str, Any] = resp.json()
        errors = payload.get("errors")
        if errors:
            messages = []
            if isinstance(errors, list):
                for item in errors:
                    if isinstance(item, dict):
                        msg = item.get("message")
                        if isinstance(msg, str):
                            messages.append(msg)
            message = "; ".join(messages) if messages else "Unknown GraphQL error"
            raise GitHubGraphQLError(f"GitHub GraphQL error: {message}")
        data = payload.get("data")
        return data if isinstance(data, dict) else {}

    @staticmethod
    def _parse_field(node: Any) -> FieldRef | None:
        if not isinstance(node, dict):
            return None
        field_id = node.get("id")
        name = node.get("name")
        # Non single-select fields come back as empty objects from the inline fragment.
        if not isinstance(field_id, str) or not isinstance(name, str):
            return None

        options: list[OptionRef] = []
        raw_options = node.get("options")
        if isinstance(raw_options, list):
            for raw in raw_options:
                if not isinstance(raw, dict):
                    continue
                option_id = raw.get("id")
                option_name = raw.get("name")
                if not isinstance(option_id, str) or not isinstance(option_name, str):
                    continue
                color = raw.get("color")
                description = raw.get("description")
                options.append(
                    OptionRef(
                        id=option_id,
                        name=option_name,
                        color=color if isinstance(color, str) else "GRAY",
                        description=description if isinstance(description, str) else "",
                    )
                )
        return FieldRef(id=field_id, name=name, options=tuple(options))

    @staticmethod
    def _parse_project(node: Any) -> ProjectRef | None:
        if not isinstance(node, dict):
            return None
        project_id = node.get("id")
        title = node.get("title")
        if not isinstance(project_id, str) or not isinstance(title, str):
            return None
        number = node.get("number")
        url = node.get("url")
        return ProjectRef(
            id=project_id,
            title=title,
            number=number if isinstance(number, int) else None,
            url=url if isinstance(url, str) and url.strip() else None,
        )

    # -- Projects (V2) ----------------------------------------------------

    def get_owner(self, login: str | None = None) -> OwnerRef:
        """Resolve the node ID of a user or organization (defaults to the repo owner)."""

        owner_login = (login or self.owner_login).strip()
        data = self._graphql(query=OWNER_QUERY, variables={"login": owner_login})
        owner = data.get("repositoryOwner")
        if not isinstance(owner, dict) or not isinstance(owner.get("id"), str):
            raise ValueError(f"Repository owner not found: {owner_login}")
        kind = owner.get("__typename")
        return OwnerRef(
            id=owner["id"],
            login=str(owner.get("login") or owner_login),
            kind=kind if isinstance(kind, str) else "User",
        )

    def find_project(self, *, owner_login: str, title: str) -> ProjectRef | None:
        """Return the owner's project with exactly this title, if any."""

        after: str | None = None
        # Owners rarely have more than a few hundred projects; cap the walk at 10 pages.
        for _ in range(10):
            data = self._graphql(
                query=PROJECTS_QUERY, variables={"login": owner_login, "after": after}
            )
            owner = data.get("repositoryOwner")
            if not isinstance(owner, dict):
                return None
            projects = owner.get("projectsV2")
            if not isinstance(projects, dict):
                return None

            nodes = projects.get("nodes")
            if isinstance(nodes, list):
                for node in nodes:
                    project = self._parse_project(node)
                    if project is not None and project.title == title:
                        return project

            page_info = projects.get("pageInfo")
            if not isinstance(page_info, dict) or not page_info.get("hasNextPage"):
                return None
            cursor = page_info.get("endCursor")
            if not isinstance(cursor, str) or not cursor:
                return None
            after = cursor
        return None

    def create_project(
        self, *, owner_id: str, title: str, repository_id: str | None = None
    ) -> ProjectRef:
        data = self._graphql(
            query=CREATE_PROJECT_MUTATION,
            variables={"owner": owner_id, "title": title, "repository": repository_id},
        )
        created = data.get("createProjectV2")
        node = created.get("projectV2") if isinstance(created, dict) else None
        project = self._parse_project(node)
        if project is None:
            raise ValueError("Unexpected createProjectV2 response: missing project")
        logger.info("Project created", extra={"project_id": project.id, "title": title})
        return project

    def find_single_select_field(self, *, project_id: str, name: str) -> FieldRef | None:
        """Return the project's single-select field with exactly this name, if any."""

        after: str | None = None
        for _ in range(10):
            data = self._graphql(
                query=PROJECT_FIELDS_QUERY, variables={"project": project_id, "after": after}
            )
            node = data.get("node")
            if not isinstance(node, dict):
                return None
            fields = node.get("fields")
            if not isinstance(fields, dict):
                return None

            nodes = fields.get("nodes")
            if isinstance(nodes, list):
                for raw in nodes:
                    parsed = self._parse_field(raw)
                    if parsed is not None and parsed.name == name:
                        return parsed

            page_info = fields.get("pageInfo")
            if not isinstance(page_info, dict) or not page_info.get("hasNextPage"):
                return None
            cursor = page_info.get("endCursor")
            if not isinstance(cursor, str) or not cursor:
                return None
            after = cursor
        return None

    def get_single_select_field(self, *, field_id: str) -> FieldRef:
        data = self._graphql(query=FIELD_QUERY, variables={"field": field_id})
        parsed = self._parse_field(data.get("node"))
        if parsed is None:
            raise ValueError(f"Single-select field not found: {field_id}")
        return parsed

    def create_single_select_field(
        self, *, project_id: str, name: str, options: list[OptionInput]
    ) -> FieldRef:
        data = self._graphql(
            query=CREATE_FIELD_MUTATION,
            variables={
                "project": project_id,
                "name": name,
                "options": [o.to_graphql() for o in options],
            },
        )
        created = data.get("createProjectV2Field")
        node = created.get("projectV2Field") if isinstance(created, dict) else None
        parsed = self._parse_field(node)
        if parsed is None:
            raise ValueError("Unexpected createProjectV2Field response: missing field")
        logger.info(
            "Single-select field created",
            extra={"field_id": parsed.id, "field_name": name, "options": len(parsed.options)},
        )
        return parsed

    def replace_single_select_options(
        self, *, field_id: str, options: list[OptionInput]
    ) -> FieldRef:
        """Overwrite the option list of a single-select field.

        Items holding a dropped option lose their value; only use on fields with
        no items.
        """

        return self._update_options(field_id=field_id, payload=[o.to_graphql() for o in options])

    def _update_options(self, *, field_id: str, payload: list[dict[str, str]]) -> FieldRef:
        data = self._graphql(
            query=UPDATE_FIELD_OPTIONS_MUTATION,
            variables={"field": field_id, "options": payload},
        )
        updated = data.get("updateProjectV2Field")
        node = updated.get("projectV2Field") if isinstance(updated, dict) else None
        parsed = self._parse_field(node)
        if parsed is None:
            raise ValueError("Unexpected updateProjectV2Field response: missing field")
        return parsed

    def add_single_select_option(self, *, field_id: str, option: OptionInput) -> OptionRef:
        """Append an option to a single-select field and return it.

        `updateProjectV2Field` replaces the whole option list, so the current
        options are re-sent ahead of the new one. GitHub may issue fresh IDs for
        the re-sent options; callers must re-read the field before trusting IDs
        resolved earlier.
        """

        current = self.get_single_select_field(field_id=field_id)
        existing = current.option_by_name(option.name)
        if existing is not None:
            return existing

        payload = [
            OptionInput(name=o.name, color=o.color, description=o.description).to_graphql()
            for o in current.options
        ]
        payload.append(option.to_graphql())

        added = self._update_options(field_id=field_id, payload=payload).option_by_name(
            option.name
        )
        if added is None:
            raise ValueError(
                f"Unexpected updateProjectV2Field response: option {option.name!r} missing"
            )
        logger.info(
            "Single-select option added",
            extra={"field_id": field_id, "option": option.name, "option_id": added.id},
        )
        return added

    # -- Labels and issues (REST via PyGithub) ----------------------------

    def find_label(self, *, name: str) -> LabelRef | None:
        try:
            label = self._repo.get_label(name)
        except UnknownObjectException:
            return None
        return LabelRef(
            name=label.name,
            color=label.color,
            description=label.description or "",
        )

    def create_label(self, *, name: str, color: str, description: str = "") -> LabelRef:
        label = self._repo.create_label(name=name, color=color, description=description)
        logger.info("Label created", extra={"repo": self._repository_name, "label": name})
        return LabelRef(
            name=label.name,
            color=label.color,
            description=label.description or "",
        )

    def find_issue_by_title(self, *, title: str) -> IssueRef | None:
        normalized = title.strip()
        for issue in self._repo.get_issues(state="all"):
            if getattr(issue, "pull_request", None) is not None:
                continue
            if issue.title.strip() == normalized:
                return IssueRef(number=issue.number, title=issue.title, url=issue.html_url)
        return None

    def create_issue(self, *, title: str, body: str, labels: list[str]) -> IssueRef:
        if not title.strip():
            raise ValueError("Issue title is required")
        try:
            issue = self._repo.create_issue(title=title, body=body, labels=labels)
        except GithubException:
            logger.error(
                "Issue creation failed", extra={"repo": self._repository_name, "title": title}
            )
            raise
        logger.info(
            "Issue created", extra={"repo": self._repository_name, "issue_number": issue.number}
        )
        return IssueRef(number=issue.number, title=issue.title, url=issue.html_url)

    def close(self) -> None:
        self._session.close()
        if self._github is not None:
            self._github.close()
