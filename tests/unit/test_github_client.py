"""Unit tests for the GitHub client wrapper (GraphQL session and Repository mocked)."""

from __future__ import annotations

from typing import Any
from unittest.mock import Mock

import pytest
from github import UnknownObjectException

from td_kanban.installer.github.client import (
    GitHubClient,
    GitHubGraphQLError,
    OptionInput,
)


def _response(payload: dict[str, Any]) -> Mock:
    resp = Mock()
    resp.json.return_value = payload
    resp.raise_for_status.return_value = None
    return resp


def _client(
    *payloads: dict[str, Any], base_url: str = "https://api.github.com"
) -> tuple[GitHubClient, Mock, Mock]:
    session = Mock()
    session.headers = {}
    session.post.side_effect = [_response(p) for p in payloads]
    repo = Mock()
    repo.node_id = "R_kgDO"
    client = GitHubClient(
        token="test-token",
        repository="octo-org/octo-repo",
        base_url=base_url,
        repo=repo,
        session=session,
    )
    return client, session, repo


def _field_node(field_id: str, name: str, options: list[tuple[str, str]]) -> dict[str, Any]:
    return {
        "id": field_id,
        "name": name,
        "options": [{"id": i, "name": n, "color": "GRAY", "description": ""} for i, n in options],
    }


@pytest.mark.parametrize(
    ("base_url", "expected"),
    [
        ("https://api.github.com", "https://api.github.com/graphql"),
        ("https://api.github.com/", "https://api.github.com/graphql"),
        ("https://ghe.example.com/api/v3", "https://ghe.example.com/api/graphql"),
        ("https://ghe.example.com/api", "https://ghe.example.com/api/graphql"),
    ],
)
def test_graphql_url_is_derived_from_rest_base(base_url: str, expected: str) -> None:
    client, _, _ = _client(base_url=base_url)

    assert client._graphql_url() == expected


def test_session_is_authenticated_with_bearer_token() -> None:
    client, session, _ = _client()

    assert session.headers["Authorization"] == "Bearer test-token"
    assert client.owner_login == "octo-org"
    assert client.repository_node_id == "R_kgDO"


def test_graphql_errors_raise() -> None:
    client, _, _ = _client({"errors": [{"message": "Could not resolve to a User"}]})

    with pytest.raises(GitHubGraphQLError, match="Could not resolve to a User"):
        client.get_owner()


def test_get_owner_reports_kind() -> None:
    client, session, _ = _client(
        {"data": {"repositoryOwner": {"id": "O_1", "login": "octo-org", "__typename": "Organization"}}}
    )

    owner = client.get_owner()

    assert owner.id == "O_1"
    assert owner.kind == "Organization"
    assert session.post.call_args.kwargs["json"]["variables"] == {"login": "octo-org"}


def test_find_project_follows_pagination_and_matches_exact_title() -> None:
    page1 = {
        "data": {
            "repositoryOwner": {
                "projectsV2": {
                    "nodes": [{"id": "PVT_a", "title": "Technical Debt Management (old)"}],
                    "pageInfo": {"hasNextPage": True, "endCursor": "c1"},
                }
            }
        }
    }
    page2 = {
        "data": {
            "repositoryOwner": {
                "projectsV2": {
                    "nodes": [
                        {
                            "id": "PVT_b",
                            "title": "Technical Debt Management",
                            "number": 4,
                            "url": "https://github.com/orgs/octo-org/projects/4",
                        }
                    ],
                    "pageInfo": {"hasNextPage": False, "endCursor": None},
                }
            }
        }
    }
    client, session, _ = _client(page1, page2)

    project = client.find_project(owner_login="octo-org", title="Technical Debt Management")

    assert project is not None
    assert project.id == "PVT_b"
    assert project.number == 4
    assert session.post.call_args_list[1].kwargs["json"]["variables"]["after"] == "c1"


def test_find_project_returns_none_when_absent() -> None:
    client, _, _ = _client(
        {
            "data": {
                "repositoryOwner": {
                    "projectsV2": {"nodes": [], "pageInfo": {"hasNextPage": False}}
                }
            }
        }
    )

    assert client.find_project(owner_login="octo-org", title="Technical Debt Management") is None


def test_create_project_links_repository() -> None:
    client, session, _ = _client(
        {"data": {"createProjectV2": {"projectV2": {"id": "PVT_new", "title": "TD"}}}}
    )

    project = client.create_project(owner_id="O_1", title="TD", repository_id="R_kgDO")

    assert project.id == "PVT_new"
    assert session.post.call_args.kwargs["json"]["variables"] == {
        "owner": "O_1",
        "title": "TD",
        "repository": "R_kgDO",
    }


def test_find_single_select_field_skips_other_field_types() -> None:
    client, _, _ = _client(
        {
            "data": {
                "node": {
                    "fields": {
                        "nodes": [
                            {},
                            _field_node("PVTSSF_1", "Status", [("opt_1", "TD identified")]),
                        ],
                        "pageInfo": {"hasNextPage": False},
                    }
                }
            }
        }
    )

    found = client.find_single_select_field(project_id="PVT_1", name="Status")

    assert found is not None
    assert found.id == "PVTSSF_1"
    assert found.option_by_name("TD identified").id == "opt_1"


def test_add_option_resends_existing_options_and_returns_new_one() -> None:
    current = {"data": {"node": _field_node("F", "Status", [("opt_1", "TD identified")])}}
    updated = {
        "data": {
            "updateProjectV2Field": {
                "projectV2Field": _field_node(
                    "F", "Status", [("opt_9", "TD identified"), ("opt_10", "TD documented")]
                )
            }
        }
    }
    client, session, _ = _client(current, updated)

    added = client.add_single_select_option(
        field_id="F", option=OptionInput(name="TD documented", color="YELLOW", description="d")
    )

    assert added.id == "opt_10"
    sent = session.post.call_args_list[1].kwargs["json"]["variables"]["options"]
    assert [o["name"] for o in sent] == ["TD identified", "TD documented"]
    assert sent[1] == {"name": "TD documented", "color": "YELLOW", "description": "d"}


def test_add_option_is_a_no_op_when_present() -> None:
    current = {"data": {"node": _field_node("F", "Status", [("opt_1", "TD identified")])}}
    client, session, _ = _client(current)

    added = client.add_single_select_option(
        field_id="F", option=OptionInput(name="TD identified", color="RED")
    )

    assert added.id == "opt_1"
    assert session.post.call_count == 1


def test_find_label_maps_404_to_none() -> None:
    client, _, repo = _client()
    repo.get_label.side_effect = UnknownObjectException(404, {"message": "Not Found"}, {})

    assert client.find_label(name="TD ignored") is None


def test_create_label_passes_color_and_description() -> None:
    client, _, repo = _client()
    repo.create_label.return_value = Mock(name="label", color="f9d0c4", description="desc")
    repo.create_label.return_value.name = "TD ignored"

    label = client.create_label(name="TD ignored", color="f9d0c4", description="desc")

    assert label.name == "TD ignored"
    repo.create_label.assert_called_once_with(
        name="TD ignored", color="f9d0c4", description="desc"
    )


def test_find_issue_by_title_ignores_pull_requests() -> None:
    client, _, repo = _client()
    pr = Mock(title="[TD] Example technical debt item", number=1, html_url="u1")
    issue = Mock(
        title="[TD] Example technical debt item", number=2, html_url="u2", pull_request=None
    )
    repo.get_issues.return_value = [pr, issue]

    found = client.find_issue_by_title(title="[TD] Example technical debt item")

    assert found is not None
    assert found.number == 2
    repo.get_issues.assert_called_once_with(state="all")
