"""Configuration for the installer.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

The GitHub token is optional here: when it is absent the preflight step asks the
`gh` CLI for one (`gh auth token`). `TD_GITHUB_TOKEN` takes precedence over the
generic `GH_TOKEN` / `GITHUB_TOKEN` variables.
"""

from __future__ import annotations

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from td_kanban.td_statuses import DEFAULT_PROJECT_TITLE, DEFAULT_STATUS_FIELD_NAME


class InstallerSettings(BaseSettings):
    """Settings for the Technical Debt Kanban installer.

    Environment variables:
    - TD_GITHUB_TOKEN   (optional; GH_TOKEN / GITHUB_TOKEN also accepted)
    - GITHUB_BASE_URL   (optional)
    - LOG_LEVEL         (optional)
    - TD_REPOSITORY     (optional; "owner/name")
    - TD_PROJECT_TITLE  (optional)
    - TD_STATUS_FIELD_NAME (optional)
    - TD_GH_EXECUTABLE  (optional)

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `InstallerSettings(_env_file=path_to_env)`.
    """

    github_token: str = Field(
        default="",
        validation_alias=AliasChoices("TD_GITHUB_TOKEN", "GH_TOKEN", "GITHUB_TOKEN"),
        description="GitHub token used for API authentication",
    )
    github_base_url: str = Field(
        default="https://api.github.com",
        validation_alias="GITHUB_BASE_URL",
        description="GitHub API base URL (useful for GitHub Enterprise)",
    )

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    repository: str = Field(
        default="",
        validation_alias="TD_REPOSITORY",
        description="Target repository in the form 'owner/name'",
    )
    project_title: str = Field(
        default=DEFAULT_PROJECT_TITLE,
        validation_alias="TD_PROJECT_TITLE",
        description="Title of the Projects (V2) board to create or reuse",
    )
    status_field_name: str = Field(
        default=DEFAULT_STATUS_FIELD_NAME,
        validation_alias="TD_STATUS_FIELD_NAME",
        description="Name of the single-select field holding the TD statuses",
    )
    gh_executable: str = Field(
        default="gh",
        validation_alias="TD_GH_EXECUTABLE",
        description="GitHub CLI executable used for token and repository discovery",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _check_repository_format(self) -> InstallerSettings:
        repo = self.repository.strip().strip("/")
        if repo and not is_repository_name(repo):
            raise ValueError("TD_REPOSITORY must be in the form 'owner/name'")
        self.repository = repo
        if not self.project_title.strip():
            raise ValueError("TD_PROJECT_TITLE must not be empty")
        return self


def is_repository_name(value: str) -> bool:
    parts = value.strip().strip("/").split("/")
    return len(parts) == 2 and all(p.strip() for p in parts)
