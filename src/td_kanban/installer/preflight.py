"""Host checks run before anything is written locally or remotely."""

from __future__ import annotations

import logging
import shutil
import subprocess
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from td_kanban.installer.config import InstallerSettings, is_repository_name

logger = logging.getLogger(__name__)

_GH_TIMEOUT_SECONDS = 30


class PreflightError(RuntimeError):
    """The host cannot run the installer; the message is meant for the user."""


@dataclass(frozen=True, slots=True)
class PreflightReport:
    token: str
    token_source: str
    repository: str
    gh_path: str | None
    target_dir: Path


def _run_gh(
    gh_path: str,
    args: list[str],
    *,
    cwd: Path,
    run: Callable[..., subprocess.CompletedProcess[str]],
) -> str | None:
    try:
        result = run(
            [gh_path, *args],
            capture_output=True,
            text=True,
            cwd=str(cwd),
            timeout=_GH_TIMEOUT_SECONDS,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.warning("gh invocation failed", extra={"gh_args": args, "error": str(e)})
        return None
    if result.returncode != 0:
        logger.debug(
            "gh returned non-zero",
            extra={"gh_args": args, "returncode": result.returncode, "stderr": result.stderr.strip()},
        )
        return None
    output = result.stdout.strip()
    return output or None


def run_preflight(
    settings: InstallerSettings,
    *,
    repository: str | None,
    target_dir: Path,
    which: Callable[[str], str | None] = shutil.which,
    run: Callable[..., subprocess.CompletedProcess[str]] = subprocess.run,
) -> PreflightReport:
    """Verify a credential, a target repository and a target directory are available.

    Performs no writes. Raises `PreflightError` on the first failed check.
    """

    if not target_dir.is_dir():
        raise PreflightError(f"Target directory does not exist: {target_dir}")

    gh_path = which(settings.gh_executable)

    token = settings.github_token.strip()
    token_source = "environment"
    if not token:
        if gh_path is None:
            raise PreflightError(
                "GitHub CLI not found and no token configured. "
                "Install gh and run `gh auth login`, or set TD_GITHUB_TOKEN."
            )
        token = _run_gh(gh_path, ["auth", "token"], cwd=target_dir, run=run) or ""
        token_source = "gh"
        if not token:
            raise PreflightError(
                "GitHub CLI is not authenticated. Run `gh auth login`, or set TD_GITHUB_TOKEN."
            )

    repo = (repository or settings.repository).strip().strip("/")
    if not repo:
        if gh_path is None:
            raise PreflightError(
                "Target repository unknown. Pass --repo OWNER/NAME or set TD_REPOSITORY."
            )
        repo = (
            _run_gh(
                gh_path,
                ["repo", "view", "--json", "nameWithOwner", "-q", ".nameWithOwner"],
                cwd=target_dir,
                run=run,
            )
            or ""
        )
        if not repo:
            raise PreflightError(
                f"Could not detect a GitHub repository in {target_dir}. "
                "Pass --repo OWNER/NAME or set TD_REPOSITORY."
            )

    if not is_repository_name(repo):
        raise PreflightError(f"Repository must be in the form 'owner/name', got {repo!r}")

    logger.info(
        "Preflight passed",
        extra={"repo": repo, "token_source": token_source, "gh_path": gh_path},
    )
    return PreflightReport(
        token=token,
        token_source=token_source,
        repository=repo,
        gh_path=gh_path,
        target_dir=target_dir,
    )
