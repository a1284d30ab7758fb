"""CLI entrypoint for the Technical Debt Kanban installer.

Exit codes:
- 0: success
- 1: preflight failure (missing credential / gh CLI / repository) or unexpected error
- 2: configuration error
- 3: provisioning incomplete (a resource could not be resolved, or placeholders remain)
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from td_kanban import __version__
from td_kanban.installer.config import InstallerSettings
from td_kanban.installer.github.client import GitHubClient
from td_kanban.installer.logging import configure_logging
from td_kanban.installer.preflight import PreflightError, run_preflight
from td_kanban.installer.provisioner import (
    InstallResult,
    ProvisioningError,
    TechnicalDebtProvisioner,
)
from td_kanban.installer.resolver import ResolutionKind
from td_kanban.installer.substitution import (
    UnresolvedPlaceholdersError,
    ensure_no_placeholders,
    find_placeholders,
    substitute_placeholders,
)
from td_kanban.installer.templates import WORKFLOW_PATH, emit_templates

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_PREFLIGHT = 1
EXIT_ERROR = 1
EXIT_CONFIG = 2
EXIT_INCOMPLETE = 3


def _add_target_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--repo",
        "--repository",
        dest="repository",
        default=None,
        help="Target repository 'owner/name' (defaults to TD_REPOSITORY, then `gh repo view`)",
    )
    parser.add_argument(
        "--project-title",
        default=None,
        help="Board title (defaults to TD_PROJECT_TITLE or 'Technical Debt Management')",
    )
    parser.add_argument(
        "--target-dir",
        type=Path,
        default=Path("."),
        help="Local checkout where .github/ files are written",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="td-kanban",
        description="Provision a Technical Debt Kanban in a GitHub repository",
    )
    parser.add_argument("--version", action="version", version=f"td-kanban {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    install = subparsers.add_parser(
        "install",
        help="Write the issue form and workflow, then ensure board, options and labels",
    )
    _add_target_arguments(install)
    install.add_argument(
        "--seed-issue",
        action="store_true",
        help="Also open an example TD issue (skipped if one with the same title exists)",
    )
    install.add_argument(
        "--keep-going",
        action="store_true",
        help="Continue past failed option/label resolutions and report them at the end",
    )

    verify = subparsers.add_parser(
        "verify",
        help="Check board, options, labels and workflow without changing anything",
    )
    _add_target_arguments(verify)

    return parser


def _print_result(result: InstallResult) -> None:
    project = result.project
    if project is not None and project.ok:
        ref = project.require()
        suffix = f" ({ref.url})" if ref.url else ""
        print(f"Project [{project.kind.value}] {ref.title}: {ref.id}{suffix}")
    if result.field_id is not None:
        print(f"Status field: {result.field_id}")
    for name, resolution in result.options.items():
        if resolution.ok:
            print(f"  option [{resolution.kind.value}] {name}: {resolution.require().id}")
    for name, resolution in result.labels.items():
        if resolution.ok:
            print(f"  label  [{resolution.kind.value}] {name}")
    if result.seed_issue is not None and result.seed_issue.ok:
        issue = result.seed_issue.require()
        print(f"Seed issue [{result.seed_issue.kind.value}] #{issue.number}: {issue.title}")
    for failure in result.failures():
        print(f"FAILED {failure.resource}: {failure.reason}", file=sys.stderr)


def _install(args: argparse.Namespace, settings: InstallerSettings) -> int:
    target_dir: Path = args.target_dir
    report = run_preflight(settings, repository=args.repository, target_dir=target_dir)

    print(f"Installing Technical Debt Kanban into {report.repository}...")
    emitted = emit_templates(target_dir)
    print(f"Issue template written: {emitted.issue_template}")
    print(f"Workflow written: {emitted.workflow}")

    github = GitHubClient(
        token=report.token,
        repository=report.repository,
        base_url=settings.github_base_url,
    )
    try:
        provisioner = TechnicalDebtProvisioner(
            github=github,
            project_title=args.project_title or settings.project_title,
            status_field_name=settings.status_field_name,
            keep_going=args.keep_going,
        )
        try:
            result = provisioner.install(seed_issue=args.seed_issue)
        except ProvisioningError as e:
            _print_result(e.result)
            raise

        _print_result(result)
        substitution = substitute_placeholders(emitted.workflow, result.placeholder_values())
        ensure_no_placeholders(substitution)
    finally:
        github.close()

    if result.failures():
        print("Technical Debt Kanban partially installed; re-run to reconcile.", file=sys.stderr)
        return EXIT_INCOMPLETE

    print("Technical Debt Kanban installed: board ready, workflow active, labels created.")
    return EXIT_OK


def _verify(args: argparse.Namespace, settings: InstallerSettings) -> int:
    target_dir: Path = args.target_dir
    report = run_preflight(settings, repository=args.repository, target_dir=target_dir)

    github = GitHubClient(
        token=report.token,
        repository=report.repository,
        base_url=settings.github_base_url,
    )
    try:
        provisioner = TechnicalDebtProvisioner(
            github=github,
            project_title=args.project_title or settings.project_title,
            status_field_name=settings.status_field_name,
        )
        result = provisioner.verify()
    finally:
        github.close()

    _print_result(result)
    ok = result.complete

    workflow = target_dir / WORKFLOW_PATH
    if not workflow.is_file():
        print(f"MISSING {workflow}", file=sys.stderr)
        ok = False
    else:
        text = workflow.read_text(encoding="utf-8")
        remaining = find_placeholders(text)
        if remaining:
            print(f"{workflow} still contains: {', '.join(remaining)}", file=sys.stderr)
            ok = False
        # IDs go stale when the board or field is recreated outside the installer.
        stale = [v for v in result.placeholder_values().values() if v and v not in text]
        if stale:
            print(f"{workflow} does not reference the current board IDs", file=sys.stderr)
            ok = False

    if result.project is not None and result.project.kind is ResolutionKind.FAILED:
        print(f"Board {result.project_title!r} not found", file=sys.stderr)

    print("Verification passed." if ok else "Verification failed; run `td-kanban install`.")
    return EXIT_OK if ok else EXIT_INCOMPLETE


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = InstallerSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your environment / .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return EXIT_CONFIG

    configure_logging(settings.log_level)

    try:
        if args.command == "install":
            return _install(args, settings)
        if args.command == "verify":
            return _verify(args, settings)

        logger.error("Unknown command", extra={"command": args.command})
        return EXIT_CONFIG

    except PreflightError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_PREFLIGHT

    except (ProvisioningError, UnresolvedPlaceholdersError) as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_INCOMPLETE

    except Exception:
        logger.exception("Command failed")
        return EXIT_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
