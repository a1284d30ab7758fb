"""Unit tests for issue form and workflow emission."""

from __future__ import annotations

from pathlib import Path

from td_kanban.installer.substitution import find_placeholders
from td_kanban.installer.templates import (
    ISSUE_TEMPLATE_PATH,
    WORKFLOW_PATH,
    emit_templates,
    render_issue_template,
    render_workflow_template,
)
from td_kanban.td_statuses import all_placeholders


def test_issue_template_declares_the_four_fields_and_initial_label() -> None:
    text = render_issue_template()

    for label in ("label: Context", "label: Impact", "label: Evidences", "label: Additional details"):
        assert label in text
    assert text.count("required: true") == 2
    assert "  - TD identified\n" in text
    assert 'title: "[TD] "' in text


def test_workflow_template_declares_every_placeholder_once_per_status() -> None:
    text = render_workflow_template()

    assert find_placeholders(text) == all_placeholders()
    assert '"TD in repayment": "__TD_IN_REPAYMENT__",' in text
    assert "types: [opened, labeled, reopened]" in text
    assert "actions/github-script@v7" in text
    assert "secrets.TD_PROJECT_TOKEN || secrets.GITHUB_TOKEN" in text


def test_workflow_script_is_indented_under_the_literal_block() -> None:
    lines = render_workflow_template().splitlines()
    start = lines.index("          script: |")

    body = [line for line in lines[start + 1 :] if line]
    assert body
    assert all(line.startswith(" " * 12) for line in body)


def test_emit_templates_creates_parent_directories(tmp_path: Path) -> None:
    emitted = emit_templates(tmp_path)

    assert emitted.issue_template == tmp_path / ISSUE_TEMPLATE_PATH
    assert emitted.workflow == tmp_path / WORKFLOW_PATH
    assert emitted.issue_template.read_text(encoding="utf-8") == render_issue_template()
    assert emitted.workflow.read_text(encoding="utf-8") == render_workflow_template()


def test_emit_templates_overwrites_existing_files(tmp_path: Path) -> None:
    workflow = tmp_path / WORKFLOW_PATH
    workflow.parent.mkdir(parents=True)
    workflow.write_text("name: hand edited\n", encoding="utf-8")

    emit_templates(tmp_path)

    assert workflow.read_text(encoding="utf-8") == render_workflow_template()
    assert not list(workflow.parent.glob("*.bak"))
