"""Issue form and automation workflow emitted into the target repository.

Both files are written unconditionally: anything already at those paths is
replaced. The workflow is written with placeholder tokens; see
`td_kanban.installer.substitution` for the second pass that fills them in.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from td_kanban.td_statuses import (
    PROJECT_ID_PLACEHOLDER,
    STATUS_FIELD_ID_PLACEHOLDER,
    STATUS_IDENTIFIED,
    TD_STATUS_SPECS,
)

logger = logging.getLogger(__name__)

ISSUE_TEMPLATE_PATH = Path(".github/ISSUE_TEMPLATE/td-traceability.yml")
WORKFLOW_PATH = Path(".github/workflows/td-project-automation.yml")

ISSUE_TITLE_PREFIX = "[TD] "

_ISSUE_TEMPLATE = f"""name: TD Traceability
description: Register and track a Technical Debt item
title: "{ISSUE_TITLE_PREFIX}"
labels:
  - {STATUS_IDENTIFIED}
body:
  - type: textarea
    id: context
    attributes:
      label: Context
      description: Describe the issue or problem identified
    validations:
      required: true
  - type: textarea
    id: impact
    attributes:
      label: Impact
      description: Describe the impact for tech or business
    validations:
      required: true
  - type: textarea
    id: evidences
    attributes:
      label: Evidences
      description: Links to videos, code, logs
  - type: textarea
    id: additional
    attributes:
      label: Additional details
      description: Original pull request, app version, analytics
"""

_WORKFLOW_HEAD = """name: TD Project Automation
on:
  issues:
    types: [opened, labeled, reopened]
jobs:
  sync-td-status:
    runs-on: ubuntu-latest
    steps:
      - uses: actions/github-script@v7
        with:
          # The default GITHUB_TOKEN cannot write user-owned projects; set
          # TD_PROJECT_TOKEN (a token with the `project` scope) for those.
          github-token: ${{ secrets.TD_PROJECT_TOKEN || secrets.GITHUB_TOKEN }}
          script: |
"""

# JavaScript body of the github-script step (indented under `script: |`).
_SCRIPT_HEAD = [
    f'const projectId = "{PROJECT_ID_PLACEHOLDER}";',
    f'const fieldId = "{STATUS_FIELD_ID_PLACEHOLDER}";',
    "const optionsByLabel = {",
]

_SCRIPT_TAIL = [
    "};",
    "",
    "const issue = context.payload.issue;",
    "const labels = (issue.labels || []).map((label) => label.name);",
    "const trigger = context.payload.label ? context.payload.label.name : null;",
    "let status = null;",
    "if (trigger && optionsByLabel[trigger]) {",
    "  status = trigger;",
    "} else {",
    "  status = labels.filter((name) => optionsByLabel[name]).pop() || null;",
    "}",
    "if (!status) {",
    '  core.info("No TD status label on this issue; nothing to do.");',
    "  return;",
    "}",
    "",
    "const added = await github.graphql(",
    "  `mutation($project: ID!, $content: ID!) {",
    "    addProjectV2ItemById(input: {projectId: $project, contentId: $content}) { item { id } }",
    "  }`,",
    "  { project: projectId, content: issue.node_id }",
    ");",
    "const itemId = added.addProjectV2ItemById.item.id;",
    "",
    "await github.graphql(",
    "  `mutation($project: ID!, $item: ID!, $field: ID!, $option: String!) {",
    "    updateProjectV2ItemFieldValue(",
    "      input: {projectId: $project, itemId: $item, fieldId: $field, value: {singleSelectOptionId: $option}}",
    "    ) { projectV2Item { id } }",
    "  }`,",
    "  { project: projectId, item: itemId, field: fieldId, option: optionsByLabel[status] }",
    ");",
    "core.info(`Issue #${issue.number} placed in column \"${status}\"`);",
]

_SCRIPT_INDENT = " " * 12


@dataclass(frozen=True, slots=True)
class EmittedTemplates:
    issue_template: Path
    workflow: Path


def render_issue_template() -> str:
    return _ISSUE_TEMPLATE


def render_workflow_template() -> str:
    """Workflow text with one placeholder per status plus the board tokens."""

    mapping = [
        f"  {json.dumps(spec.name)}: {json.dumps(spec.placeholder)},"
        for spec in TD_STATUS_SPECS
    ]
    script_lines = _SCRIPT_HEAD + mapping + _SCRIPT_TAIL
    script = "\n".join(
        f"{_SCRIPT_INDENT}{line}" if line else "" for line in script_lines
    )
    return _WORKFLOW_HEAD + script + "\n"


def emit_templates(target_dir: Path) -> EmittedTemplates:
    """Write the issue form and workflow under `target_dir`, overwriting both."""

    issue_template = target_dir / ISSUE_TEMPLATE_PATH
    workflow = target_dir / WORKFLOW_PATH

    for path, content in (
        (issue_template, render_issue_template()),
        (workflow, render_workflow_template()),
    ):
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.exists():
            logger.info("Overwriting existing file", extra={"path": str(path)})
        path.write_text(content, encoding="utf-8")

    return EmittedTemplates(issue_template=issue_template, workflow=workflow)
