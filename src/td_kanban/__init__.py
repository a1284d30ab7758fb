"""Technical Debt Kanban installer.

Provisions a Technical Debt tracking workflow inside a GitHub repository:
- an issue-intake form and TD status labels
- a GitHub Projects (V2) board with a single-select "Status" field
- an automation workflow that places TD issues in the matching board column
"""

__version__ = "0.1.0"

from td_kanban.installer.config import InstallerSettings

__all__ = ["__version__", "InstallerSettings"]
