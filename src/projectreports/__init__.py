"""project-reports - labeling and reporting for GitHub project boards.

High-level public API:

    from projectreports import IssueList, LabelerConfig, load_snapshot, reconcile

    issues = IssueList(lambda issue: issue.html_url)
    issues.add(load_snapshot('board.json'))
    report = await reconcile(LabelerConfig(), issues, client)

The CLI (``project-reports`` / ``python -m projectreports``) wraps the same calls.
"""

from __future__ import annotations

from .config import AppConfig, InProgressConfig, LabelerConfig, load_config
from .labeler import PendingDeletions, ReconcileReport, reconcile
from .labels import derive_label
from .models import Issue, IssueList, Label, load_snapshot
from .references import extract_references

__version__ = "0.2.0"

__all__ = [
    "AppConfig",
    "InProgressConfig",
    "Issue",
    "IssueList",
    "Label",
    "LabelerConfig",
    "PendingDeletions",
    "ReconcileReport",
    "derive_label",
    "extract_references",
    "load_config",
    "load_snapshot",
    "reconcile",
    "__version__",
]
