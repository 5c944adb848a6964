"""Reference labeler.

For every tracking issue on the board, each issue linked from its checklist
gets exactly one label per naming scheme:

* ``initiative`` - column prefix + the tracking issue's current column
* ``epic``       - linked prefix + the tracking issue's title

When a scheme already points at a different label, the stale label is only
*marked* for removal. Marks are held in a run-scoped :class:`PendingDeletions`
and a later pass that re-affirms the same label cancels the mark, so an issue
referenced by several tracking issues ends up with the label of the last pass
no matter how the earlier passes went. Removals are executed once, after
every tracking issue has been processed.

All client calls are awaited one at a time; the mark/cancel bookkeeping
relies on that ordering.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from .config import LabelerConfig
from .errors import IneligibleReferenceError, classify_error
from .github_client import TrackingClient
from .labels import derive_label
from .logging import get_logger
from .models import Issue, IssueList, normalize_label_name
from .references import extract_references

ACTION_SKIP_PARENT = 'skip_parent'
ACTION_INELIGIBLE = 'ineligible'
ACTION_EXISTS = 'exists'
ACTION_MARK_REMOVE = 'mark_remove'
ACTION_CANCEL_REMOVE = 'cancel_remove'
ACTION_ADD = 'add'
ACTION_REMOVE = 'remove'
ACTION_ERROR = 'error'


class PendingDeletions:
    """Labels provisionally marked stale, keyed by issue url.

    Owned by a single :func:`reconcile` call. Entries keep first-mark order and
    names compare the way labels do (trimmed, case-insensitive).
    """

    def __init__(self) -> None:
        self._entries: dict[str, list[str]] = {}

    @staticmethod
    def _find(names: list[str], label: str) -> int:
        for idx, name in enumerate(names):
            if _label_equals(name, label):
                return idx
        return -1

    def mark(self, issue_url: str, label: str) -> bool:
        names = self._entries.setdefault(issue_url, [])
        if self._find(names, label) >= 0:
            return False
        names.append(label)
        return True

    def cancel(self, issue_url: str, label: str) -> bool:
        names = self._entries.get(issue_url)
        if not names:
            return False
        idx = self._find(names, label)
        if idx < 0:
            return False
        del names[idx]
        return True

    def pending(self, issue_url: str) -> list[str]:
        return list(self._entries.get(issue_url, []))

    def as_dict(self) -> dict[str, list[str]]:
        return {url: list(names) for url, names in self._entries.items() if names}

    def drain(self) -> Iterator[tuple[str, list[str]]]:
        entries, self._entries = self._entries, {}
        for url, names in entries.items():
            if names:
                yield url, list(names)

    def __bool__(self) -> bool:
        return any(self._entries.values())


@dataclass(frozen=True)
class LabelAction:
    kind: str
    issue: str
    label: str | None = None
    detail: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {'kind': self.kind, 'issue': self.issue, 'label': self.label, 'detail': self.detail}


@dataclass
class ReconcileReport:
    write: bool
    actions: list[LabelAction] = field(default_factory=list)
    removed: dict[str, list[str]] = field(default_factory=dict)
    parents_processed: int = 0
    parents_skipped: int = 0
    references_seen: int = 0
    errors: int = 0

    def record(self, kind: str, issue: str, label: str | None = None, detail: str | None = None) -> None:
        self.actions.append(LabelAction(kind, issue, label, detail))
        if kind == ACTION_ERROR:
            self.errors += 1

    def to_dict(self) -> dict[str, Any]:
        return {
            'write': self.write,
            'summary': {
                'parents_processed': self.parents_processed,
                'parents_skipped': self.parents_skipped,
                'references_seen': self.references_seen,
                'errors': self.errors,
            },
            'actions': [a.to_dict() for a in self.actions],
            'removed': {url: list(names) for url, names in self.removed.items()},
        }


def _label_equals(a: str, b: str) -> bool:
    return normalize_label_name(a) == normalize_label_name(b)


async def ensure_only_label(
    client: TrackingClient,
    issue: Issue,
    label_name: str,
    prefix: str,
    config: LabelerConfig,
    pending: PendingDeletions,
    report: ReconcileReport,
) -> None:
    """Make ``label_name`` the only label on ``issue`` starting with ``prefix``."""
    logger = get_logger()
    preview = not config.write_labels
    url = issue.html_url

    if issue.has_label(label_name):
        logger.log_label_action('exists', url, label_name, dry_run=preview)
        report.record(ACTION_EXISTS, url, label_name)
        if pending.cancel(url, label_name):
            logger.log_label_action('cancel_remove', url, label_name, dry_run=preview)
            report.record(ACTION_CANCEL_REMOVE, url, label_name)
        return

    for label in issue.labels:
        name = label.name.strip()
        if name.startswith(prefix) and not _label_equals(name, label_name):
            if pending.mark(url, label.name):
                logger.log_label_action('mark_remove', url, label.name, dry_run=preview)
                report.record(ACTION_MARK_REMOVE, url, label.name)

    logger.log_label_action('add', url, label_name, dry_run=preview)
    report.record(ACTION_ADD, url, label_name)
    if pending.cancel(url, label_name):
        logger.log_label_action('cancel_remove', url, label_name, dry_run=preview)
        report.record(ACTION_CANCEL_REMOVE, url, label_name)
    if not preview:
        await client.ensure_issue_has_label(url, label_name, config.label_color)


async def _reconcile_reference(
    client: TrackingClient,
    reference: str,
    labels: list[tuple[str, str]],
    config: LabelerConfig,
    pending: PendingDeletions,
    report: ReconcileReport,
) -> None:
    issue = await client.get_issue(reference)
    if not issue.has_label(config.process_with_label):
        raise IneligibleReferenceError(reference, config.process_with_label)
    for label_name, prefix in labels:
        await ensure_only_label(client, issue, label_name, prefix, config, pending, report)


async def _drain(
    client: TrackingClient,
    config: LabelerConfig,
    pending: PendingDeletions,
    report: ReconcileReport,
) -> None:
    logger = get_logger()
    preview = not config.write_labels
    for url, names in pending.drain():
        report.removed[url] = names
        for name in names:
            logger.log_label_action('remove', url, name, dry_run=preview)
            report.record(ACTION_REMOVE, url, name)
            if preview:
                continue
            try:
                await client.remove_issue_label(url, name)
            except Exception as exc:  # noqa: BLE001 - one failed removal must not stop the rest
                info = classify_error(exc)
                logger.log_error(f"Failed to remove label '{name}' from {url}", error=info.message, category=info.category)
                report.record(ACTION_ERROR, url, name, detail=info.category)


async def reconcile(
    config: LabelerConfig,
    issue_list: IssueList,
    client: TrackingClient,
) -> ReconcileReport:
    """Label every checklist reference of every tracking issue in ``issue_list``."""
    logger = get_logger()
    report = ReconcileReport(write=config.write_labels)
    pending = PendingDeletions()
    if not config.write_labels:
        logger.info("Preview mode only: no labels will be written")

    with logger.timed_operation('label_reconcile'):
        for parent in issue_list.get_items():
            column = parent.project_column
            if column and column in config.skip_columns:
                logger.info(f"Skipping issue in column {column}", issue=parent.html_url)
                report.parents_skipped += 1
                report.record(ACTION_SKIP_PARENT, parent.html_url, detail=column)
                continue

            report.parents_processed += 1
            labels: list[tuple[str, str]] = []
            if column:
                labels.append((derive_label(config.column_label_prefix, column), config.column_label_prefix))
            labels.append((derive_label(config.linked_label_prefix, parent.title), config.linked_label_prefix))
            logger.info(
                f"Processing {parent.html_url}",
                issue=parent.html_url,
                initiative=column,
                epic=parent.title,
                labels=[name for name, _ in labels],
            )

            for reference in extract_references(parent):
                report.references_seen += 1
                try:
                    await _reconcile_reference(client, reference, labels, config, pending, report)
                except IneligibleReferenceError as exc:
                    logger.info(
                        f"Skipping {reference}: only processing issues labeled '{exc.label}'",
                        issue=reference,
                    )
                    report.record(ACTION_INELIGIBLE, reference, detail=exc.label)
                except Exception as exc:  # noqa: BLE001 - failures stay scoped to one reference
                    info = classify_error(exc)
                    logger.warning(
                        f"Ignoring invalid issue reference: {reference} ({info.message})",
                        issue=reference,
                        category=info.category,
                    )
                    report.record(ACTION_ERROR, reference, detail=info.category)

        logger.log_operation('label_cleanup', pending=pending.as_dict())
        await _drain(client, config, pending, report)
    return report


__all__ = [
    'LabelAction',
    'PendingDeletions',
    'ReconcileReport',
    'ensure_only_label',
    'reconcile',
]
