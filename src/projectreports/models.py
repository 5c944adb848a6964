from __future__ import annotations

import json
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from .errors import SnapshotError


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp as emitted by GitHub (``...Z`` suffix)."""
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def normalize_label_name(name: str) -> str:
    return name.strip().lower()


@dataclass(frozen=True)
class Label:
    name: str
    color: str = ""

    def matches(self, name: str) -> bool:
        return normalize_label_name(self.name) == normalize_label_name(name)

    @classmethod
    def from_payload(cls, payload: Any) -> Label:
        if isinstance(payload, str):
            return cls(name=payload)
        if isinstance(payload, Mapping):
            return cls(name=str(payload.get("name") or ""), color=str(payload.get("color") or ""))
        raise SnapshotError(f"Unsupported label payload: {payload!r}")


@dataclass
class IssueComment:
    body: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> IssueComment:
        return cls(
            body=str(payload.get("body") or ""),
            created_at=parse_timestamp(payload.get("created_at")),
            updated_at=parse_timestamp(payload.get("updated_at")),
        )


@dataclass
class Issue:
    """A card on the project board, as captured in a snapshot or fetched live."""

    html_url: str
    title: str
    body: str | None = None
    number: int | None = None
    labels: list[Label] = field(default_factory=list)
    project_column: str | None = None
    project_added_at: datetime | None = None
    project_in_progress_at: datetime | None = None
    project_done_at: datetime | None = None
    updated_at: datetime | None = None
    closed_at: datetime | None = None
    comments: list[IssueComment] = field(default_factory=list)

    def has_label(self, name: str) -> bool:
        return any(label.matches(name) for label in self.labels)

    @property
    def label_names(self) -> list[str]:
        return [label.name for label in self.labels]

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> Issue:
        html_url = payload.get("html_url")
        if not isinstance(html_url, str) or not html_url:
            raise SnapshotError("Issue payload is missing 'html_url'")
        number = payload.get("number")
        column = payload.get("project_column")
        return cls(
            html_url=html_url,
            title=str(payload.get("title") or ""),
            body=payload.get("body") if isinstance(payload.get("body"), str) else None,
            number=number if isinstance(number, int) else None,
            labels=[Label.from_payload(entry) for entry in payload.get("labels") or []],
            project_column=column if isinstance(column, str) and column else None,
            project_added_at=parse_timestamp(payload.get("project_added_at")),
            project_in_progress_at=parse_timestamp(payload.get("project_in_progress_at")),
            project_done_at=parse_timestamp(payload.get("project_done_at")),
            updated_at=parse_timestamp(payload.get("updated_at")),
            closed_at=parse_timestamp(payload.get("closed_at")),
            comments=[
                IssueComment.from_payload(entry)
                for entry in payload.get("comments") or []
                if isinstance(entry, Mapping)
            ],
        )


class IssueList:
    """Insertion-ordered issues with a lookup index built from ``key_fn``.

    Build once, read many: there is no removal. When ``key_fn`` yields a key
    that was already indexed the later issue wins the index slot, but both
    stay in :meth:`get_items`.
    """

    def __init__(self, key_fn: Callable[[Issue], str]) -> None:
        self._key_fn = key_fn
        self._items: list[Issue] = []
        self._index: dict[str, Issue] = {}

    def add(self, issues: Iterable[Issue]) -> None:
        for issue in issues:
            self._items.append(issue)
            self._index[self._key_fn(issue)] = issue

    def get_items(self) -> Iterator[Issue]:
        return iter(list(self._items))

    def get(self, key: str) -> Issue | None:
        return self._index.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._index

    def __len__(self) -> int:
        return len(self._items)


def load_snapshot(path: str | Path) -> list[Issue]:
    p = Path(path)
    if not p.exists():
        raise SnapshotError(f"Snapshot file not found: {p}")
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise SnapshotError(f"Invalid snapshot JSON in {p}: {exc}") from exc
    if not isinstance(raw, list):
        raise SnapshotError(f"Snapshot {p} must contain a JSON array of issues")
    return [Issue.from_payload(entry) for entry in raw if isinstance(entry, Mapping)]


__all__ = [
    "Issue",
    "IssueComment",
    "IssueList",
    "Label",
    "load_snapshot",
    "normalize_label_name",
    "parse_timestamp",
]
