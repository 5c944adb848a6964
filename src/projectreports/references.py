"""Checklist reference extraction.

Tracking issues list their children as markdown task items::

    - [ ] https://github.com/acme/widgets/issues/12
    - [x] #14 follow-up

Only links and ``#N`` short references that follow a checklist marker on the
same line are considered. Short references are local to the repository that
owns the tracking issue, so they resolve against its URL.
"""

from __future__ import annotations

import re
from urllib.parse import urljoin

from .models import Issue

CHECKLIST_MARKER = re.compile(r"-\s*\[[^\]\n]*\]")
LINK_PATTERN = re.compile(r"https?://(?:[/\-\w.]|%[\da-fA-F]{2})+")
SHORT_REF_PATTERN = re.compile(r"#(\d+)")


def _checklist_tails(body: str) -> list[str]:
    tails: list[str] = []
    for line in body.splitlines():
        marker = CHECKLIST_MARKER.search(line)
        if marker:
            tails.append(line[marker.end():])
    return tails


def resolve_short_reference(owner_url: str, number: str) -> str:
    return urljoin(owner_url, number)


def extract_references(issue: Issue) -> list[str]:
    if not issue.body:
        return []
    tails = _checklist_tails(issue.body)

    links: list[str] = []
    short_refs: list[str] = []
    for tail in tails:
        links.extend(LINK_PATTERN.findall(tail))
        short_refs.extend(SHORT_REF_PATTERN.findall(tail))

    return links + [resolve_short_reference(issue.html_url, ref) for ref in short_refs]


__all__ = ["extract_references", "resolve_short_reference"]
