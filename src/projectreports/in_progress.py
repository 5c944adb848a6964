"""In-progress report.

Cards of the configured type (issues carrying the ``report-on`` label) are
treated as groups whose members are the issues their checklist references.
Every group is offered to the caller's ``drill_in`` callback; the groups sitting
in an in-progress column become report cards with derived timing and status
fields, rendered by :func:`render_markdown`.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

from .config import InProgressConfig
from .logging import get_logger
from .models import Issue, IssueList
from .references import extract_references

DrillIn = Callable[[str, str, list[Issue]], None]

SECONDS_PER_HOUR = 3600.0
DEFAULT_TITLE_FORMAT = ':hourglass_flowing_sand: In Progress {card_type}s'
FLAG_EMOJI = ':triangular_flag_on_post:'
STATUS_EMOJI = {
    'green': ':green_heart:',
    'on track': ':green_heart:',
    'yellow': ':yellow_heart:',
    'at risk': ':yellow_heart:',
    'red': ':exclamation:',
    'off track': ':exclamation:',
}
UNKNOWN_STATUS_EMOJI = ':exclamation:'


@dataclass
class IssueCardEx:
    title: str
    number: int | None
    html_url: str
    labels: list[str] = field(default_factory=list)
    status: str = ''
    wips: int = 0
    hours_last_updated: float = -1
    last_updated_ago: str = ''
    flag_hours_last_updated: bool = True
    hours_in_progress: float = -1
    in_progress_since: str = ''
    target_date: str = ''
    member_count: int = 0


@dataclass
class ProgressData:
    card_type: str
    cards: list[IssueCardEx] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {'card_type': self.card_type, 'cards': [asdict(card) for card in self.cards]}


def hours_between(then: datetime | None, now: datetime) -> float:
    if then is None:
        return -1
    if then.tzinfo is None:
        then = then.replace(tzinfo=timezone.utc)
    return (now - then).total_seconds() / SECONDS_PER_HOUR


def humanize_ago(hours: float) -> str:
    """Relative phrase for a positive number of hours ("3 days ago")."""
    if hours < 0:
        return ''
    minutes = hours * 60
    if minutes < 1:
        return 'a few seconds ago'
    units: Sequence[tuple[str, float]] = (
        ('minute', 1 / 60),
        ('hour', 1),
        ('day', 24),
        ('month', 24 * 30),
        ('year', 24 * 365),
    )
    name, size = units[0]
    for unit_name, unit_size in units:
        if hours >= unit_size:
            name, size = unit_name, unit_size
    count = int(hours // size)
    if count == 1:
        article = 'an' if name == 'hour' else 'a'
        return f'{article} {name} ago'
    return f'{count} {name}s ago'


def status_from_labels(issue: Issue, pattern: str) -> str:
    regex = re.compile(pattern)
    for label in issue.labels:
        match = regex.search(label.name)
        if match:
            return match.group(0).strip().lower()
    return ''


def wips_from_labels(issue: Issue, pattern: str) -> int:
    regex = re.compile(pattern)
    total = 0
    for label in issue.labels:
        match = regex.search(label.name)
        if match and match.groups():
            try:
                total += int(match.group(1))
            except (TypeError, ValueError):
                continue
    return total


def _comment_time(comment: Any) -> datetime | None:
    return comment.updated_at or comment.created_at


def last_updated_hours(issue: Issue, config: InProgressConfig, now: datetime) -> float:
    if config.last_updated_scheme == 'LastUpdated':
        return hours_between(issue.updated_at, now)
    regex = re.compile(config.last_updated_scheme_data, re.MULTILINE)
    newest: datetime | None = None
    for comment in issue.comments:
        stamp = _comment_time(comment)
        if stamp is None or not regex.search(comment.body):
            continue
        if newest is None or stamp > newest:
            newest = stamp
    return hours_between(newest, now)


def target_date_from_comments(issue: Issue, field_name: str) -> str:
    if not field_name:
        return ''
    regex = re.compile(rf'{re.escape(field_name)}\s*:\s*(?P<value>.+)', re.IGNORECASE)
    dated = [c for c in issue.comments if _comment_time(c) is not None]
    for comment in sorted(dated, key=_comment_time, reverse=True):  # type: ignore[arg-type]
        match = regex.search(comment.body)
        if match:
            return match.group('value').strip()
    return ''


def group_members(issue: Issue, issue_list: IssueList) -> list[Issue]:
    members: list[Issue] = []
    seen: set[str] = set()
    for reference in extract_references(issue):
        member = issue_list.get(reference)
        if member is not None and member.html_url not in seen:
            seen.add(member.html_url)
            members.append(member)
    return members


def build_card(
    issue: Issue, config: InProgressConfig, now: datetime, member_count: int = 0
) -> IssueCardEx:
    hours_updated = last_updated_hours(issue, config, now)
    hours_in_progress = hours_between(issue.project_in_progress_at, now)
    return IssueCardEx(
        title=issue.title,
        number=issue.number,
        html_url=issue.html_url,
        labels=issue.label_names,
        status=status_from_labels(issue, config.status_label_match),
        wips=wips_from_labels(issue, config.wip_label_match),
        hours_last_updated=hours_updated,
        last_updated_ago=humanize_ago(hours_updated),
        flag_hours_last_updated=hours_updated < 0 or hours_updated / 24 > config.last_updated_days_flag,
        hours_in_progress=hours_in_progress,
        in_progress_since=humanize_ago(hours_in_progress),
        target_date=target_date_from_comments(issue, config.target_date_comment_field),
        member_count=member_count,
    )


def process(
    config: InProgressConfig,
    issue_list: IssueList,
    drill_in: DrillIn | None = None,
    now: datetime | None = None,
) -> ProgressData:
    now = now or datetime.now(tz=timezone.utc)
    progress = ProgressData(card_type=config.report_on)
    columns = {c.strip().lower() for c in config.in_progress_columns}

    for issue in issue_list.get_items():
        if not issue.has_label(config.report_on):
            continue
        members = group_members(issue, issue_list)
        if drill_in is not None:
            drill_in(issue.html_url, issue.title, members)
        column = (issue.project_column or '').strip().lower()
        if column not in columns:
            continue
        progress.cards.append(build_card(issue, config, now, member_count=len(members)))

    progress.cards.sort(key=lambda card: card.hours_in_progress, reverse=True)
    get_logger().debug(
        f"In progress {config.report_on} cards: {len(progress.cards)}",
        card_type=config.report_on,
    )
    return progress


def _status_cell(status: str) -> str:
    return STATUS_EMOJI.get(status, UNKNOWN_STATUS_EMOJI)


def render_markdown(progress: ProgressData, title_format: str = DEFAULT_TITLE_FORMAT) -> str:
    """Render cards as a markdown table under a ``title_format`` heading.

    ``title_format`` may use ``{card_type}``.
    """
    lines = [
        f'## {title_format.format(card_type=progress.card_type)}',
        '',
        f'| {progress.card_type} | Status | Last Updated | In Progress | Target Date | Flag |',
        '| :--- | :---: | :--- | :--- | :--- | :---: |',
    ]
    for card in progress.cards:
        updated = card.last_updated_ago or 'never'
        flag = FLAG_EMOJI if card.flag_hours_last_updated else ''
        lines.append(
            f'| [{card.title}]({card.html_url}) | {_status_cell(card.status)} | {updated} '
            f'| {card.in_progress_since} | {card.target_date} | {flag} |'
        )
    if not progress.cards:
        lines.append('| _none_ | | | | | |')
    return '\n'.join(lines) + '\n'


__all__ = [
    'IssueCardEx',
    'ProgressData',
    'build_card',
    'group_members',
    'humanize_ago',
    'process',
    'render_markdown',
]
