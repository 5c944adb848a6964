from __future__ import annotations

from datetime import datetime, timedelta, timezone

from projectreports import in_progress
from projectreports.config import InProgressConfig
from projectreports.models import Issue, IssueComment, IssueList, Label

NOW = datetime(2020, 5, 10, 12, 0, tzinfo=timezone.utc)
REPO = 'https://github.com/acme/quotes-feed/issues'


def _ago(hours: float) -> datetime:
    return NOW - timedelta(hours=hours)


def _epic(n: int, title: str, column: str | None, *, labels: list[str], body: str = '', **kw) -> Issue:
    return Issue(
        html_url=f'{REPO}/{n}',
        number=n,
        title=title,
        body=body,
        project_column=column,
        labels=[Label('Epic'), *(Label(name) for name in labels)],
        **kw,
    )


def _board() -> IssueList:
    issues = IssueList(lambda issue: issue.html_url)
    issues.add(
        [
            _epic(
                16,
                'gRPC generation',
                'In Progress',
                labels=['status:red', '2-wip'],
                body='- [ ] #20\n- [ ] #21\n- [ ] #99\n',
                project_in_progress_at=_ago(130),
                comments=[IssueComment('### Update\nslipping', created_at=_ago(100))],
            ),
            _epic(
                14,
                'Initial Frontend',
                'In Progress',
                labels=['status: green'],
                project_in_progress_at=_ago(170),
                comments=[
                    IssueComment('## update\nall good', created_at=_ago(20)),
                    IssueComment('target date: 2020-06-01', created_at=_ago(30)),
                    IssueComment('Target Date: 2020-05-20', created_at=_ago(90)),
                ],
            ),
            _epic(15, 'Initial Web UI', 'Accepted', labels=[]),
            Issue(html_url=f'{REPO}/20', title='Codegen task', labels=[Label('feature')]),
            Issue(html_url=f'{REPO}/21', title='Proto task', project_column='In Progress'),
        ]
    )
    return issues


def test_process_builds_in_progress_cards() -> None:
    progress = in_progress.process(InProgressConfig(), _board(), now=NOW)

    assert progress.card_type == 'Epic'
    assert [c.title for c in progress.cards] == ['Initial Frontend', 'gRPC generation']

    frontend, grpc = progress.cards
    assert frontend.status == 'green'
    assert frontend.hours_in_progress > 160
    assert frontend.flag_hours_last_updated is False
    assert frontend.last_updated_ago == '20 hours ago'
    assert frontend.target_date == '2020-06-01'

    assert grpc.status == 'red'
    assert grpc.wips == 2
    assert grpc.hours_in_progress > 120
    assert grpc.in_progress_since == '5 days ago'
    assert grpc.flag_hours_last_updated is True
    assert grpc.member_count == 2


def test_drill_in_called_once_per_group_in_order() -> None:
    calls: list[tuple[str, str, list[str]]] = []

    def drill_in(identifier: str, title: str, cards: list[Issue]) -> None:
        calls.append((identifier, title, [c.html_url for c in cards]))

    progress = in_progress.process(InProgressConfig(), _board(), drill_in, now=NOW)

    assert [c[0] for c in calls] == [f'{REPO}/16', f'{REPO}/14', f'{REPO}/15']
    assert calls[0][2] == [f'{REPO}/20', f'{REPO}/21']
    assert calls[2][1] == 'Initial Web UI'
    # group 15 is reported to drill_in but is not in progress
    assert f'{REPO}/15' not in [c.html_url for c in progress.cards]


def test_missing_update_comment_is_flagged() -> None:
    issues = IssueList(lambda issue: issue.html_url)
    issues.add([_epic(1, 'Quiet', 'In Progress', labels=[], project_in_progress_at=_ago(2))])
    card = in_progress.process(InProgressConfig(), issues, now=NOW).cards[0]
    assert card.hours_last_updated == -1
    assert card.flag_hours_last_updated is True
    assert card.last_updated_ago == ''
    assert card.status == ''
    assert card.in_progress_since == '2 hours ago'


def test_last_updated_scheme_uses_issue_timestamp() -> None:
    issues = IssueList(lambda issue: issue.html_url)
    issues.add([_epic(1, 'Busy', 'In Progress', labels=[], updated_at=_ago(1))])
    config = InProgressConfig(last_updated_scheme='LastUpdated')
    card = in_progress.process(config, issues, now=NOW).cards[0]
    assert card.last_updated_ago == 'an hour ago'
    assert card.flag_hours_last_updated is False
    assert card.hours_in_progress == -1


def test_report_on_other_card_type() -> None:
    issues = IssueList(lambda issue: issue.html_url)
    issues.add(
        [
            Issue(html_url=f'{REPO}/1', title='Feature A', project_column='In Progress', labels=[Label('feature')]),
            _epic(2, 'Epic B', 'In Progress', labels=[]),
        ]
    )
    progress = in_progress.process(InProgressConfig(report_on='Feature'), issues, now=NOW)
    assert progress.card_type == 'Feature'
    assert [c.title for c in progress.cards] == ['Feature A']


def test_render_markdown() -> None:
    progress = in_progress.process(InProgressConfig(), _board(), now=NOW)
    markdown = in_progress.render_markdown(progress)

    assert '## :hourglass_flowing_sand: In Progress Epics' in markdown
    assert f'| [gRPC generation]({REPO}/16) | :exclamation: |' in markdown
    assert f'| [Initial Frontend]({REPO}/14) | :green_heart: |' in markdown
    grpc_row = next(line for line in markdown.splitlines() if 'gRPC' in line)
    assert grpc_row.rstrip().endswith(':triangular_flag_on_post: |')


def test_render_markdown_empty() -> None:
    markdown = in_progress.render_markdown(in_progress.ProgressData(card_type='Epic'))
    assert '_none_' in markdown


def test_render_markdown_custom_title() -> None:
    progress = in_progress.ProgressData(card_type='Feature')
    markdown = in_progress.render_markdown(progress, title_format='Active {card_type} work')

    assert markdown.splitlines()[0] == '## Active Feature work'


def test_humanize_ago() -> None:
    assert in_progress.humanize_ago(-1) == ''
    assert in_progress.humanize_ago(0.001) == 'a few seconds ago'
    assert in_progress.humanize_ago(1.5) == 'an hour ago'
    assert in_progress.humanize_ago(49) == '2 days ago'
    assert in_progress.humanize_ago(24 * 400) == 'a year ago'
