from __future__ import annotations

import json
import textwrap
from pathlib import Path

from projectreports.cli import main
from projectreports.models import Issue, Label

REPO = 'https://github.com/acme/widgets/issues'

SNAPSHOT = [
    {
        'html_url': f'{REPO}/1',
        'number': 1,
        'title': 'Search Revamp',
        'body': '- [ ] #2\n- [ ] https://github.com/acme/widgets/issues/3\n',
        'labels': [{'name': 'Epic'}, {'name': 'status:green'}],
        'project_column': 'In Progress',
        'project_in_progress_at': '2020-05-01T00:00:00Z',
    },
    {
        'html_url': f'{REPO}/4',
        'number': 4,
        'title': 'Old Epic',
        'body': '- [ ] #2\n',
        'labels': [{'name': 'Epic'}],
        'project_column': 'Done',
    },
]


class _RecordingClient:
    def __init__(self) -> None:
        self.added: list[tuple[str, str]] = []
        self.fetched: list[str] = []

    async def get_issue(self, reference: str) -> Issue:
        self.fetched.append(reference)
        return Issue(html_url=reference, title='child', labels=[Label('feature')])

    async def ensure_issue_has_label(self, reference: str, name: str, color: str) -> None:
        self.added.append((reference, name))

    async def remove_issue_label(self, reference: str, name: str) -> None:  # pragma: no cover
        raise AssertionError('nothing should be removed')


def _write_snapshot(tmp_path: Path) -> Path:
    path = tmp_path / 'board.json'
    path.write_text(json.dumps(SNAPSHOT))
    return path


def test_in_progress_markdown(tmp_path, capsys) -> None:
    rc = main(['--quiet', 'in-progress', '--snapshot', str(_write_snapshot(tmp_path))])
    out = capsys.readouterr().out
    assert rc == 0
    assert '## :hourglass_flowing_sand: In Progress Epics' in out
    assert f'[Search Revamp]({REPO}/1)' in out
    assert 'Old Epic' not in out


def test_in_progress_json_to_file(tmp_path) -> None:
    output = tmp_path / 'report.json'
    rc = main(
        [
            '--quiet',
            'in-progress',
            '--snapshot',
            str(_write_snapshot(tmp_path)),
            '--json',
            '--output',
            str(output),
        ]
    )
    assert rc == 0
    payload = json.loads(output.read_text())
    assert payload['card_type'] == 'Epic'
    assert [c['title'] for c in payload['cards']] == ['Search Revamp']
    assert payload['cards'][0]['status'] == 'green'


def test_label_preview_uses_client_and_writes_summary(tmp_path, capsys) -> None:
    client = _RecordingClient()
    summary = tmp_path / 'summary.json'
    rc = main(
        [
            '--quiet',
            'label',
            '--snapshot',
            str(_write_snapshot(tmp_path)),
            '--summary-json',
            str(summary),
        ],
        client_factory=lambda cfg, args: client,
    )
    assert rc == 0
    assert client.fetched == [f'{REPO}/3', f'{REPO}/2']
    assert client.added == []
    assert '(preview)' in capsys.readouterr().out
    payload = json.loads(summary.read_text())
    assert payload['summary']['parents_skipped'] == 1
    assert payload['write'] is False


def test_label_write_flag_enables_writes(tmp_path) -> None:
    client = _RecordingClient()
    config = tmp_path / 'reports.yaml'
    config.write_text(
        textwrap.dedent(
            """\
            labeler:
              skip-columns: []
            """
        )
    )
    rc = main(
        [
            '--quiet',
            'label',
            '--config',
            str(config),
            '--snapshot',
            str(_write_snapshot(tmp_path)),
            '--write',
        ],
        client_factory=lambda cfg, args: client,
    )
    assert rc == 0
    assert (f'{REPO}/2', '> Progress') in client.added
    assert (f'{REPO}/2', '>> Old Epic') in client.added


def test_missing_snapshot_exit_code(tmp_path, capsys) -> None:
    rc = main(['--quiet', 'in-progress', '--snapshot', str(tmp_path / 'missing.json')])
    assert rc == 2
    assert 'Snapshot file not found' in capsys.readouterr().err


def test_missing_config_exit_code(tmp_path, capsys) -> None:
    rc = main(
        ['label', '--config', str(tmp_path / 'nope.yaml'), '--snapshot', str(_write_snapshot(tmp_path))]
    )
    assert rc == 2
    assert '[config]' in capsys.readouterr().err
