from __future__ import annotations

import pytest

from projectreports.labels import MAX_LABEL_LENGTH, NOISE_WORDS, derive_label


def test_strips_parenthetical_and_brackets() -> None:
    assert derive_label('>> ', 'gRPC (v2) generation [beta]') == '>> gRPC generation'


def test_drops_noise_words_case_insensitively() -> None:
    assert derive_label('> ', 'The State of Auth & Billing in Europe') == '> State Auth Billing Europe'


def test_column_name_becomes_label() -> None:
    assert derive_label('> ', 'In Progress') == '> Progress'
    assert derive_label('> ', 'Backlog') == '> Backlog'


def test_punctuation_splits_words() -> None:
    assert derive_label('>> ', 'Initial Web-UI: v1.0!') == '>> Initial Web UI v1 0'


def test_long_titles_trimmed_from_end() -> None:
    title = 'Support streaming responses for every public endpoint across all regions'
    label = derive_label('>> ', title)
    assert len(label) <= MAX_LABEL_LENGTH
    assert label == '>> Support streaming responses for every public'
    assert title.startswith(label[3:])


@pytest.mark.parametrize('title', ['', '()', '[wip]', 'the and of', '--- !!!', 'x' * 60])
def test_invalid_when_no_words_fit(title: str) -> None:
    assert derive_label('  >> ', title) == '>> Invalid'


def test_output_tokens_come_from_title() -> None:
    titles = [
        'Migrate the billing service (phase 2) to the new cluster and decommission old nodes',
        'Q3 [draft] roadmap of the platform team',
        'A & B',
    ]
    for title in titles:
        label = derive_label('> ', title)
        assert len(label) <= MAX_LABEL_LENGTH
        head, _, rest = label.partition(' ')
        assert head == '>'
        if rest == 'Invalid':
            continue
        for token in rest.split(' '):
            assert token in title
            assert token.lower() not in NOISE_WORDS


def test_deterministic() -> None:
    assert derive_label('>> ', 'Same title') == derive_label('>> ', 'Same title')
