"""Label name derivation.

Labels on GitHub are limited in length, so a free-text title is reduced to
its significant alphanumeric words and trimmed from the end until it fits.
"""

from __future__ import annotations

import re

MAX_LABEL_LENGTH = 50
NOISE_WORDS = frozenset({"the", "in", "and", "of", "&"})

_PARENTHESIZED = re.compile(r"\([^()]*\)")
_BRACKETED = re.compile(r" *\[[^\]]*\]")
_WORD = re.compile(r"[A-Za-z0-9&]+")


def derive_label(prefix: str, title: str) -> str:
    stripped = _BRACKETED.sub("", _PARENTHESIZED.sub("", title or ""))
    words = [w for w in _WORD.findall(stripped) if w.lower() not in NOISE_WORDS]

    head = prefix.strip()
    label = f"{head} Invalid"
    while words:
        label = f"{head} {' '.join(words)}"
        if len(label) <= MAX_LABEL_LENGTH:
            break
        words.pop()
    else:
        label = f"{head} Invalid"
    return label


__all__ = ["MAX_LABEL_LENGTH", "NOISE_WORDS", "derive_label"]
