"""Fuzzy subsequence matching shared by the selectors and cluster search."""

from __future__ import annotations

from collections.abc import Sequence

WORD_SEPARATORS = frozenset("-_/")
MATCH_SCORE = 1
CONSECUTIVE_BONUS = 2
WORD_BOUNDARY_BONUS = 3
SHORT_TARGET_BASE = 100


def fuzzy_match(query: str, target: str) -> int | None:
    """Score ``target`` against ``query``.

    Query characters must appear in ``target`` in order, ignoring case. Each
    matched character scores 1, plus 2 when the previous target character
    was matched as well, plus 3 when it starts the target or follows one of
    ``-``, ``_`` or ``/``. A full match also earns ``100 - len(target)``
    (never negative), so shorter targets rank first.

    Args:
        query: Text typed by the user.
        target: Candidate string.

    Returns:
        The score, or None when ``query`` is not a subsequence of ``target``.
        An empty query scores 0.
    """
    if not query:
        return 0

    needle = query.lower()
    haystack = target.lower()

    score = 0
    qi = 0
    prev_matched = False
    for ti, ch in enumerate(haystack):
        if qi < len(needle) and ch == needle[qi]:
            score += MATCH_SCORE
            if prev_matched:
                score += CONSECUTIVE_BONUS
            if ti == 0 or haystack[ti - 1] in WORD_SEPARATORS:
                score += WORD_BOUNDARY_BONUS
            prev_matched = True
            qi += 1
        else:
            prev_matched = False

    if qi < len(needle):
        return None
    return score + max(0, SHORT_TARGET_BASE - len(haystack))


def rank(query: str, candidates: Sequence[str]) -> list[int]:
    """Return indices of matching candidates, best score first.

    Equal scores keep the order the candidates were given in.
    """
    if not query:
        return list(range(len(candidates)))
    scored = [
        (idx, score)
        for idx, candidate in enumerate(candidates)
        if (score := fuzzy_match(query, candidate)) is not None
    ]
    scored.sort(key=lambda pair: pair[1], reverse=True)
    return [idx for idx, _ in scored]
