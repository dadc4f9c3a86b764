# src/clickup_focus/core/search.py

from __future__ import annotations

from collections.abc import Sequence

from .models import DisplayEntity

WORD_BOUNDARY_BONUS = 10
CONSECUTIVE_BONUS = 5
SUBSTRING_BONUS = 20


def fuzzy_score(text: str | None, query: str) -> int | None:
    """
    Score `query` as a case-insensitive subsequence of `text`.

    Returns None when some query character cannot be matched in order.
    Higher is better: word-boundary hits, consecutive runs and whole-substring
    matches all add to the score.
    """
    q = query.lower()
    if not q:
        return 0
    if not text:
        return None

    t = text.lower()
    qi = 0
    score = 0
    last: int | None = None

    for ti, ch in enumerate(t):
        if qi >= len(q):
            break
        if ch != q[qi]:
            continue
        if last is not None and ti == last + 1:
            score += CONSECUTIVE_BONUS
        if ti == 0 or not t[ti - 1].isalnum():
            score += WORD_BOUNDARY_BONUS
        score += 1
        last = ti
        qi += 1

    if qi < len(q):
        return None
    if q in t:
        score += SUBSTRING_BONUS
    return score


def score_entity(entity: DisplayEntity, query: str) -> int | None:
    """First matching field wins: title, id, custom id, list, status, tags, description."""
    task = entity.task
    fields: list[str | None] = [
        task.title,
        task.id,
        task.custom_id,
        task.list_name,
        task.status,
        *task.tags,
        task.description,
    ]
    for value in fields:
        s = fuzzy_score(value, query)
        if s is not None:
            return s
    return None


def search(entities: Sequence[DisplayEntity], query: str | None) -> list[DisplayEntity]:
    """
    Fuzzy search over entities regardless of group.

    Empty query returns the input unchanged. Otherwise only matches are returned,
    best first; equal scores keep the default view ordering.
    """
    q = (query or "").strip()
    if not q:
        return list(entities)

    scored: list[tuple[int, DisplayEntity]] = []
    for e in entities:
        s = score_entity(e, q)
        if s is not None:
            scored.append((s, e))

    scored.sort(key=lambda pair: (-pair[0], pair[1].order_key()))
    return [e for _, e in scored]
