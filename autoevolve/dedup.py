"""Deduplication filter: drop candidates already processed in the recent window."""

from collections.abc import Iterable

from autoevolve.models import GameRecord


def filter_unseen(
    candidates: Iterable[GameRecord], seen_ids: set[str] | frozenset[str]
) -> tuple[list[GameRecord], int]:
    """Return (candidates whose id is not in ``seen_ids``, number skipped).

    Order is preserved. A repeated id within ``candidates`` keeps its first
    occurrence only.
    """
    fresh = []
    taken: set[str] = set()
    skipped = 0
    for game in candidates:
        if game.id in seen_ids or game.id in taken:
            skipped += 1
            continue
        taken.add(game.id)
        fresh.append(game)
    return fresh, skipped
