from __future__ import annotations

from typing import Callable, Collection, Sequence

from triage.review.stages import REVIEW, normalize_stage

StageLookup = Callable[[str], str]


def _ring(order: Sequence[str], current_id: str | None) -> list[str]:
    """Every id except ``current_id``, starting right after it and wrapping."""
    if current_id is None or current_id not in order:
        return list(order)
    position = order.index(current_id)
    return [*order[position + 1 :], *order[:position]]


def next_untriaged(
    order: Sequence[str],
    visible: Collection[str],
    stage_of: StageLookup,
    current_id: str | None,
) -> str | None:
    """Pick the next candidate to review.

    Prefers the nearest visible candidate still in Review, scanning forward
    from ``current_id`` and wrapping; otherwise the nearest visible candidate
    in any stage. ``order`` is the full sort order, hidden candidates
    included, so the scan starts from the right place even when the current
    candidate was just hidden.
    """
    ring = _ring(order, current_id)
    for candidate_id in ring:
        if candidate_id in visible and normalize_stage(stage_of(candidate_id)) == REVIEW:
            return candidate_id
    for candidate_id in ring:
        if candidate_id in visible:
            return candidate_id
    if current_id is not None and current_id in visible:
        return current_id
    return None


def adjacent(visible_order: Sequence[str], current_id: str | None, direction: int) -> str | None:
    if direction not in (1, -1):
        raise ValueError("direction must be 1 or -1")
    if not visible_order:
        return None
    if current_id is None or current_id not in visible_order:
        return visible_order[0] if direction > 0 else visible_order[-1]
    position = visible_order.index(current_id)
    return visible_order[(position + direction) % len(visible_order)]


def flag_successor(order: Sequence[str], visible: Collection[str], flag_holder: str | None) -> str | None:
    if flag_holder is None:
        return None
    return next((candidate_id for candidate_id in _ring(order, flag_holder) if candidate_id in visible), None)


def should_move_flag(
    order: Sequence[str],
    visible: Collection[str],
    stage_of: StageLookup,
    flag_holder: str | None,
    current_id: str | None,
) -> bool:
    if flag_holder is None or current_id is None or flag_holder == current_id:
        return False
    passed = flag_holder not in visible or normalize_stage(stage_of(flag_holder)) != REVIEW
    return passed and flag_successor(order, visible, flag_holder) == current_id
