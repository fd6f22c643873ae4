from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from triage.review.machine import ReviewStateMachine
from triage.review.stages import INTERVIEW, REJECTION, REVIEW, TRIAGE_STAGES, stage_style
from triage.review.store import Candidate


@dataclass(slots=True)
class CandidateView:
    id: str
    name: str
    company: str
    stage: str
    style: str
    ai_score: int
    active: bool
    flagged: bool
    badge_visible: bool
    hidden: bool
    pending_seconds: int | None = None


@dataclass(slots=True)
class Projection:
    visible: list[CandidateView] = field(default_factory=list)
    hidden: list[CandidateView] = field(default_factory=list)
    counts: dict[str, int] = field(default_factory=dict)


def sort_candidates(candidates: Iterable[Candidate], *, descending: bool = True) -> list[Candidate]:
    # Arrival order breaks ties in both directions.
    ordered = sorted(candidates, key=lambda candidate: candidate.arrival)
    return sorted(ordered, key=lambda candidate: candidate.created_time, reverse=descending)


def project(
    candidates: Iterable[Candidate],
    machine: ReviewStateMachine,
    *,
    descending: bool = True,
    show_hidden: bool = False,
    active_id: str | None = None,
    countdowns: dict[str, int] | None = None,
) -> Projection:
    countdowns = countdowns or {}
    projection = Projection(counts={REVIEW: 0, INTERVIEW: 0, REJECTION: 0, "other": 0, "hidden": 0})

    for candidate in sort_candidates(candidates, descending=descending):
        stage = machine.get_stage(candidate.id)
        hidden = machine.is_hidden(candidate.id)
        active = candidate.id == active_id
        flagged = candidate.id == machine.flag_holder
        view = CandidateView(
            id=candidate.id,
            name=candidate.display_name,
            company=candidate.company,
            stage=stage,
            style=stage_style(stage),
            ai_score=candidate.ai_score,
            active=active,
            flagged=flagged,
            badge_visible=active or flagged,
            hidden=hidden,
            pending_seconds=countdowns.get(candidate.id),
        )

        projection.counts[stage if stage in TRIAGE_STAGES else "other"] += 1
        if hidden:
            projection.counts["hidden"] += 1
            projection.hidden.append(view)
            if not show_hidden:
                continue
        projection.visible.append(view)
    return projection
