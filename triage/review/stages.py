from __future__ import annotations

import re

REVIEW = "Review"
INTERVIEW = "Interview"
REJECTION = "Rejection"
ACCEPTANCE = "Acceptance"
ONBOARDING = "Onboarding"
WAITLIST = "Waitlist"

TRIAGE_STAGES = (REVIEW, INTERVIEW, REJECTION)

_CANONICAL_BY_LOWER = {stage.lower(): stage for stage in TRIAGE_STAGES}
_LEGACY_STAGES = {
    "pending": REVIEW,
    "interview": INTERVIEW,
    "done": REJECTION,
}
_NUMBERED_STAGE_RE = re.compile(r"^stage[\s_-]*([12])$", re.IGNORECASE)
_NUMBERED_STAGES = {"1": REVIEW, "2": INTERVIEW}

# First matching keyword wins.
_STYLE_CASCADE: tuple[tuple[tuple[str, ...], str], ...] = (
    (("reject",), "rejected"),
    (("stage 4", "onboard"), "accepted"),
    (("stage 3",), "stage3"),
    (("interview", "stage 2"), "interview"),
    (("waitlist",), "waitlist"),
    (("stage 1",), "review"),
)


def normalize_stage(raw: str | None) -> str:
    if raw is None:
        return REVIEW
    stripped = raw.strip()
    if not stripped:
        return REVIEW

    lowered = stripped.lower()
    if lowered in _LEGACY_STAGES:
        return _LEGACY_STAGES[lowered]
    if lowered in _CANONICAL_BY_LOWER:
        return _CANONICAL_BY_LOWER[lowered]

    numbered = _NUMBERED_STAGE_RE.match(stripped)
    if numbered:
        return _NUMBERED_STAGES[numbered.group(1)]
    return raw


def is_rejection(stage: str | None) -> bool:
    return normalize_stage(stage) == REJECTION


def stage_style(stage: str | None) -> str:
    lowered = (stage or "").lower()
    for keywords, style in _STYLE_CASCADE:
        if any(keyword in lowered for keyword in keywords):
            return style
    return "default"
