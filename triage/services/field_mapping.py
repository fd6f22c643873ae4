from __future__ import annotations

import re
from typing import Any

# Provider column name -> candidate attribute name.
FIELD_MAPPINGS: dict[str, str] = {
    "Email": "email",
    "Email Address": "email",
    "First": "first_name",
    "Last": "last_name",
    "First Name": "first_name",
    "Last Name": "last_name",
    "Name": "name",
    "Project name": "company",
    "Phone": "phone",
    "Birthday": "birthday",
    "Born": "birthday",
    "Location": "location",
    "Technical?": "technical",
    "Previously applied?": "previously_applied",
    "Stage": "stage",
    "Accept or Reject or Waitlist": "decision",
    "Flag": "flag",
    "Notes": "notes",
    "Stage 2 Link To Calendar": "stage2_calendar",
    "Stage 3 Schedule and Date": "stage3_schedule",
    "Stage 4 Onboarding Doc": "stage4_onboarding",
    "Upcoming Cohort Date": "upcoming_cohort_date",
    "Waitlist Update": "waitlist_update",
    "Cory Interview: Energy": "interview_energy",
    "Cory Interview: Overall score?": "interview_overall_score",
    "Cory Interview: Smart?": "interview_smart",
    "Cory Interview: Storytelling?": "interview_storytelling",
    "Cory notes": "interview_notes",
    "School or Work": "school_or_work",
    "What is the project that you are currently working on or would like to pursue? Why?": "project_description",
    "What problem are you solving?": "problem_solving",
    "What expertise do you have to execute on the work that you want to do?": "expertise",
    "Who are your competitors and what do you understand about your idea that they don't?": "competitors",
    "What have you worked on in the past?": "past_work",
    "What's the nerdiest thing about you?": "nerdy",
    "What drives you?": "drives",
    "What non-traditional things were you doing growing up?": "non_traditional",
    (
        "Tell us about a risk you've taken or a challenge you've faced. Tell us whether you failed or "
        "succeeded, how you behaved, and how you think this reflects your character."
    ): "risk_or_challenge",
    "Please list or describe any achievements and prizes.": "achievements",
    "Website": "website",
    "Video Link": "video_link",
    "Video": "video_link",
    "Pitch Video": "pitch_video",
    "Pitch video": "pitch_video",
    "Cofounder": "cofounder",
    "Dream Cofounder": "cofounder",
    "How did you hear about us?": "how_heard",
    "How did you hear about Z Fellows?": "how_heard",
    "What help do you need?": "help_needed",
    "Help Needed": "help_needed",
}

DISPLAY_FIELDS = (
    "email",
    "phone",
    "location",
    "technical",
    "previously_applied",
    "birthday",
    "school_or_work",
    "project_description",
    "problem_solving",
    "expertise",
    "competitors",
    "past_work",
    "nerdy",
    "drives",
    "non_traditional",
    "risk_or_challenge",
    "website",
    "achievements",
    "video_link",
    "pitch_video",
    "cofounder",
    "how_heard",
    "help_needed",
)

NEUTRAL_AI_SCORE = 50

_NON_WORD_RE = re.compile(r"[^a-zA-Z0-9]+")


def snake_case(field_name: str) -> str:
    words = [word.lower() for word in _NON_WORD_RE.split(field_name) if word]
    return "_".join(words)


def map_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """Translate provider columns into candidate attributes with display defaults."""
    attributes: dict[str, Any] = {}
    for provider_name, attribute in FIELD_MAPPINGS.items():
        if provider_name in fields and attribute not in attributes:
            attributes[attribute] = fields[provider_name]

    for provider_name, value in fields.items():
        if provider_name in FIELD_MAPPINGS:
            continue
        key = snake_case(provider_name)
        if key and key not in attributes:
            attributes[key] = value

    name = attributes.get("name")
    if not attributes.get("first_name") and not attributes.get("last_name") and isinstance(name, str):
        first, _, rest = name.strip().partition(" ")
        attributes["first_name"] = first
        attributes["last_name"] = rest.strip()

    attributes["first_name"] = attributes.get("first_name") or "Unknown"
    attributes["last_name"] = attributes.get("last_name") or ""
    attributes["company"] = attributes.get("company") or "No Project"
    for attribute in DISPLAY_FIELDS:
        attributes[attribute] = attributes.get(attribute) or ""
    attributes["ai_score"] = _as_score(attributes.get("ai_score"))
    return attributes


def _as_score(value: Any) -> int:
    try:
        score = int(value)
    except (TypeError, ValueError):
        return NEUTRAL_AI_SCORE
    return max(0, min(100, score))
