import pytest

from triage.review.stages import is_rejection, normalize_stage, stage_style


@pytest.mark.parametrize("raw", [None, "", "   "])
def test_normalize_stage_defaults_missing_values_to_review(raw) -> None:
    assert normalize_stage(raw) == "Review"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("pending", "Review"),
        ("interview", "Interview"),
        ("done", "Rejection"),
        ("Done", "Rejection"),
    ],
)
def test_normalize_stage_maps_legacy_vocabulary(raw: str, expected: str) -> None:
    assert normalize_stage(raw) == expected


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Stage 1", "Review"),
        ("stage1", "Review"),
        ("STAGE_1", "Review"),
        ("Stage 2", "Interview"),
        ("stage-2", "Interview"),
        ("rejection", "Rejection"),
    ],
)
def test_normalize_stage_maps_numbered_and_case_variants(raw: str, expected: str) -> None:
    assert normalize_stage(raw) == expected


@pytest.mark.parametrize("raw", ["Acceptance", "Onboarding", "Waitlist", "Stage 3", "Stage 4 - Onboarding"])
def test_normalize_stage_passes_downstream_labels_through(raw: str) -> None:
    assert normalize_stage(raw) == raw


@pytest.mark.parametrize(
    "raw",
    [None, "", " pending ", "Interview", "Stage 2", "Waitlist", "  odd value  ", "STAGE 9", "done", "Review"],
)
def test_normalize_stage_is_idempotent(raw) -> None:
    once = normalize_stage(raw)
    assert normalize_stage(once) == once


def test_is_rejection_uses_normalized_stage() -> None:
    assert is_rejection("done")
    assert is_rejection("Rejection")
    assert not is_rejection("Waitlist")
    assert not is_rejection(None)


@pytest.mark.parametrize(
    ("stage", "style"),
    [
        ("Rejection", "rejected"),
        ("Rejected - Stage 2", "rejected"),
        ("Stage 4 - Onboarding", "accepted"),
        ("Onboarding", "accepted"),
        ("Stage 3", "stage3"),
        ("Interview", "interview"),
        ("Stage 2", "interview"),
        ("Waitlist", "waitlist"),
        ("Stage 1", "review"),
        ("Review", "default"),
        ("Acceptance", "default"),
        (None, "default"),
    ],
)
def test_stage_style_follows_keyword_cascade(stage, style: str) -> None:
    assert stage_style(stage) == style
