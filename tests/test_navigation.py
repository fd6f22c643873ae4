import pytest

from triage.review.navigation import adjacent, flag_successor, next_untriaged, should_move_flag

ORDER = ["rec1", "rec2", "rec3", "rec4"]


def _stages(**stages: str):
    return lambda candidate_id: stages.get(candidate_id, "Review")


def test_next_untriaged_scans_forward_and_wraps() -> None:
    stage_of = _stages(rec2="Interview", rec3="Rejection", rec4="Interview")

    assert next_untriaged(ORDER, set(ORDER), stage_of, "rec2") == "rec1"


def test_next_untriaged_skips_hidden_candidates() -> None:
    stage_of = _stages(rec1="Interview")
    visible = {"rec1", "rec2", "rec4"}

    assert next_untriaged(ORDER, visible, stage_of, "rec2") == "rec4"


def test_next_untriaged_starts_after_hidden_current() -> None:
    stage_of = _stages(rec2="Rejection")
    visible = {"rec1", "rec3", "rec4"}

    assert next_untriaged(ORDER, visible, stage_of, "rec2") == "rec3"


def test_next_untriaged_falls_back_to_any_visible() -> None:
    stage_of = _stages(rec1="Interview", rec2="Interview", rec3="Waitlist", rec4="Interview")

    assert next_untriaged(ORDER, set(ORDER), stage_of, "rec2") == "rec3"


def test_next_untriaged_keeps_current_when_alone() -> None:
    assert next_untriaged(["rec1"], {"rec1"}, _stages(rec1="Interview"), "rec1") == "rec1"
    assert next_untriaged(ORDER, set(), _stages(), "rec1") is None


def test_next_untriaged_without_selection_starts_at_top() -> None:
    assert next_untriaged(ORDER, set(ORDER), _stages(), None) == "rec1"


def test_adjacent_wraps_both_directions() -> None:
    assert adjacent(ORDER, "rec4", 1) == "rec1"
    assert adjacent(ORDER, "rec1", -1) == "rec4"
    assert adjacent(ORDER, "rec2", 1) == "rec3"


def test_adjacent_without_selection_picks_an_end() -> None:
    assert adjacent(ORDER, None, 1) == "rec1"
    assert adjacent(ORDER, None, -1) == "rec4"
    assert adjacent([], None, 1) is None


def test_adjacent_rejects_other_directions() -> None:
    with pytest.raises(ValueError):
        adjacent(ORDER, "rec1", 2)


def test_flag_successor_is_next_visible_after_holder() -> None:
    assert flag_successor(ORDER, {"rec1", "rec3"}, "rec1") == "rec3"
    assert flag_successor(ORDER, set(ORDER), None) is None


def test_should_move_flag_when_holder_has_been_triaged() -> None:
    stage_of = _stages(rec1="Interview")

    assert should_move_flag(ORDER, set(ORDER), stage_of, "rec1", "rec2")
    assert not should_move_flag(ORDER, set(ORDER), stage_of, "rec1", "rec3")


def test_should_move_flag_when_holder_is_hidden() -> None:
    stage_of = _stages(rec1="Rejection")

    assert should_move_flag(ORDER, {"rec2", "rec3", "rec4"}, stage_of, "rec1", "rec2")


def test_should_not_move_flag_while_holder_is_in_review() -> None:
    assert not should_move_flag(ORDER, set(ORDER), _stages(), "rec1", "rec2")
    assert not should_move_flag(ORDER, set(ORDER), _stages(), None, "rec2")
