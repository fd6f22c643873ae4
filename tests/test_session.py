import asyncio

import pytest

from triage.review.machine import ReviewStateMachine
from triage.review.session import ReviewSession, UnknownCandidateError
from triage.review.store import CandidateStore
from triage.services.airtable import ProviderFetchError

from conftest import FakeProvider, make_record


def _records() -> list:
    return [
        make_record("rec1", "2025-01-04T00:00:00Z", Flag=True),
        make_record("rec2", "2025-01-03T00:00:00Z"),
        make_record("rec3", "2025-01-02T00:00:00Z", stage="Interview"),
        make_record("rec4", "2025-01-01T00:00:00Z"),
    ]


def _session(provider: FakeProvider, state_path=None, **store_options) -> ReviewSession:
    store = CandidateStore(provider, **store_options)
    machine = ReviewStateMachine(provider, write_delay_seconds=30)
    return ReviewSession(store, machine, state_path=state_path)


def test_load_selects_first_visible_candidate() -> None:
    provider = FakeProvider([_records()])
    session = _session(provider)

    asyncio.run(session.load())

    assert session.status == "ready"
    assert session.current_id == "rec1"
    assert session.machine.flag_holder == "rec1"
    assert session.view().projection.visible[0].active


def test_failed_load_reports_status_and_error() -> None:
    provider = FakeProvider([_records()])
    provider.fail_fetch = True
    session = _session(provider)

    with pytest.raises(ProviderFetchError):
        asyncio.run(session.load())

    assert session.status == "failed"
    assert "upstream unavailable" in (session.error or "")
    assert len(session.store) == 0


def test_failed_load_more_keeps_loaded_candidates() -> None:
    records = _records()
    provider = FakeProvider([records[:2], records[2:]])
    session = _session(provider, page_size=2, initial_limit=2)

    async def run():
        await session.load()
        provider.fail_fetch = True
        await session.load_more()

    with pytest.raises(ProviderFetchError):
        asyncio.run(run())

    assert session.load_more_failed is True
    assert session.view().has_more is True
    assert [candidate.id for candidate in session.store] == ["rec1", "rec2"]


def test_keyboard_triage_advances_and_moves_flag() -> None:
    provider = FakeProvider([_records()])
    session = _session(provider)

    async def run():
        await session.load()
        await session.press("i")
        after_interview = (session.current_id, session.machine.flag_holder)
        await session.press("r")
        after_reject = (session.current_id, session.machine.is_hidden("rec2"))
        await session.press("z")
        after_undo = (session.current_id, session.machine.is_hidden("rec2"))
        await session.aclose()
        return after_interview, after_reject, after_undo

    after_interview, after_reject, after_undo = asyncio.run(run())

    assert after_interview == ("rec2", "rec2")
    assert sorted(provider.updates) == [("rec1", {"Flag": False}), ("rec2", {"Flag": True})]
    assert after_reject == ("rec4", True)
    assert after_undo == ("rec2", False)
    assert session.machine.get_stage("rec2") == "Review"
    assert session.machine.get_stage("rec1") == "Interview"


def test_navigation_keys_and_unknown_key() -> None:
    provider = FakeProvider([_records()])
    session = _session(provider)

    async def run():
        await session.load()
        await session.press("k")
        wrapped = session.current_id
        await session.press("j")
        handled = await session.press("x")
        return wrapped, session.current_id, handled

    assert asyncio.run(run()) == ("rec4", "rec1", False)


def test_hidden_candidates_are_skipped_until_shown() -> None:
    records = _records()
    records.append(make_record("rec5", "2025-01-05T00:00:00Z", stage="Rejection"))
    provider = FakeProvider([records])
    session = _session(provider)

    asyncio.run(session.load())

    assert session.current_id == "rec1"
    assert session.adjacent(-1) == "rec4"
    session.set_show_hidden(True)
    assert session.adjacent(1) == "rec5"


def test_save_notes_reports_outcome() -> None:
    provider = FakeProvider([_records()])
    session = _session(provider)

    async def run():
        await session.load()
        saved = await session.save_notes("rec2", "follow up")
        provider.failing_ids.add("rec3")
        failed = await session.save_notes("rec3", "nope")
        return saved, failed

    assert asyncio.run(run()) == (True, False)
    assert ("rec2", {"Notes": "follow up"}) in provider.updates
    assert session.store.get("rec2").notes == "follow up"
    assert [notice.level for notice in session.machine.notices] == ["info", "error"]


def test_commands_reject_unknown_candidates() -> None:
    session = _session(FakeProvider([_records()]))
    asyncio.run(session.load())

    with pytest.raises(UnknownCandidateError):
        session.select("recMissing")
    with pytest.raises(UnknownCandidateError):
        session.hide("recMissing")


def test_review_state_survives_restart(tmp_path) -> None:
    state_path = tmp_path / "review-state.json"
    provider = FakeProvider([_records()])
    session = _session(provider, state_path=state_path)

    async def triage():
        await session.load()
        session.set_stage("rec2", "Interview")
        session.hide("rec4")
        session.set_sort(False)
        await session.aclose()

    asyncio.run(triage())
    assert state_path.exists()

    restored = _session(FakeProvider([_records()]), state_path=state_path)
    asyncio.run(restored.load())

    assert restored.machine.get_stage("rec2") == "Interview"
    assert restored.machine.get_stage("rec4") == "Rejection"
    assert restored.machine.is_hidden("rec4")
    assert restored.descending is False
    assert [entry.candidate_id for entry in restored.machine.history] == ["rec2", "rec4"]


def test_corrupt_state_file_is_ignored(tmp_path) -> None:
    state_path = tmp_path / "review-state.json"
    state_path.write_text("{not json", encoding="utf-8")

    session = _session(FakeProvider([_records()]), state_path=state_path)

    assert session.machine.history == []
    assert session.descending is True
