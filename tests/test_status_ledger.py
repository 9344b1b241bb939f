import pytest

from hiring_pipeline.core.exceptions import NotFoundError
from hiring_pipeline.models.candidate import RoundStatus
from hiring_pipeline.pipeline.status_ledger import StatusLedger
from tests.fakes import SCREENING_ID, make_candidate


@pytest.fixture
def ledger():
    ledger = StatusLedger(SCREENING_ID)
    ledger.seed([
        make_candidate("x", status="selected"),
        make_candidate("y"),
        make_candidate("z", status="rejected"),
    ])
    return ledger


def test_seed_sets_original_equal_to_current(ledger):
    for candidate_id in ("x", "y", "z"):
        assert ledger.original(candidate_id) == ledger.current(candidate_id)
    assert ledger.current("y") == RoundStatus.ACTION_PENDING
    assert ledger.diff() == {}
    assert not ledger.has_unsaved_changes


def test_seed_falls_back_to_legacy_status():
    ledger = StatusLedger(SCREENING_ID)
    ledger.seed([
        make_candidate("a", legacy_status="selected", with_round=False),
        make_candidate("b", with_round=False),
    ])
    assert ledger.current("a") == RoundStatus.SELECTED
    assert ledger.current("b") == RoundStatus.ACTION_PENDING


def test_seed_replaces_previous_contents(ledger):
    ledger.set_current("x", RoundStatus.REJECTED)
    ledger.seed([make_candidate("w")])
    assert len(ledger) == 1
    assert "x" not in ledger
    assert ledger.diff() == {}


def test_set_current_never_touches_original(ledger):
    ledger.set_current("y", RoundStatus.SELECTED)
    assert ledger.original("y") == RoundStatus.ACTION_PENDING
    assert ledger.current("y") == RoundStatus.SELECTED


def test_diff_contains_only_changed_candidates(ledger):
    ledger.set_current("y", RoundStatus.SELECTED)
    ledger.set_current("z", RoundStatus.ACTION_PENDING)
    ledger.set_current("x", RoundStatus.SELECTED)  # unchanged value

    assert ledger.diff() == {
        "y": (RoundStatus.ACTION_PENDING, RoundStatus.SELECTED),
        "z": (RoundStatus.REJECTED, RoundStatus.ACTION_PENDING),
    }
    assert ledger.changed_count == 2
    assert ledger.selected_count == 1


def test_reverting_an_edit_removes_it_from_diff(ledger):
    ledger.set_current("y", RoundStatus.SELECTED)
    ledger.set_current("y", RoundStatus.ACTION_PENDING)
    assert ledger.diff() == {}


def test_snapshot_all_has_one_entry_per_candidate(ledger):
    ledger.set_current("y", RoundStatus.SELECTED)
    snapshot = ledger.snapshot_all()
    assert snapshot == {
        "x": RoundStatus.SELECTED,
        "y": RoundStatus.SELECTED,
        "z": RoundStatus.REJECTED,
    }


def test_unknown_candidate_raises(ledger):
    with pytest.raises(NotFoundError):
        ledger.set_current("nope", RoundStatus.SELECTED)


def test_extend_keeps_existing_edits(ledger):
    ledger.set_current("x", RoundStatus.REJECTED)
    added = ledger.extend([make_candidate("x", status="selected"), make_candidate("q", status="selected")])
    assert added == 1
    assert ledger.current("x") == RoundStatus.REJECTED
    assert ledger.current("q") == RoundStatus.SELECTED
    assert ledger.original("q") == RoundStatus.SELECTED


def test_mark_persisted_clears_diff(ledger):
    ledger.set_current("y", RoundStatus.REJECTED)
    ledger.mark_persisted(ledger.snapshot_all())
    assert ledger.diff() == {}
    assert ledger.original("y") == RoundStatus.REJECTED


def test_mark_persisted_keeps_edits_made_after_the_snapshot(ledger):
    written = ledger.snapshot_all()
    ledger.set_current("y", RoundStatus.SELECTED)

    ledger.mark_persisted(written)

    assert ledger.original("y") == RoundStatus.ACTION_PENDING
    assert ledger.diff() == {"y": (RoundStatus.ACTION_PENDING, RoundStatus.SELECTED)}
    assert ledger.has_unsaved_changes


def test_status_read_is_scoped_to_template():
    ledger = StatusLedger("tpl-other")
    candidate = make_candidate("a", status="selected", template_id="tpl-other")
    ledger.seed([candidate])
    assert ledger.current("a") == RoundStatus.SELECTED
