import asyncio

import pytest

from hiring_pipeline.core.exceptions import FetchError, NotFoundError, ValidationError
from hiring_pipeline.evaluation.schemas import ResumeSource, TranscriptUploadSource
from hiring_pipeline.gateway.schemas import CandidateRoundOverrideRequest
from hiring_pipeline.models.candidate import RoundStatus
from hiring_pipeline.models.evaluation import FailureKind
from hiring_pipeline.models.round_template import RoundPipeline
from hiring_pipeline.pipeline.manager import RoundSessionManager
from hiring_pipeline.pipeline.session import RoundSession
from tests.fakes import INTERVIEW_ID, JOB_ID, SCREENING_ID, make_candidate, make_templates


def open_session(gateway, evaluation_client, round_template_id=SCREENING_ID):
    pipeline = RoundPipeline(make_templates())
    return RoundSession(
        JOB_ID,
        pipeline.get(round_template_id),
        pipeline,
        gateway,
        evaluation_client,
        page_size=2,
    )


@pytest.fixture
def screening_gateway(gateway):
    gateway.seed(SCREENING_ID, [
        make_candidate("a", status="selected", score=70),
        make_candidate("b"),
        make_candidate("c", status="rejected"),
    ])
    return gateway


async def test_open_seeds_ledger_and_starts_batch(screening_gateway, evaluation_client):
    session = open_session(screening_gateway, evaluation_client)

    assert await session.open()
    await session.batch.wait_idle()

    view = session.view()
    assert [c.candidate.id for c in view.candidates] == ["a", "b"]
    assert view.has_more
    assert view.changed_count == 0
    assert evaluation_client.batch_calls == [["cr-b"]]
    b = view.candidates[1]
    assert b.evaluation.overall_percentage_score == 80
    assert not b.evaluation_pending  # service returned a stored result id
    assert not b.evaluating


async def test_load_more_extends_ledger_and_evaluates_new_candidates(screening_gateway, evaluation_client):
    session = open_session(screening_gateway, evaluation_client)
    await session.open()
    session.set_status("b", RoundStatus.SELECTED)

    added = await session.load_more()
    await session.batch.wait_idle()

    assert [c.id for c in added] == ["c"]
    assert session.ledger.current("b") == RoundStatus.SELECTED
    assert session.ledger.current("c") == RoundStatus.REJECTED
    assert evaluation_client.batch_calls == [["cr-b"], ["cr-c"]]
    assert not session.view().has_more


async def test_status_edits_drive_counters(screening_gateway, evaluation_client):
    session = open_session(screening_gateway, evaluation_client)
    await session.open()

    session.set_status("b", RoundStatus.SELECTED)
    session.set_status("a", RoundStatus.REJECTED)
    view = session.view()

    assert view.changed_count == 2
    assert view.selected_count == 1
    assert view.has_unsaved_changes
    assert {c.candidate.id: c.changed for c in view.candidates} == {"a": True, "b": True}
    with pytest.raises(NotFoundError):
        session.set_status("zzz", RoundStatus.SELECTED)


async def test_save_statuses_writes_every_loaded_candidate(screening_gateway, evaluation_client):
    session = open_session(screening_gateway, evaluation_client)
    await session.open()
    session.set_status("b", RoundStatus.REJECTED)

    await session.save_statuses()

    updates = screening_gateway.status_updates[0]["updates"]
    assert {u.candidate_id: u.status for u in updates} == {"a": RoundStatus.SELECTED, "b": RoundStatus.REJECTED}
    assert session.view().changed_count == 0
    assert session.pagination.get("b").status_for(SCREENING_ID) == RoundStatus.REJECTED


async def test_edit_made_while_saving_stays_unsaved(screening_gateway, evaluation_client):
    session = open_session(screening_gateway, evaluation_client)
    await session.open()
    reached, release = screening_gateway.hold("bulk_update_status")

    saving = asyncio.create_task(session.save_statuses())
    await reached.wait()
    session.set_status("b", RoundStatus.REJECTED)
    release.set()
    await saving

    written = {u.candidate_id: u.status for u in screening_gateway.status_updates[0]["updates"]}
    assert written == {"a": RoundStatus.SELECTED, "b": RoundStatus.ACTION_PENDING}
    assert session.ledger.original("b") == RoundStatus.ACTION_PENDING
    view = session.view()
    assert view.has_unsaved_changes
    assert view.changed_count == 1


async def test_refresh_discards_unsaved_edits(screening_gateway, evaluation_client):
    session = open_session(screening_gateway, evaluation_client)
    await session.open()
    session.set_status("b", RoundStatus.SELECTED)

    await session.refresh()

    assert screening_gateway.invalidated == [SCREENING_ID]
    assert session.ledger.current("b") == RoundStatus.ACTION_PENDING


async def test_failed_load_is_reported(screening_gateway, evaluation_client):
    screening_gateway.fail_on["fetch"] = FetchError("down")
    session = open_session(screening_gateway, evaluation_client)

    with pytest.raises(FetchError):
        await session.open()
    assert session.view().load_error == "down"


async def test_re_evaluation_replaces_record_wholesale(gateway, evaluation_client):
    gateway.seed(INTERVIEW_ID, [make_candidate("a", template_id=INTERVIEW_ID, score=50)])
    session = open_session(gateway, evaluation_client, INTERVIEW_ID)
    await session.open()
    evaluation_client.results["cr-a"] = evaluation_client.success("cr-a", score=95, competency="System Design")

    session.show_re_evaluation_options("a")
    outcome = await session.re_evaluate("a", TranscriptUploadSource.from_bytes(b"transcript", "pdf"))

    assert outcome.succeeded
    record = session.pagination.get("a").evaluation_for(INTERVIEW_ID)
    assert record.overall_percentage_score == 95
    assert record.competency("Python") is None
    assert record.competency("System Design").percentage_score == 95
    assert session.view().candidates[0].re_evaluation.phase == "idle"


async def test_failed_re_evaluation_keeps_previous_record(screening_gateway, evaluation_client):
    session = open_session(screening_gateway, evaluation_client)
    await session.open()
    await session.batch.wait_idle()
    evaluation_client.results["cr-a"] = evaluation_client.failure("cr-a", FailureKind.EVALUATION_ERROR, "bad pdf")

    outcome = await session.re_evaluate("a", ResumeSource())

    assert not outcome.succeeded
    assert session.pagination.get("a").evaluation_for(SCREENING_ID).overall_percentage_score == 70
    assert session.re_evaluation.state("a").error == "bad pdf"


async def test_closed_session_drops_batch_results(screening_gateway, evaluation_client):
    evaluation_client.release = asyncio.Event()
    session = open_session(screening_gateway, evaluation_client)
    await session.open()

    session.close()
    evaluation_client.release.set()
    await session.batch.wait_idle()

    assert session.pagination.get("b").evaluation_for(SCREENING_ID) is None


async def test_candidate_round_override(screening_gateway, evaluation_client):
    session = open_session(screening_gateway, evaluation_client)
    await session.open()
    request = CandidateRoundOverrideRequest(
        evaluation_criteria="Weight SQL heavily",
        competencies=[{"name": "SQL"}],
    )

    updated = await session.update_candidate_round_override("a", request)

    assert screening_gateway.overrides[0]["candidate_round_id"] == "cr-a"
    assert updated.round_for(SCREENING_ID).evaluation_criteria == "Weight SQL heavily"
    assert session.pagination.get("a").round_for(SCREENING_ID).competencies[0]["name"] == "SQL"


async def test_save_blocked_while_advancing(screening_gateway, evaluation_client):
    session = open_session(screening_gateway, evaluation_client)
    await session.open()
    session.advancement.is_progressing = True

    with pytest.raises(ValidationError):
        await session.save_statuses()


async def test_manager_opens_and_switches_rounds(screening_gateway, evaluation_client):
    manager = RoundSessionManager(screening_gateway, evaluation_client, page_size=2)

    session = await manager.open_round(JOB_ID, SCREENING_ID)
    assert manager.get(JOB_ID) is session

    result = await session.advance()
    await session.batch.wait_idle()
    next_session = await manager.switch_to_next(JOB_ID)

    assert result.advanced
    assert session.closed
    assert next_session.round_template_id == INTERVIEW_ID
    assert next_session.pagination.state.total_count == 3
    assert {c.id: c.status_for(INTERVIEW_ID) for c in next_session.pagination.candidates} == {
        "a": RoundStatus.SELECTED,
        "b": RoundStatus.ACTION_PENDING,
    }

    await manager.close_all()
    assert screening_gateway.closed
    assert evaluation_client.closed
    with pytest.raises(NotFoundError):
        manager.get(JOB_ID)


async def test_manager_rejects_unknown_template(screening_gateway, evaluation_client):
    manager = RoundSessionManager(screening_gateway, evaluation_client)
    with pytest.raises(NotFoundError):
        await manager.open_round(JOB_ID, "tpl-missing")
