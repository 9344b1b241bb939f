import asyncio

import pytest

from hiring_pipeline.core.exceptions import ActivationError, PersistError, ValidationError
from hiring_pipeline.models.candidate import RoundStatus
from hiring_pipeline.models.round_template import RoundPipeline
from hiring_pipeline.pipeline.advancement import AdvancementStep, StageAdvancementProtocol
from hiring_pipeline.pipeline.pagination import PaginationCache
from hiring_pipeline.pipeline.status_ledger import StatusLedger
from tests.fakes import INTERVIEW_ID, SCREENING_ID, FakeGateway, make_candidate, make_templates


@pytest.fixture
def gateway():
    gateway = FakeGateway(page_size=1)
    gateway.seed(SCREENING_ID, [
        make_candidate("x", status="selected"),
        make_candidate("y", status="action_pending"),
        make_candidate("z", status="rejected"),
    ])
    return gateway


@pytest.fixture
def pipeline():
    return RoundPipeline(make_templates())


async def loaded_protocol(gateway, round_template_id=SCREENING_ID):
    pagination = PaginationCache(gateway, page_size=1)
    await pagination.load(round_template_id)
    ledger = StatusLedger(round_template_id)
    ledger.seed(pagination.candidates)
    return StageAdvancementProtocol(gateway, pagination, ledger)


def as_pairs(updates):
    return [(u.candidate_id, u.status) for u in updates]


async def test_every_candidate_carries_its_exact_status(gateway, pipeline):
    protocol = await loaded_protocol(gateway)
    assert len(protocol.ledger) == 1  # only page 1 is visible

    result = await protocol.advance(pipeline.get(SCREENING_ID), pipeline)

    expected = [
        ("x", RoundStatus.SELECTED),
        ("y", RoundStatus.ACTION_PENDING),
        ("z", RoundStatus.REJECTED),
    ]
    assert result.advanced
    assert result.to_round_template_id == INTERVIEW_ID
    assert as_pairs(gateway.status_updates[0]["updates"]) == expected
    assert gateway.status_updates[0]["round_template_id"] == SCREENING_ID
    assert gateway.confirmed == [INTERVIEW_ID]
    assert gateway.created[0]["round_template_id"] == INTERVIEW_ID
    assert as_pairs(gateway.created[0]["updates"]) == expected
    assert gateway.created[0]["created_by"] == "system"
    assert result.cohort_size == 3
    assert result.status_counts == {"selected": 1, "action_pending": 1, "rejected": 1}
    assert not protocol.is_progressing


async def test_next_cohort_matches_snapshot_with_local_edits(gateway, pipeline):
    protocol = await loaded_protocol(gateway)
    protocol.ledger.set_current("x", RoundStatus.REJECTED)

    await protocol.advance(pipeline.get(SCREENING_ID), pipeline, created_by="recruiter-7")

    snapshot = protocol.ledger.snapshot_all()
    created = gateway.created[0]["updates"]
    assert len(created) == len(snapshot) == 3
    assert {u.candidate_id: u.status for u in created} == snapshot
    assert snapshot["x"] == RoundStatus.REJECTED
    assert gateway.created[0]["created_by"] == "recruiter-7"
    assert protocol.ledger.diff() == {}


async def test_steps_run_in_order(gateway, pipeline):
    protocol = await loaded_protocol(gateway)
    steps, progress = [], []

    await protocol.advance(
        pipeline.get(SCREENING_ID),
        pipeline,
        on_progress=lambda *args: progress.append(args),
        on_step=steps.append,
    )

    assert steps == [
        AdvancementStep.FETCH_COHORT,
        AdvancementStep.PERSIST_STATUSES,
        AdvancementStep.ACTIVATE_NEXT,
        AdvancementStep.SEED_NEXT,
        AdvancementStep.CREATE_NEXT_ROUNDS,
        AdvancementStep.COMPLETE,
    ]
    assert progress == [(1, 3, 1), (2, 3, 2), (3, 3, 3)]


async def test_failure_is_tagged_and_retry_runs_from_the_top(gateway, pipeline):
    protocol = await loaded_protocol(gateway)
    gateway.fail_on["confirm_round_template"] = ActivationError("confirm failed")

    with pytest.raises(ActivationError) as exc_info:
        await protocol.advance(pipeline.get(SCREENING_ID), pipeline)

    assert exc_info.value.details["step"] == "activate_next"
    assert not protocol.is_progressing
    assert gateway.created == []
    assert len(gateway.status_updates) == 1

    result = await protocol.advance(pipeline.get(SCREENING_ID), pipeline)
    assert result.advanced
    assert len(gateway.status_updates) == 2
    assert gateway.confirmed == [INTERVIEW_ID]
    assert len(gateway.created) == 1


async def test_persist_failure_stops_before_activation(gateway, pipeline):
    protocol = await loaded_protocol(gateway)
    gateway.fail_on["bulk_update_status"] = PersistError("write failed")

    with pytest.raises(PersistError) as exc_info:
        await protocol.advance(pipeline.get(SCREENING_ID), pipeline)

    assert exc_info.value.details["step"] == "persist_statuses"
    assert gateway.confirmed == []
    assert not protocol.is_progressing


async def test_last_round_reports_no_next_round(gateway, pipeline):
    gateway.seed("tpl-project", [make_candidate("p", template_id="tpl-project")])
    protocol = await loaded_protocol(gateway, "tpl-project")

    result = await protocol.advance(pipeline.get("tpl-project"), pipeline)

    assert not result.advanced
    assert result.reason == "no_next_round"
    assert gateway.status_updates == []
    assert gateway.confirmed == []


async def test_concurrent_advance_is_rejected(gateway, pipeline):
    protocol = await loaded_protocol(gateway)
    gate = asyncio.Event()
    gateway.gates[2] = gate

    first = asyncio.create_task(protocol.advance(pipeline.get(SCREENING_ID), pipeline))
    await asyncio.sleep(0)
    assert protocol.is_progressing

    with pytest.raises(ValidationError):
        await protocol.advance(pipeline.get(SCREENING_ID), pipeline)

    gate.set()
    result = await first
    assert result.advanced
    assert len(gateway.created) == 1


async def test_ledger_for_another_template_is_rejected(gateway, pipeline):
    protocol = await loaded_protocol(gateway)

    with pytest.raises(ValidationError):
        await protocol.advance(pipeline.get(INTERVIEW_ID), pipeline)


async def test_edit_made_during_persist_step_stays_unsaved(gateway, pipeline):
    protocol = await loaded_protocol(gateway)
    reached, release = gateway.hold("bulk_update_status")

    advancing = asyncio.create_task(protocol.advance(pipeline.get(SCREENING_ID), pipeline))
    await reached.wait()
    protocol.ledger.set_current("x", RoundStatus.REJECTED)
    release.set()
    result = await advancing

    assert result.advanced
    assert as_pairs(gateway.status_updates[0]["updates"])[0] == ("x", RoundStatus.SELECTED)
    assert protocol.ledger.original("x") == RoundStatus.SELECTED
    assert protocol.ledger.original("y") == RoundStatus.ACTION_PENDING
    assert protocol.ledger.diff() == {"x": (RoundStatus.SELECTED, RoundStatus.REJECTED)}
