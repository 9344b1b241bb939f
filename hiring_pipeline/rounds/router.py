"""
Round session routes
"""
from fastapi import APIRouter, Depends, Request, status
import structlog

from hiring_pipeline.gateway.schemas import CandidateRoundOverrideRequest
from hiring_pipeline.models.candidate import Candidate
from hiring_pipeline.pipeline.advancement import AdvancementResult
from hiring_pipeline.pipeline.manager import RoundSessionManager
from hiring_pipeline.pipeline.re_evaluation import ReEvaluationState
from hiring_pipeline.pipeline.session import RoundSessionView
from hiring_pipeline.rounds.schemas import (
    AdvanceRequest,
    LoadMoreResponse,
    OpenRoundRequest,
    ReEvaluateRequest,
    ReEvaluateResponse,
    SaveStatusesResponse,
    SetStatusRequest,
)

router = APIRouter(prefix="/api/v1/jobs/{job_opening_id}/session", tags=["Round Sessions"])
logger = structlog.get_logger()


def get_session_manager(request: Request) -> RoundSessionManager:
    return request.app.state.session_manager


@router.post("", response_model=RoundSessionView, status_code=status.HTTP_201_CREATED)
async def open_round(
    job_opening_id: str,
    payload: OpenRoundRequest,
    manager: RoundSessionManager = Depends(get_session_manager),
):
    """Select a round template and load its first page"""
    session = await manager.open_round(job_opening_id, payload.round_template_id)
    return session.view()


@router.get("", response_model=RoundSessionView)
async def get_round_view(
    job_opening_id: str,
    manager: RoundSessionManager = Depends(get_session_manager),
):
    return manager.get(job_opening_id).view()


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def close_round(
    job_opening_id: str,
    manager: RoundSessionManager = Depends(get_session_manager),
):
    manager.close(job_opening_id)


@router.post("/refresh", response_model=RoundSessionView)
async def refresh_round(
    job_opening_id: str,
    manager: RoundSessionManager = Depends(get_session_manager),
):
    """Reload from page 1; unsaved status edits are discarded"""
    session = manager.get(job_opening_id)
    await session.refresh()
    return session.view()


@router.post("/load-more", response_model=LoadMoreResponse)
async def load_more(
    job_opening_id: str,
    manager: RoundSessionManager = Depends(get_session_manager),
):
    session = manager.get(job_opening_id)
    added = await session.load_more()
    error = session.pagination.load_more_error
    return LoadMoreResponse(
        added=len(added),
        has_more=session.pagination.has_more,
        error=error.message if error is not None else None,
    )


@router.put("/candidates/{candidate_id}/status", response_model=RoundSessionView)
async def set_candidate_status(
    job_opening_id: str,
    candidate_id: str,
    payload: SetStatusRequest,
    manager: RoundSessionManager = Depends(get_session_manager),
):
    session = manager.get(job_opening_id)
    session.set_status(candidate_id, payload.status)
    return session.view()


@router.post("/statuses/save", response_model=SaveStatusesResponse)
async def save_statuses(
    job_opening_id: str,
    manager: RoundSessionManager = Depends(get_session_manager),
):
    """Persist the status of every loaded candidate"""
    session = manager.get(job_opening_id)
    saved = len(session.ledger)
    ack = await session.save_statuses()
    return SaveStatusesResponse(
        saved=saved,
        successful_count=ack.successful_count,
        failed_count=ack.failed_count,
    )


@router.post("/advance", response_model=AdvancementResult)
async def advance_round(
    job_opening_id: str,
    payload: AdvanceRequest,
    manager: RoundSessionManager = Depends(get_session_manager),
):
    """Move the whole cohort to the next round template"""
    session = manager.get(job_opening_id)
    result = await session.advance(created_by=payload.created_by)
    if result.advanced and payload.switch_to_next:
        await manager.switch_to_next(job_opening_id)
        logger.info(
            "round_focus_moved",
            job_opening_id=job_opening_id,
            round_template_id=result.to_round_template_id,
        )
    return result


@router.post("/candidates/{candidate_id}/re-evaluation/options", response_model=ReEvaluationState)
async def show_re_evaluation_options(
    job_opening_id: str,
    candidate_id: str,
    manager: RoundSessionManager = Depends(get_session_manager),
):
    return manager.get(job_opening_id).show_re_evaluation_options(candidate_id)


@router.delete("/candidates/{candidate_id}/re-evaluation/options", response_model=ReEvaluationState)
async def hide_re_evaluation_options(
    job_opening_id: str,
    candidate_id: str,
    manager: RoundSessionManager = Depends(get_session_manager),
):
    return manager.get(job_opening_id).hide_re_evaluation_options(candidate_id)


@router.post("/candidates/{candidate_id}/re-evaluation", response_model=ReEvaluateResponse)
async def re_evaluate_candidate(
    job_opening_id: str,
    candidate_id: str,
    payload: ReEvaluateRequest,
    manager: RoundSessionManager = Depends(get_session_manager),
):
    """Run an on-demand evaluation for one candidate"""
    session = manager.get(job_opening_id)
    outcome = await session.re_evaluate(candidate_id, payload.source)
    return ReEvaluateResponse(
        candidate_id=candidate_id,
        succeeded=outcome.succeeded,
        evaluation=outcome.record,
        error=session.re_evaluation.state(candidate_id).error,
    )


@router.put("/candidates/{candidate_id}/round-override", response_model=Candidate)
async def override_candidate_round(
    job_opening_id: str,
    candidate_id: str,
    payload: CandidateRoundOverrideRequest,
    manager: RoundSessionManager = Depends(get_session_manager),
):
    """Override evaluation criteria and competencies for one candidate"""
    session = manager.get(job_opening_id)
    return await session.update_candidate_round_override(candidate_id, payload)
