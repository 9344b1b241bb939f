"""
Round session: one round template's candidates, statuses and evaluations
"""
from typing import Dict, List, Optional

import structlog
from pydantic import BaseModel, Field

from hiring_pipeline.core.exceptions import (
    CancelledOperation,
    FetchError,
    NotFoundError,
    ValidationError,
)
from hiring_pipeline.evaluation.client import EvaluationClient
from hiring_pipeline.evaluation.schemas import ReEvaluationSource
from hiring_pipeline.gateway.client import PipelineGateway
from hiring_pipeline.gateway.schemas import (
    BulkOperationResponse,
    CandidateRoundOverrideRequest,
    StatusUpdate,
)
from hiring_pipeline.models.candidate import Candidate, RoundStatus
from hiring_pipeline.models.evaluation import EvaluationOutcome, EvaluationRecord, TrackedEvaluation
from hiring_pipeline.models.pagination import PaginationState
from hiring_pipeline.models.round_template import RoundPipeline, RoundTemplate
from hiring_pipeline.pipeline.advancement import (
    AdvancementResult,
    StageAdvancementProtocol,
    StepCallback,
)
from hiring_pipeline.pipeline.batch_evaluation import BatchEvaluationCoordinator, BatchProgress
from hiring_pipeline.pipeline.pagination import LoadAllProgress, PaginationCache
from hiring_pipeline.pipeline.re_evaluation import ReEvaluationSessionTracker, ReEvaluationState
from hiring_pipeline.pipeline.status_ledger import StatusLedger

logger = structlog.get_logger()


class CandidateView(BaseModel):
    candidate: Candidate
    status: RoundStatus
    original_status: RoundStatus
    changed: bool
    evaluating: bool
    evaluation: Optional[EvaluationRecord] = None
    evaluation_pending: bool = False
    re_evaluation: ReEvaluationState


class RoundSessionView(BaseModel):
    """What the view layer renders for the selected round"""

    job_opening_id: str
    round_template: RoundTemplate
    candidates: List[CandidateView] = Field(default_factory=list)
    changed_count: int = 0
    selected_count: int = 0
    has_unsaved_changes: bool = False
    is_progressing: bool = False
    evaluating: List[str] = Field(default_factory=list)
    batch_progress: BatchProgress
    has_more: bool = False
    pagination: PaginationState
    load_error: Optional[str] = None
    load_more_error: Optional[str] = None


class RoundSession:
    """
    Owns the ledger, page cache, batch coordinator, re-evaluation tracker
    and advancement protocol for one round template. A new round template
    means a new session; nothing is carried over.
    """

    def __init__(
        self,
        job_opening_id: str,
        round_template: RoundTemplate,
        pipeline: RoundPipeline,
        gateway: PipelineGateway,
        evaluation_client: EvaluationClient,
        page_size: Optional[int] = None,
    ):
        self.job_opening_id = job_opening_id
        self.round_template = round_template
        self.pipeline = pipeline
        self.gateway = gateway
        self.ledger = StatusLedger(round_template.id)
        self.pagination = PaginationCache(gateway, page_size)
        self.batch = BatchEvaluationCoordinator(
            evaluation_client,
            round_template,
            job_opening_id,
            self._on_candidate_evaluated,
        )
        self.re_evaluation = ReEvaluationSessionTracker(evaluation_client, job_opening_id)
        self.advancement = StageAdvancementProtocol(gateway, self.pagination, self.ledger)
        self.load_error: Optional[str] = None
        self.closed = False

    @property
    def round_template_id(self) -> str:
        return self.round_template.id

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def _load(self, force_refresh: bool) -> bool:
        try:
            await self.pagination.load(self.round_template.id, force_refresh=force_refresh)
        except CancelledOperation:
            logger.debug("round_load_cancelled", round_template_id=self.round_template.id)
            return False
        except FetchError as e:
            self.load_error = e.message
            raise
        self.load_error = None
        candidates = self.pagination.candidates
        self.ledger.seed(candidates)
        self.batch.candidates_loaded(candidates, refreshed=force_refresh)
        return True

    async def open(self) -> bool:
        """Load the first page. False when superseded before it arrived."""
        logger.info(
            "round_session_opened",
            job_opening_id=self.job_opening_id,
            round_template_id=self.round_template.id,
            round_type=self.round_template.round_type,
        )
        return await self._load(force_refresh=False)

    async def refresh(self) -> bool:
        """Reload from page 1, discarding unsaved status edits"""
        return await self._load(force_refresh=True)

    async def load_more(self) -> List[Candidate]:
        try:
            added = await self.pagination.load_more()
        except CancelledOperation:
            logger.debug("round_load_more_cancelled", round_template_id=self.round_template.id)
            return []
        if added:
            self.ledger.extend(added)
            self.batch.candidates_loaded(self.pagination.candidates)
        return added

    # ------------------------------------------------------------------
    # Statuses
    # ------------------------------------------------------------------

    def set_status(self, candidate_id: str, status: RoundStatus) -> None:
        self.ledger.set_current(candidate_id, status)
        logger.debug(
            "candidate_status_set",
            round_template_id=self.round_template.id,
            candidate_id=candidate_id,
            status=RoundStatus(status).value,
        )

    async def save_statuses(self) -> BulkOperationResponse:
        """Write the full current status map of every loaded candidate"""
        if self.advancement.is_progressing:
            raise ValidationError("Advancement in progress", details={"round_template_id": self.round_template.id})
        snapshot = self.ledger.snapshot_all()
        if not snapshot:
            return BulkOperationResponse(message="Nothing to save", successful_count=0, failed_count=0)
        updates = [StatusUpdate(candidate_id=cid, status=status) for cid, status in snapshot.items()]
        ack = await self.gateway.bulk_update_status(self.round_template.id, updates)
        self.ledger.mark_persisted(snapshot)
        for candidate in self.pagination.candidates:
            if candidate.id in snapshot:
                self.pagination.replace(candidate.with_status(snapshot[candidate.id], self.round_template.id))
        logger.info("candidate_statuses_saved", round_template_id=self.round_template.id, count=len(updates))
        return ack

    async def advance(
        self,
        created_by: Optional[str] = None,
        on_progress: Optional[LoadAllProgress] = None,
        on_step: Optional[StepCallback] = None,
    ) -> AdvancementResult:
        return await self.advancement.advance(
            self.round_template,
            self.pipeline,
            created_by=created_by,
            on_progress=on_progress,
            on_step=on_step,
        )

    # ------------------------------------------------------------------
    # Evaluations
    # ------------------------------------------------------------------

    def _require_candidate(self, candidate_id: str) -> Candidate:
        candidate = self.pagination.get(candidate_id)
        if candidate is None:
            raise NotFoundError("Candidate", candidate_id)
        return candidate

    def _write_evaluation(self, candidate_id: str, evaluation: TrackedEvaluation) -> None:
        candidate = self.pagination.get(candidate_id)
        if candidate is None:
            logger.warning("evaluation_for_unloaded_candidate", candidate_id=candidate_id)
            return
        self.pagination.replace(candidate.with_evaluation(evaluation, self.round_template.id))

    def _on_candidate_evaluated(self, candidate_id: str, evaluation: TrackedEvaluation) -> None:
        if self.closed:
            return
        self._write_evaluation(candidate_id, evaluation)

    def show_re_evaluation_options(self, candidate_id: str) -> ReEvaluationState:
        self._require_candidate(candidate_id)
        return self.re_evaluation.show_options(candidate_id)

    def hide_re_evaluation_options(self, candidate_id: str) -> ReEvaluationState:
        return self.re_evaluation.hide_options(candidate_id)

    async def re_evaluate(self, candidate_id: str, source: ReEvaluationSource) -> EvaluationOutcome:
        """Run an on-demand evaluation; a success replaces the current record"""
        candidate = self._require_candidate(candidate_id)
        outcome = await self.re_evaluation.re_evaluate(candidate, self.round_template, source)
        if outcome.succeeded and not self.closed:
            self._write_evaluation(candidate_id, outcome.tracked())
        return outcome

    async def update_candidate_round_override(
        self,
        candidate_id: str,
        request: CandidateRoundOverrideRequest,
    ) -> Candidate:
        """Override evaluation criteria and competencies for one candidate"""
        candidate = self._require_candidate(candidate_id)
        candidate_round = candidate.round_for(self.round_template.id)
        if candidate_round is None or not candidate_round.id:
            raise ValidationError(
                "Candidate has no round for this template",
                details={"candidate_id": candidate_id, "round_template_id": self.round_template.id},
            )
        await self.gateway.update_candidate_round_override(candidate_round.id, request)
        updated_round = candidate_round.model_copy(
            update={
                "evaluation_criteria": request.evaluation_criteria,
                "competencies": [c.model_dump() for c in request.competencies],
            }
        )
        rounds = [updated_round if r is candidate_round else r for r in candidate.candidate_rounds]
        updated = candidate.model_copy(update={"candidate_rounds": rounds})
        self.pagination.replace(updated)
        logger.info("candidate_round_override_saved", candidate_id=candidate_id, candidate_round_id=candidate_round.id)
        return updated

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """
        Cancel in-flight page fetches. A running batch finishes on its own
        but its results are no longer written.
        """
        self.closed = True
        self.pagination.cancel()
        logger.info(
            "round_session_closed",
            job_opening_id=self.job_opening_id,
            round_template_id=self.round_template.id,
            unsaved_changes=self.ledger.changed_count,
        )

    def view(self) -> RoundSessionView:
        states: Dict[str, ReEvaluationState] = self.re_evaluation.states()
        candidates = []
        for candidate in self.pagination.candidates:
            if candidate.id in self.ledger:
                status = self.ledger.current(candidate.id)
                original = self.ledger.original(candidate.id)
            else:
                status = original = candidate.status_for(self.round_template.id)
            candidate_round = candidate.round_for(self.round_template.id)
            evaluation = candidate_round.evaluation if candidate_round is not None else None
            candidates.append(
                CandidateView(
                    candidate=candidate,
                    status=status,
                    original_status=original,
                    changed=status != original,
                    evaluating=candidate.id in self.batch.evaluating,
                    evaluation=evaluation.value if evaluation is not None else None,
                    evaluation_pending=evaluation is not None and evaluation.is_pending,
                    re_evaluation=states.get(candidate.id, ReEvaluationState()),
                )
            )
        load_more_error = self.pagination.load_more_error
        return RoundSessionView(
            job_opening_id=self.job_opening_id,
            round_template=self.round_template,
            candidates=candidates,
            changed_count=self.ledger.changed_count,
            selected_count=self.ledger.selected_count,
            has_unsaved_changes=self.ledger.has_unsaved_changes,
            is_progressing=self.advancement.is_progressing,
            evaluating=sorted(self.batch.evaluating),
            batch_progress=self.batch.progress,
            has_more=self.pagination.has_more,
            pagination=self.pagination.state,
            load_error=self.load_error,
            load_more_error=load_more_error.message if load_more_error is not None else None,
        )
