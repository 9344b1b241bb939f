"""
Background batch evaluation for screening rounds
"""
import asyncio
from typing import Callable, Dict, List, Optional, Set

import structlog
from pydantic import BaseModel

from hiring_pipeline.evaluation.client import EvaluationClient
from hiring_pipeline.evaluation.schemas import ResumeEvaluationRequest
from hiring_pipeline.models.candidate import Candidate
from hiring_pipeline.models.evaluation import (
    EvaluationOutcome,
    EvaluationRecord,
    FailureKind,
    TrackedEvaluation,
)
from hiring_pipeline.models.round_template import RoundTemplate
from hiring_pipeline.models.tracking import Pending

logger = structlog.get_logger()

EvaluatedCallback = Callable[[str, TrackedEvaluation], None]


class BatchProgress(BaseModel):
    completed: int = 0
    total: int = 0
    active: bool = False


class BatchEvaluationCoordinator:
    """
    Fills in missing resume evaluations for a screening round.

    Candidate ids go into `processed` before the batch call is issued, so
    repeated triggers never evaluate a candidate twice and failed
    evaluations are never re-queued. Only an explicit refresh that brings
    in new candidate ids resets `processed`.
    """

    def __init__(
        self,
        evaluation_client: EvaluationClient,
        round_template: RoundTemplate,
        job_opening_id: str,
        on_candidate_evaluated: EvaluatedCallback,
    ):
        self.evaluation_client = evaluation_client
        self.round_template = round_template
        self.job_opening_id = job_opening_id
        self.on_candidate_evaluated = on_candidate_evaluated
        self.enabled = round_template.is_screening
        self.processed: Set[str] = set()
        self.evaluating: Set[str] = set()
        self.progress = BatchProgress()
        self.batches_started = 0
        self._candidates: List[Candidate] = []
        self._round_to_candidate: Dict[str, str] = {}
        self._task: Optional[asyncio.Task] = None

    @property
    def is_active(self) -> bool:
        return self._task is not None

    def needs_evaluation(self, candidates: List[Candidate]) -> List[Candidate]:
        return [
            c for c in candidates
            if c.needs_evaluation(self.round_template.id) and c.id not in self.processed
        ]

    def candidates_loaded(self, candidates: List[Candidate], refreshed: bool = False) -> Optional[asyncio.Task]:
        """Candidate list changed (page loaded, load more, refresh)"""
        if refreshed:
            known = {c.id for c in self._candidates}
            if any(c.id not in known for c in candidates):
                # In-flight ids survive the reset
                self.processed = set(self.evaluating)
                logger.debug(
                    "batch_processed_reset",
                    round_template_id=self.round_template.id,
                    kept=len(self.processed),
                )
        self._candidates = list(candidates)
        return self.trigger()

    def trigger(self) -> Optional[asyncio.Task]:
        """Start a batch for unevaluated candidates, unless one is running"""
        if not self.enabled or self.is_active:
            return None

        pending = self.needs_evaluation(self._candidates)
        if not pending:
            return None

        self.processed.update(c.id for c in pending)

        requests: List[ResumeEvaluationRequest] = []
        for candidate in pending:
            candidate_round = candidate.round_for(self.round_template.id)
            if candidate_round is None or not candidate_round.id:
                record = EvaluationRecord.failed(FailureKind.GENERIC, "Candidate round not found")
                self.on_candidate_evaluated(candidate.id, Pending[EvaluationRecord](value=record))
                continue
            self._round_to_candidate[candidate_round.id] = candidate.id
            self.evaluating.add(candidate.id)
            requests.append(
                ResumeEvaluationRequest(candidate_round_id=candidate_round.id, job_opening_id=self.job_opening_id)
            )

        if not requests:
            return None

        self.progress = BatchProgress(completed=0, total=len(requests), active=True)
        self.batches_started += 1
        logger.info(
            "batch_evaluation_triggered",
            round_template_id=self.round_template.id,
            count=len(requests),
        )
        self._task = asyncio.create_task(self._run(requests))
        return self._task

    async def _run(self, requests: List[ResumeEvaluationRequest]) -> None:
        try:
            await self.evaluation_client.evaluate_batch(
                requests,
                on_batch_progress=self._on_batch_progress,
                on_candidate_complete=self._on_candidate_complete,
            )
        except Exception as e:
            logger.error("batch_evaluation_crashed", round_template_id=self.round_template.id, error=str(e))
            for request in requests:
                if request.candidate_round_id in self._round_to_candidate:
                    record = EvaluationRecord.failed(FailureKind.GENERIC, str(e), request.candidate_round_id)
                    self._on_candidate_complete(
                        EvaluationOutcome(candidate_round_id=request.candidate_round_id, record=record)
                    )
        finally:
            self.progress = BatchProgress()
            self._task = None

        # Pick up candidates loaded while the batch was running
        self.trigger()

    def _on_batch_progress(self, completed: int, total: int) -> None:
        self.progress = BatchProgress(
            completed=max(completed, self.progress.completed),
            total=total,
            active=completed < total,
        )

    def _on_candidate_complete(self, outcome: EvaluationOutcome) -> None:
        candidate_id = self._round_to_candidate.pop(outcome.candidate_round_id, None)
        if candidate_id is None:
            logger.warning("batch_completion_unknown_round", candidate_round_id=outcome.candidate_round_id)
            return
        self.evaluating.discard(candidate_id)
        completed = self.progress.completed + 1
        self.progress = BatchProgress(
            completed=completed,
            total=self.progress.total,
            active=completed < self.progress.total,
        )
        self.on_candidate_evaluated(candidate_id, outcome.tracked())

    async def wait_idle(self) -> None:
        """Wait for the running batch and any batch it re-triggers"""
        while self._task is not None:
            await self._task
