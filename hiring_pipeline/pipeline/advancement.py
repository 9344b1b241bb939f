"""
Stage advancement: move the whole cohort of one round template to the next
"""
from enum import Enum
from typing import Callable, Dict, List, Optional

import structlog
from pydantic import BaseModel, Field

from hiring_pipeline.core.config import settings
from hiring_pipeline.core.exceptions import PipelineException, ValidationError
from hiring_pipeline.gateway.client import PipelineGateway
from hiring_pipeline.gateway.schemas import BulkOperationResponse, StatusUpdate
from hiring_pipeline.models.round_template import RoundPipeline, RoundTemplate
from hiring_pipeline.pipeline.pagination import LoadAllProgress, PaginationCache
from hiring_pipeline.pipeline.status_ledger import StatusLedger

logger = structlog.get_logger()

NO_NEXT_ROUND = "no_next_round"


class AdvancementStep(str, Enum):
    FETCH_COHORT = "fetch_cohort"
    PERSIST_STATUSES = "persist_statuses"
    ACTIVATE_NEXT = "activate_next"
    SEED_NEXT = "seed_next"
    CREATE_NEXT_ROUNDS = "create_next_rounds"
    COMPLETE = "complete"


StepCallback = Callable[[AdvancementStep], None]


class AdvancementResult(BaseModel):
    advanced: bool
    reason: Optional[str] = None
    from_round_template_id: str
    to_round_template_id: Optional[str] = None
    cohort_size: int = 0
    status_counts: Dict[str, int] = Field(default_factory=dict)
    candidate_updates: List[StatusUpdate] = Field(default_factory=list)
    persist_ack: Optional[BulkOperationResponse] = None
    create_ack: Optional[BulkOperationResponse] = None


class StageAdvancementProtocol:
    """
    Persist the current round and seed the next one, strictly in order:

    1. fetch the full cohort (every page)
    2. persist every cohort status for the current template (full overwrite)
    3. confirm the next template
    4. seed the next cohort with the exact same ids and statuses
    5. bulk-create candidate rounds for the next template
    6. report completion

    Not resumable; a retry runs all steps again. Steps 2-5 are overwrites
    or upserts on the server, so re-running them is safe.
    """

    def __init__(self, gateway: PipelineGateway, pagination: PaginationCache, ledger: StatusLedger):
        self.gateway = gateway
        self.pagination = pagination
        self.ledger = ledger
        self.is_progressing = False
        self.current_step: Optional[AdvancementStep] = None

    def _enter(self, step: AdvancementStep, on_step: Optional[StepCallback]) -> None:
        self.current_step = step
        logger.debug("advancement_step", step=step.value, round_template_id=self.ledger.round_template_id)
        if on_step is not None:
            on_step(step)

    async def advance(
        self,
        current: RoundTemplate,
        pipeline: RoundPipeline,
        created_by: Optional[str] = None,
        on_progress: Optional[LoadAllProgress] = None,
        on_step: Optional[StepCallback] = None,
    ) -> AdvancementResult:
        if self.is_progressing:
            raise ValidationError(
                "Advancement already in progress",
                details={"round_template_id": current.id},
            )
        if self.ledger.round_template_id != current.id:
            raise ValidationError(
                "Status ledger belongs to a different round template",
                details={"round_template_id": current.id, "ledger_round_template_id": self.ledger.round_template_id},
            )
        if self.pagination.round_template_id != current.id:
            raise ValidationError("Round data is not loaded", details={"round_template_id": current.id})

        next_template = pipeline.next_after(current.id)
        if next_template is None:
            logger.info("advancement_skipped", round_template_id=current.id, reason=NO_NEXT_ROUND)
            return AdvancementResult(advanced=False, reason=NO_NEXT_ROUND, from_round_template_id=current.id)

        created_by = created_by or settings.DEFAULT_CREATED_BY
        self.is_progressing = True
        step = AdvancementStep.FETCH_COHORT
        try:
            self._enter(step, on_step)
            cohort = await self.pagination.load_all(current.id, on_progress)
            self.ledger.extend(cohort)
            snapshot = self.ledger.snapshot_all()
            updates = [StatusUpdate(candidate_id=c.id, status=snapshot[c.id]) for c in cohort]

            step = AdvancementStep.PERSIST_STATUSES
            self._enter(step, on_step)
            persist_ack = None
            if updates:
                persist_ack = await self.gateway.bulk_update_status(current.id, updates)
            self.ledger.mark_persisted({u.candidate_id: u.status for u in updates})

            step = AdvancementStep.ACTIVATE_NEXT
            self._enter(step, on_step)
            await self.gateway.confirm_round_template(next_template.id)

            step = AdvancementStep.SEED_NEXT
            self._enter(step, on_step)
            next_updates = [StatusUpdate(candidate_id=u.candidate_id, status=u.status) for u in updates]

            step = AdvancementStep.CREATE_NEXT_ROUNDS
            self._enter(step, on_step)
            create_ack = None
            if next_updates:
                create_ack = await self.gateway.bulk_create_candidate_rounds(
                    next_template.id,
                    next_updates,
                    created_by,
                )
        except PipelineException as e:
            e.details = {**e.details, "step": step.value}
            logger.error(
                "advancement_failed",
                from_round_template_id=current.id,
                to_round_template_id=next_template.id,
                step=step.value,
                error=e.message,
            )
            raise
        finally:
            self.is_progressing = False

        status_counts: Dict[str, int] = {}
        for update in next_updates:
            status_counts[update.status.value] = status_counts.get(update.status.value, 0) + 1

        self._enter(AdvancementStep.COMPLETE, on_step)
        logger.info(
            "advancement_completed",
            from_round_template_id=current.id,
            to_round_template_id=next_template.id,
            cohort_size=len(next_updates),
            created_by=created_by,
            **status_counts,
        )
        return AdvancementResult(
            advanced=True,
            from_round_template_id=current.id,
            to_round_template_id=next_template.id,
            cohort_size=len(next_updates),
            status_counts=status_counts,
            candidate_updates=next_updates,
            persist_ack=persist_ack,
            create_ack=create_ack,
        )
