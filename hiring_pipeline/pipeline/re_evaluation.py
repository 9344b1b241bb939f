"""
On-demand single candidate re-evaluation
"""
from enum import Enum
from typing import Dict, List, Optional

import structlog
from pydantic import BaseModel

from hiring_pipeline.core.exceptions import (
    PipelineException,
    ReEvaluationInProgressError,
    ValidationError,
)
from hiring_pipeline.evaluation.client import EvaluationClient
from hiring_pipeline.evaluation.schemas import (
    AssessmentPlatformSource,
    EvaluationSource,
    ReEvaluationSource,
    ResumeEvaluationRequest,
    SalesAssessmentSource,
    TranscriptUploadSource,
)
from hiring_pipeline.models.candidate import Candidate
from hiring_pipeline.models.evaluation import EvaluationOutcome
from hiring_pipeline.models.round_template import SALES_ROUND_TYPES, RoundTemplate, RoundType

logger = structlog.get_logger()


class ReEvaluationPhase(str, Enum):
    IDLE = "idle"
    OPTIONS_SHOWN = "options_shown"
    IN_FLIGHT = "in_flight"


class ReEvaluationState(BaseModel):
    phase: ReEvaluationPhase = ReEvaluationPhase.IDLE
    error: Optional[str] = None
    active_source: Optional[EvaluationSource] = None

    @property
    def is_re_evaluating(self) -> bool:
        return self.phase == ReEvaluationPhase.IN_FLIGHT

    @property
    def show_options(self) -> bool:
        return self.phase == ReEvaluationPhase.OPTIONS_SHOWN


def available_sources(round_type: str) -> List[EvaluationSource]:
    """Evaluation sources offered for a round type"""
    round_type = (round_type or "").upper()
    if round_type == RoundType.SCREENING.value:
        return [EvaluationSource.RESUME]
    if round_type in SALES_ROUND_TYPES:
        return [EvaluationSource.SALES_ASSESSMENT, EvaluationSource.TRANSCRIPT_UPLOAD]
    if round_type == RoundType.INTERVIEW.value:
        return [EvaluationSource.TRANSCRIPT_UPLOAD, EvaluationSource.ASSESSMENT_PLATFORM]
    return [EvaluationSource.TRANSCRIPT_UPLOAD]


class ReEvaluationSessionTracker:
    """
    Per-candidate re-evaluation state machine:

        idle -> options_shown -> in_flight -> idle           (success)
                                           -> options_shown  (failure, error set)

    Independent of the batch coordinator; a candidate can be re-evaluated
    any number of times.
    """

    def __init__(self, evaluation_client: EvaluationClient, job_opening_id: str):
        self.evaluation_client = evaluation_client
        self.job_opening_id = job_opening_id
        self._states: Dict[str, ReEvaluationState] = {}

    def state(self, candidate_id: str) -> ReEvaluationState:
        return self._states.get(candidate_id, ReEvaluationState())

    def states(self) -> Dict[str, ReEvaluationState]:
        return dict(self._states)

    def _set(self, candidate_id: str, state: ReEvaluationState) -> None:
        if state.phase == ReEvaluationPhase.IDLE and state.error is None:
            self._states.pop(candidate_id, None)
        else:
            self._states[candidate_id] = state

    def _ensure_not_in_flight(self, candidate_id: str) -> None:
        if self.state(candidate_id).is_re_evaluating:
            raise ReEvaluationInProgressError(candidate_id)

    def show_options(self, candidate_id: str) -> ReEvaluationState:
        self._ensure_not_in_flight(candidate_id)
        current = self.state(candidate_id)
        self._set(candidate_id, ReEvaluationState(phase=ReEvaluationPhase.OPTIONS_SHOWN, error=current.error))
        return self.state(candidate_id)

    def hide_options(self, candidate_id: str) -> ReEvaluationState:
        self._ensure_not_in_flight(candidate_id)
        self._set(candidate_id, ReEvaluationState())
        return self.state(candidate_id)

    async def re_evaluate(
        self,
        candidate: Candidate,
        round_template: RoundTemplate,
        source: ReEvaluationSource,
    ) -> EvaluationOutcome:
        """
        Run one evaluation source for a candidate.

        Returns the outcome; the caller replaces the candidate's record
        only when it succeeded. Service errors move the state back to
        options_shown with the error set and are re-raised.
        """
        candidate_id = candidate.id
        self._ensure_not_in_flight(candidate_id)

        kind = EvaluationSource(source.kind)
        if kind not in available_sources(round_template.round_type):
            raise ValidationError(
                f"Evaluation source {kind.value} is not available for {round_template.round_type} rounds",
                details={"candidate_id": candidate_id, "source": kind.value},
            )
        candidate_round = candidate.round_for(round_template.id)
        if candidate_round is None or not candidate_round.id:
            raise ValidationError(
                "Candidate has no round for this template",
                details={"candidate_id": candidate_id, "round_template_id": round_template.id},
            )
        if kind in (EvaluationSource.ASSESSMENT_PLATFORM, EvaluationSource.SALES_ASSESSMENT) and not candidate.email:
            raise ValidationError("Candidate email is required", details={"candidate_id": candidate_id})

        self._set(candidate_id, ReEvaluationState(phase=ReEvaluationPhase.IN_FLIGHT, active_source=kind))
        logger.info(
            "re_evaluation_started",
            candidate_id=candidate_id,
            candidate_round_id=candidate_round.id,
            source=kind.value,
        )

        try:
            outcome = await self._dispatch(candidate, candidate_round.id, round_template, source)
        except PipelineException as e:
            logger.error("re_evaluation_failed", candidate_id=candidate_id, source=kind.value, error=e.message)
            self._set(candidate_id, ReEvaluationState(phase=ReEvaluationPhase.OPTIONS_SHOWN, error=e.message))
            raise
        except Exception as e:
            logger.exception("re_evaluation_crashed", candidate_id=candidate_id, source=kind.value)
            self._set(candidate_id, ReEvaluationState(phase=ReEvaluationPhase.OPTIONS_SHOWN, error=str(e)))
            raise

        if outcome.succeeded:
            self._set(candidate_id, ReEvaluationState())
            logger.info(
                "re_evaluation_succeeded",
                candidate_id=candidate_id,
                source=kind.value,
                score=outcome.record.overall_percentage_score,
            )
        else:
            error = outcome.record.error_message or outcome.record.evaluation_summary
            self._set(candidate_id, ReEvaluationState(phase=ReEvaluationPhase.OPTIONS_SHOWN, error=error))
            logger.warning("re_evaluation_unsuccessful", candidate_id=candidate_id, source=kind.value, error=error)
        return outcome

    async def _dispatch(
        self,
        candidate: Candidate,
        candidate_round_id: str,
        round_template: RoundTemplate,
        source: ReEvaluationSource,
    ) -> EvaluationOutcome:
        if isinstance(source, TranscriptUploadSource):
            return await self.evaluation_client.evaluate_transcript(candidate_round_id, self.job_opening_id, source)
        if isinstance(source, AssessmentPlatformSource):
            return await self.evaluation_client.evaluate_from_assessment_platform(
                email=candidate.email,
                job_round_template_id=source.platform_round_id or round_template.id,
                candidate_round_id=candidate_round_id,
                job_opening_id=self.job_opening_id,
            )
        if isinstance(source, SalesAssessmentSource):
            return await self.evaluation_client.evaluate_sales_assessment(
                email=candidate.email,
                candidate_round_id=candidate_round_id,
                source=source,
                round_type=round_template.round_type,
            )
        return await self.evaluation_client.evaluate_candidate_round(
            ResumeEvaluationRequest(candidate_round_id=candidate_round_id, job_opening_id=self.job_opening_id)
        )
