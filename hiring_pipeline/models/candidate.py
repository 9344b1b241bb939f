"""
Candidate and candidate-round models
"""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hiring_pipeline.models.evaluation import EvaluationRecord, TrackedEvaluation
from hiring_pipeline.models.tracking import Confirmed


class RoundStatus(str, Enum):
    """Per-round decision for a candidate"""
    SELECTED = "selected"
    REJECTED = "rejected"
    ACTION_PENDING = "action_pending"


class CandidateRound(BaseModel):
    """One candidate at one round template"""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: Optional[str] = None
    candidate_id: Optional[str] = None
    job_round_template_id: Optional[str] = None
    round_id: Optional[str] = None
    order_index: Optional[int] = None
    round_type: Optional[str] = None
    is_active: bool = True
    status: RoundStatus = RoundStatus.ACTION_PENDING
    is_evaluation: bool = False
    evaluation: Optional[TrackedEvaluation] = None
    evaluation_criteria: Optional[str] = None
    competencies: Optional[Any] = None
    created_by: Optional[str] = None
    notes: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _take_current_evaluation(cls, data: Any) -> Any:
        """The API returns an `evaluations` list; the first entry is current"""
        if not isinstance(data, dict) or "evaluation" in data:
            return data
        data = dict(data)
        evaluations = data.pop("evaluations", None) or []
        if evaluations:
            latest = evaluations[0]
            result = dict(latest.get("evaluation_result") or {})
            result.setdefault("candidate_round_id", latest.get("candidate_round_id") or data.get("id"))
            if latest.get("updated_at"):
                result.setdefault("evaluated_at", latest["updated_at"])
            data["evaluation"] = Confirmed[EvaluationRecord](
                id=str(latest.get("id")),
                value=EvaluationRecord.model_validate(result),
            )
        return data

    @property
    def record(self) -> Optional[EvaluationRecord]:
        return self.evaluation.value if self.evaluation is not None else None

    @property
    def has_scored_evaluation(self) -> bool:
        record = self.record
        return self.is_evaluation and record is not None and record.has_score


class Candidate(BaseModel):
    """
    Candidate as returned by the recruiting API.
    Immutable; local edits produce new instances.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    job_opening_id: Optional[str] = None
    name: str = ""
    email: Optional[str] = None
    mobile_phone: Optional[str] = None
    resume_url: Optional[str] = None
    experience_years: Optional[int] = None
    experience_months: Optional[int] = None
    current_salary: Optional[float] = None
    current_salary_currency: Optional[str] = None
    expected_salary: Optional[float] = None
    expected_salary_currency: Optional[str] = None
    available_to_join_days: Optional[int] = None
    current_location: Optional[str] = None
    overall_status: Optional[str] = None
    source: Optional[str] = None
    notes: Optional[str] = None
    round_status: Optional[RoundStatus] = None  # Legacy, predates candidate_rounds
    custom_field_values: List[Dict[str, Any]] = Field(default_factory=list)
    candidate_rounds: List[CandidateRound] = Field(default_factory=list)

    def round_for(self, round_template_id: Optional[str] = None) -> Optional[CandidateRound]:
        """
        Candidate round for a template. The by-template endpoint returns only
        the matching round, so the first entry is used when ids are absent.
        """
        if not self.candidate_rounds:
            return None
        if round_template_id:
            for candidate_round in self.candidate_rounds:
                if candidate_round.job_round_template_id == round_template_id:
                    return candidate_round
        return self.candidate_rounds[0]

    def status_for(self, round_template_id: Optional[str] = None) -> RoundStatus:
        candidate_round = self.round_for(round_template_id)
        if candidate_round is not None:
            return candidate_round.status
        return self.round_status or RoundStatus.ACTION_PENDING

    def evaluation_for(self, round_template_id: Optional[str] = None) -> Optional[EvaluationRecord]:
        candidate_round = self.round_for(round_template_id)
        return candidate_round.record if candidate_round is not None else None

    def needs_evaluation(self, round_template_id: Optional[str] = None) -> bool:
        candidate_round = self.round_for(round_template_id)
        return candidate_round is None or not candidate_round.has_scored_evaluation

    def _replace_round(self, target: CandidateRound, replacement: CandidateRound) -> "Candidate":
        rounds = [replacement if r is target else r for r in self.candidate_rounds]
        return self.model_copy(update={"candidate_rounds": rounds})

    def with_status(self, status: RoundStatus, round_template_id: Optional[str] = None) -> "Candidate":
        candidate_round = self.round_for(round_template_id)
        if candidate_round is None:
            return self.model_copy(update={"round_status": status})
        return self._replace_round(candidate_round, candidate_round.model_copy(update={"status": status}))

    def with_evaluation(
        self,
        evaluation: TrackedEvaluation,
        round_template_id: Optional[str] = None,
    ) -> "Candidate":
        """Replace the current evaluation wholesale"""
        candidate_round = self.round_for(round_template_id)
        if candidate_round is None:
            return self
        updated = candidate_round.model_copy(update={"is_evaluation": True, "evaluation": evaluation})
        return self._replace_round(candidate_round, updated)
