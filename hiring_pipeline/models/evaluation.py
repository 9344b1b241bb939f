"""
Evaluation result models
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hiring_pipeline.models.tracking import Confirmed, Pending

NO_RESUME_MESSAGE = "No resume found for this candidate. Please upload a resume to proceed with evaluation."

# Fragments the evaluation service uses when a candidate has no resume on file
NO_RESUME_MARKERS = ("no resume url found", "no resume", "resume not found")


class FailureKind(str, Enum):
    """Why an evaluation attempt produced no usable score"""
    NO_RESUME = "no_resume"
    EVALUATION_ERROR = "evaluation_error"
    GENERIC = "generic"


def is_no_resume_message(message: Optional[str]) -> bool:
    if not message:
        return False
    lowered = message.lower()
    return any(marker in lowered for marker in NO_RESUME_MARKERS)


class CompetencyQuestion(BaseModel):
    question_id: Optional[str] = None
    question: str = ""
    score: float = 0
    explanation: str = ""


class CompetencyScore(BaseModel):
    competency_name: str
    questions: List[CompetencyQuestion] = Field(default_factory=list)
    percentage_score: float = 0


class EvaluationRecord(BaseModel):
    """
    Current evaluation of one candidate round.
    Either a success payload or a typed failure with a score of 0.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    candidate_round_id: Optional[str] = None
    overall_percentage_score: Optional[float] = None
    evaluation_summary: str = ""
    competency_scores: List[CompetencyScore] = Field(default_factory=list)
    evaluation_method: Optional[str] = None
    interviewer_evaluation_summary: Optional[str] = None
    transcript_text: Optional[str] = None
    resume_text_extracted: bool = False
    resume_images_extracted: int = 0
    failure: Optional[FailureKind] = None
    error_message: Optional[str] = None
    evaluated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="before")
    @classmethod
    def _flatten_service_payload(cls, data: Any) -> Any:
        """Accept the evaluation service's nested result shape"""
        if not isinstance(data, dict):
            return data
        data = dict(data)

        competency = data.pop("competency_evaluation", None)
        if isinstance(competency, dict):
            data.setdefault("competency_scores", competency.get("competency_scores") or [])
            if data.get("overall_percentage_score") is None:
                data["overall_percentage_score"] = competency.get("overall_percentage_score")

        # Failed results carry placeholder values of the wrong type
        if not isinstance(data.get("resume_text_extracted", False), bool):
            data["resume_text_extracted"] = bool(data["resume_text_extracted"])
        images = data.get("resume_images_extracted", 0)
        if isinstance(images, list):
            data["resume_images_extracted"] = len(images)
        elif images is None:
            data["resume_images_extracted"] = 0

        if data.get("failure") is None and (data.get("evaluation_failed") or data.get("success") is False):
            message = data.get("error_message") or data.get("evaluation_summary")
            data["failure"] = (
                FailureKind.NO_RESUME if is_no_resume_message(message) else FailureKind.EVALUATION_ERROR
            )
            data["overall_percentage_score"] = 0
        return data

    @classmethod
    def failed(
        cls,
        kind: FailureKind,
        message: str,
        candidate_round_id: Optional[str] = None,
    ) -> "EvaluationRecord":
        """Build a failure record. Score is always 0."""
        summary = NO_RESUME_MESSAGE if kind == FailureKind.NO_RESUME else f"Evaluation failed: {message}"
        return cls(
            candidate_round_id=candidate_round_id,
            overall_percentage_score=0,
            evaluation_summary=summary,
            evaluation_method="failed",
            failure=kind,
            error_message=message,
        )

    @property
    def succeeded(self) -> bool:
        return self.failure is None

    @property
    def has_score(self) -> bool:
        return self.overall_percentage_score is not None

    def competency(self, name: str) -> Optional[CompetencyScore]:
        for score in self.competency_scores:
            if score.competency_name == name:
                return score
        return None


TrackedEvaluation = Union[Confirmed[EvaluationRecord], Pending[EvaluationRecord]]


class EvaluationOutcome(BaseModel):
    """Result of one evaluation call, success or typed failure"""

    candidate_round_id: str
    record: EvaluationRecord
    result_id: Optional[str] = None
    retry_attempted: bool = False

    @property
    def succeeded(self) -> bool:
        return self.record.succeeded

    def tracked(self) -> TrackedEvaluation:
        """Wrap the record; confirmed only when the service returned a stored id"""
        if self.result_id:
            return Confirmed[EvaluationRecord](id=self.result_id, value=self.record)
        return Pending[EvaluationRecord](value=self.record)


def summarize_outcomes(outcomes: List[EvaluationOutcome]) -> Dict[str, int]:
    """Counts used in batch completion logs"""
    summary = {"successful": 0, "failed": 0, "no_resume": 0}
    for outcome in outcomes:
        if outcome.succeeded:
            summary["successful"] += 1
        else:
            summary["failed"] += 1
            if outcome.record.failure == FailureKind.NO_RESUME:
                summary["no_resume"] += 1
    return summary
