"""
Pipeline data models
"""
from hiring_pipeline.models.tracking import Confirmed, Pending
from hiring_pipeline.models.evaluation import (
    CompetencyScore,
    EvaluationOutcome,
    EvaluationRecord,
    FailureKind,
    TrackedEvaluation,
)
from hiring_pipeline.models.candidate import Candidate, CandidateRound, RoundStatus
from hiring_pipeline.models.round_template import RoundPipeline, RoundTemplate, RoundType
from hiring_pipeline.models.pagination import CandidatePage, PaginationInfo, PaginationState

__all__ = [
    "Confirmed",
    "Pending",
    "CompetencyScore",
    "EvaluationOutcome",
    "EvaluationRecord",
    "FailureKind",
    "TrackedEvaluation",
    "Candidate",
    "CandidateRound",
    "RoundStatus",
    "RoundPipeline",
    "RoundTemplate",
    "RoundType",
    "CandidatePage",
    "PaginationInfo",
    "PaginationState",
]
