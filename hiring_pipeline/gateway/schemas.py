"""
Request/response schemas for the recruiting API
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from hiring_pipeline.models.candidate import RoundStatus


class StatusUpdate(BaseModel):
    """Status of one candidate for one round template"""
    candidate_id: str
    status: RoundStatus


class UpdateRoundStatusRequest(BaseModel):
    job_round_template_id: str
    candidate_updates: List[StatusUpdate]


class BulkCreateCandidateRoundsRequest(BaseModel):
    job_round_template_id: str
    candidates: List[StatusUpdate]
    created_by: str


class CompetencyOverride(BaseModel):
    name: str
    description: str = ""
    rubric_scorecard: Dict[str, str] = {}


class CandidateRoundOverrideRequest(BaseModel):
    evaluation_criteria: str
    competencies: List[CompetencyOverride]


class BulkOperationResponse(BaseModel):
    """Ack for bulk writes; partial failures are reported, not raised"""

    model_config = ConfigDict(extra="allow")

    message: Optional[str] = None
    total_processed: Optional[int] = None
    successful_count: Optional[int] = None
    failed_count: Optional[int] = None
    status_summary: Optional[Dict[str, int]] = None
    failed_rounds: Optional[List[Any]] = None

    @property
    def is_partial(self) -> bool:
        return bool(self.failed_count)
