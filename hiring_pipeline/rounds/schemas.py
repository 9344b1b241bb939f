"""
Round session API schemas
"""
from typing import Optional

from pydantic import BaseModel

from hiring_pipeline.evaluation.schemas import ReEvaluationSource
from hiring_pipeline.models.candidate import RoundStatus
from hiring_pipeline.models.evaluation import EvaluationRecord


class OpenRoundRequest(BaseModel):
    """Select a round template for the job"""
    round_template_id: str


class SetStatusRequest(BaseModel):
    status: RoundStatus


class AdvanceRequest(BaseModel):
    created_by: Optional[str] = None
    switch_to_next: bool = True


class ReEvaluateRequest(BaseModel):
    source: ReEvaluationSource


class LoadMoreResponse(BaseModel):
    added: int
    has_more: bool
    error: Optional[str] = None


class ReEvaluateResponse(BaseModel):
    candidate_id: str
    succeeded: bool
    evaluation: EvaluationRecord
    error: Optional[str] = None


class SaveStatusesResponse(BaseModel):
    saved: int
    successful_count: Optional[int] = None
    failed_count: Optional[int] = None
