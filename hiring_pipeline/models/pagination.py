"""
Paginated candidate page models
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from hiring_pipeline.models.candidate import Candidate


class PaginationInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    current_page: int = 1
    total_pages: int = 1
    total_count: int = 0
    limit: Optional[int] = None
    has_next: bool = False
    has_previous: bool = False
    current_page_count: Optional[int] = None


class TemplateInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    round_name: Optional[str] = None
    round_type: Optional[str] = None
    order_index: Optional[int] = None
    round_id: Optional[str] = None
    evaluation_criteria: Optional[str] = None
    competencies: Optional[Any] = None


class CandidatePage(BaseModel):
    """One page of the by-round-template candidate listing"""

    model_config = ConfigDict(extra="ignore")

    job_round_template_id: Optional[str] = None
    template_info: Optional[TemplateInfo] = None
    pagination: Optional[PaginationInfo] = None
    candidate_count: Optional[int] = None  # Legacy, use pagination.total_count
    candidates: List[Candidate] = Field(default_factory=list)
    custom_field_definitions: List[Dict[str, Any]] = Field(default_factory=list)

    def page_info(self, requested_page: int = 1) -> PaginationInfo:
        """Pagination metadata, synthesized for unpaginated legacy responses"""
        if self.pagination is not None:
            return self.pagination
        count = self.candidate_count if self.candidate_count is not None else len(self.candidates)
        return PaginationInfo(
            current_page=requested_page,
            total_pages=1,
            total_count=count,
            has_next=False,
            current_page_count=len(self.candidates),
        )


class PaginationState(BaseModel):
    current_page: int = 0
    page_size: int
    total_count: int = 0
    total_pages: int = 0
    has_next: bool = False
