"""
Evaluation request and re-evaluation source schemas
"""
import base64
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from hiring_pipeline.core.config import settings


class ResumeEvaluationRequest(BaseModel):
    candidate_round_id: str
    job_opening_id: str


class EvaluationSource(str, Enum):
    RESUME = "resume"
    TRANSCRIPT_UPLOAD = "transcript_upload"
    ASSESSMENT_PLATFORM = "assessment_platform"
    SALES_ASSESSMENT = "sales_assessment"


class ResumeSource(BaseModel):
    """Re-run the resume evaluation"""
    kind: Literal["resume"] = "resume"


class TranscriptUploadSource(BaseModel):
    """Interview transcript uploaded as PDF or TXT"""
    kind: Literal["transcript_upload"] = "transcript_upload"
    file_type: Literal["pdf", "txt"]
    file_content: str = Field(..., min_length=1, description="base64, without data: prefix")

    @classmethod
    def from_bytes(cls, content: bytes, file_type: str) -> "TranscriptUploadSource":
        return cls(file_type=file_type, file_content=base64.b64encode(content).decode("ascii"))


class AssessmentPlatformSource(BaseModel):
    """Pull results from the external interview assessment platform"""
    kind: Literal["assessment_platform"] = "assessment_platform"
    # Round id configured on the platform; defaults to the round template id
    platform_round_id: Optional[str] = None


class SalesAssessmentSource(BaseModel):
    """Evaluate from a sales assessment submission"""
    kind: Literal["sales_assessment"] = "sales_assessment"
    assessment_id: str = Field(..., min_length=1)
    brand_id: str = Field(..., min_length=1)
    account_id: str = Field(default_factory=lambda: settings.SALES_ACCOUNT_ID)


ReEvaluationSource = Annotated[
    Union[ResumeSource, TranscriptUploadSource, AssessmentPlatformSource, SalesAssessmentSource],
    Field(discriminator="kind"),
]
