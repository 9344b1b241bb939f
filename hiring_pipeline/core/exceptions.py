"""
Custom exception classes for the pipeline core
"""
from typing import Optional, Dict, Any


class PipelineException(Exception):
    """Base exception for the hiring pipeline"""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class FetchError(PipelineException):
    """Candidate or template fetch failed (network, pagination)"""

    def __init__(self, message: str = "Failed to fetch pipeline data", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=502, details=details)


class PersistError(PipelineException):
    """Bulk status update or candidate-round creation failed"""

    def __init__(self, message: str = "Failed to persist candidate rounds", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=502, details=details)


class ActivationError(PipelineException):
    """Round template confirmation failed"""

    def __init__(self, message: str = "Failed to activate round template", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=502, details=details)


class EvaluationServiceError(PipelineException):
    """An on-demand evaluation call could not be completed"""

    def __init__(self, message: str = "Evaluation service failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=502, details=details)


class CancelledOperation(PipelineException):
    """Operation was superseded by a newer round selection. Never user facing."""

    def __init__(self, message: str = "Operation cancelled", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=499, details=details)


class NotFoundError(PipelineException):
    """Resource not found errors"""

    def __init__(self, resource: str, identifier: Optional[str] = None):
        message = f"{resource} not found"
        if identifier:
            message += f": {identifier}"
        super().__init__(message, status_code=404)


class ValidationError(PipelineException):
    """Validation errors"""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=422, details=details)


class ReEvaluationInProgressError(PipelineException):
    """A re-evaluation is already running for the candidate"""

    def __init__(self, candidate_id: str):
        super().__init__(
            f"Re-evaluation already in progress for candidate {candidate_id}",
            status_code=409,
            details={"candidate_id": candidate_id},
        )
