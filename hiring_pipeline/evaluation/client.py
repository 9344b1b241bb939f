"""
AI evaluation service client
"""
import asyncio
from typing import Any, Callable, Dict, List, Optional

import httpx
import structlog
from pydantic import ValidationError as SchemaValidationError

from hiring_pipeline.core.config import settings
from hiring_pipeline.core.exceptions import EvaluationServiceError
from hiring_pipeline.evaluation.schemas import (
    ResumeEvaluationRequest,
    SalesAssessmentSource,
    TranscriptUploadSource,
)
from hiring_pipeline.models.evaluation import (
    EvaluationOutcome,
    EvaluationRecord,
    FailureKind,
    is_no_resume_message,
    summarize_outcomes,
)

logger = structlog.get_logger()

ProgressCallback = Callable[[int, int], None]
CompletionCallback = Callable[[EvaluationOutcome], None]


class RetryableEvaluationError(Exception):
    """Service answered with an error worth another attempt"""


class EvaluationClient:
    """
    Client for the evaluation services.

    Resume evaluation never raises for service-side problems: every call
    resolves to an EvaluationOutcome, success or typed failure. On-demand
    evaluations (transcript, assessment platform, sales) raise
    EvaluationServiceError when the call itself fails.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        resume_url: Optional[str] = None,
        transcript_url: Optional[str] = None,
        assessment_url: Optional[str] = None,
        sales_url: Optional[str] = None,
        batch_size: Optional[int] = None,
        batch_delay: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
    ):
        self.client = client or httpx.AsyncClient(timeout=settings.EVALUATION_TIMEOUT_SECONDS)
        self.resume_url = resume_url or settings.RESUME_EVALUATION_URL
        self.transcript_url = transcript_url or settings.TRANSCRIPT_EVALUATION_URL
        self.assessment_url = assessment_url or settings.ASSESSMENT_EVALUATION_URL
        self.sales_url = sales_url or settings.SALES_EVALUATION_URL
        self.batch_size = batch_size or settings.EVALUATION_BATCH_SIZE
        self.batch_delay = settings.EVALUATION_BATCH_DELAY_SECONDS if batch_delay is None else batch_delay
        self.max_retries = settings.EVALUATION_MAX_RETRIES if max_retries is None else max_retries
        self.retry_delay = settings.EVALUATION_RETRY_DELAY_SECONDS if retry_delay is None else retry_delay

    async def aclose(self) -> None:
        await self.client.aclose()

    @staticmethod
    def _require_url(url: Optional[str], setting_name: str) -> str:
        if not url:
            raise EvaluationServiceError(
                f"{setting_name} is not configured",
                details={"setting": setting_name},
            )
        return url

    @staticmethod
    def _outcome_from_payload(
        payload: Dict[str, Any],
        candidate_round_id: str,
        result_id: Optional[str],
    ) -> EvaluationOutcome:
        """Build a success outcome; a payload that does not validate is an EVALUATION_ERROR"""
        try:
            record = EvaluationRecord.model_validate({**payload, "candidate_round_id": candidate_round_id})
        except SchemaValidationError as e:
            logger.error(
                "evaluation_result_malformed",
                candidate_round_id=candidate_round_id,
                error_count=e.error_count(),
            )
            return EvaluationOutcome(
                candidate_round_id=candidate_round_id,
                record=EvaluationRecord.failed(
                    FailureKind.EVALUATION_ERROR,
                    f"Malformed evaluation result ({e.error_count()} invalid fields)",
                    candidate_round_id,
                ),
            )
        return EvaluationOutcome(candidate_round_id=candidate_round_id, record=record, result_id=result_id)

    # ------------------------------------------------------------------
    # Resume evaluation
    # ------------------------------------------------------------------

    async def _post_resume_evaluation(self, url: str, request: ResumeEvaluationRequest) -> EvaluationOutcome:
        response = await self.client.post(url, json=request.model_dump())
        try:
            data = response.json()
        except ValueError:
            raise RetryableEvaluationError(
                f"Failed to parse response: {response.status_code} {response.reason_phrase}"
            )
        if not isinstance(data, dict):
            raise RetryableEvaluationError(f"Unexpected response body: {response.status_code}")

        if not response.is_success or not data.get("success", False):
            message = data.get("error_message") or f"HTTP {response.status_code}"
            if is_no_resume_message(message):
                return EvaluationOutcome(
                    candidate_round_id=request.candidate_round_id,
                    record=EvaluationRecord.failed(FailureKind.NO_RESUME, message, request.candidate_round_id),
                )
            raise RetryableEvaluationError(message)

        return self._outcome_from_payload(data, request.candidate_round_id, data.get("result_id"))

    async def evaluate_candidate_round(self, request: ResumeEvaluationRequest) -> EvaluationOutcome:
        """
        Evaluate one candidate round from its resume.
        Transient failures are retried up to max_retries; "no resume" is final.
        """
        try:
            url = self._require_url(self.resume_url, "RESUME_EVALUATION_URL")
        except EvaluationServiceError as e:
            return EvaluationOutcome(
                candidate_round_id=request.candidate_round_id,
                record=EvaluationRecord.failed(FailureKind.GENERIC, e.message, request.candidate_round_id),
            )

        attempt = 0
        while True:
            try:
                outcome = await self._post_resume_evaluation(url, request)
            except (httpx.HTTPError, RetryableEvaluationError) as e:
                if attempt >= self.max_retries:
                    logger.error(
                        "resume_evaluation_failed",
                        candidate_round_id=request.candidate_round_id,
                        attempts=attempt + 1,
                        error=str(e),
                    )
                    return EvaluationOutcome(
                        candidate_round_id=request.candidate_round_id,
                        record=EvaluationRecord.failed(
                            FailureKind.EVALUATION_ERROR,
                            f"failed after {attempt + 1} attempts: {e}",
                            request.candidate_round_id,
                        ),
                        retry_attempted=attempt > 0,
                    )
                attempt += 1
                logger.warning(
                    "resume_evaluation_retry",
                    candidate_round_id=request.candidate_round_id,
                    attempt=attempt,
                    max_retries=self.max_retries,
                    error=str(e),
                )
                await asyncio.sleep(self.retry_delay)
                continue

            outcome = outcome.model_copy(update={"retry_attempted": attempt > 0})
            if outcome.succeeded:
                logger.info(
                    "resume_evaluation_succeeded",
                    candidate_round_id=request.candidate_round_id,
                    score=outcome.record.overall_percentage_score,
                    retries=attempt,
                )
            elif outcome.record.failure == FailureKind.NO_RESUME:
                logger.info("resume_evaluation_no_resume", candidate_round_id=request.candidate_round_id)
            else:
                logger.warning(
                    "resume_evaluation_unsuccessful",
                    candidate_round_id=request.candidate_round_id,
                    error=outcome.record.error_message,
                )
            return outcome

    async def evaluate_batch(
        self,
        requests: List[ResumeEvaluationRequest],
        on_batch_progress: Optional[ProgressCallback] = None,
        on_candidate_complete: Optional[CompletionCallback] = None,
    ) -> List[EvaluationOutcome]:
        """
        Evaluate many candidate rounds in chunks of batch_size.
        Calls inside a chunk run concurrently and report completion in
        arrival order; a failing candidate never aborts the batch.
        """
        total = len(requests)
        chunks = [requests[i:i + self.batch_size] for i in range(0, total, self.batch_size)]
        outcomes: List[EvaluationOutcome] = []

        logger.info("batch_evaluation_started", total=total, chunks=len(chunks), batch_size=self.batch_size)

        async def run(request: ResumeEvaluationRequest) -> EvaluationOutcome:
            try:
                outcome = await self.evaluate_candidate_round(request)
            except Exception as e:
                logger.exception("batch_candidate_failed", candidate_round_id=request.candidate_round_id)
                outcome = EvaluationOutcome(
                    candidate_round_id=request.candidate_round_id,
                    record=EvaluationRecord.failed(FailureKind.GENERIC, str(e), request.candidate_round_id),
                )
            if on_candidate_complete is not None:
                on_candidate_complete(outcome)
            return outcome

        for index, chunk in enumerate(chunks):
            outcomes.extend(await asyncio.gather(*(run(request) for request in chunk)))

            if on_batch_progress is not None:
                on_batch_progress(len(outcomes), total)

            if index < len(chunks) - 1 and self.batch_delay:
                await asyncio.sleep(self.batch_delay)

        logger.info("batch_evaluation_completed", total=total, **summarize_outcomes(outcomes))
        return outcomes

    # ------------------------------------------------------------------
    # On-demand evaluations
    # ------------------------------------------------------------------

    async def _post_on_demand(
        self,
        url: str,
        payload: Dict[str, Any],
        candidate_round_id: str,
        action: str,
    ) -> EvaluationOutcome:
        try:
            response = await self.client.post(url, json=payload)
        except httpx.HTTPError as e:
            logger.error("on_demand_evaluation_request_failed", action=action, error=str(e))
            raise EvaluationServiceError(f"{action} failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise EvaluationServiceError(
                f"{action} failed: {response.status_code}",
                details={"status_code": response.status_code},
            ) from e

        if not response.is_success:
            message = (data.get("error_message") if isinstance(data, dict) else None) or f"HTTP {response.status_code}"
            raise EvaluationServiceError(f"{action} failed: {message}", details={"status_code": response.status_code})

        if not isinstance(data, dict):
            raise EvaluationServiceError(
                f"{action} failed: unexpected response body",
                details={"status_code": response.status_code},
            )

        if not data.get("success", False):
            message = data.get("error_message") or f"{action} failed"
            kind = FailureKind.NO_RESUME if is_no_resume_message(message) else FailureKind.EVALUATION_ERROR
            return EvaluationOutcome(
                candidate_round_id=candidate_round_id,
                record=EvaluationRecord.failed(kind, message, candidate_round_id),
            )

        record_payload = dict(data)
        file_metadata = data.get("file_metadata") or {}
        if not record_payload.get("transcript_text") and file_metadata.get("transcript_text"):
            record_payload["transcript_text"] = file_metadata["transcript_text"]

        outcome = self._outcome_from_payload(record_payload, candidate_round_id, data.get("result_id"))
        if outcome.succeeded:
            logger.info("on_demand_evaluation_succeeded", action=action, candidate_round_id=candidate_round_id)
        return outcome

    async def evaluate_transcript(
        self,
        candidate_round_id: str,
        job_opening_id: str,
        upload: TranscriptUploadSource,
    ) -> EvaluationOutcome:
        """Evaluate an interview from an uploaded transcript file"""
        url = self._require_url(self.transcript_url, "TRANSCRIPT_EVALUATION_URL")
        payload = {
            "candidate_round_id": candidate_round_id,
            "job_opening_id": job_opening_id,
            "file_type": upload.file_type,
            "file_content": upload.file_content,
        }
        return await self._post_on_demand(url, payload, candidate_round_id, "Interview transcript evaluation")

    async def evaluate_from_assessment_platform(
        self,
        email: str,
        job_round_template_id: str,
        candidate_round_id: str,
        job_opening_id: str,
    ) -> EvaluationOutcome:
        """Pull and evaluate results from the interview assessment platform"""
        url = self._require_url(self.assessment_url, "ASSESSMENT_EVALUATION_URL")
        payload = {
            "email": email,
            "job_round_template_id": job_round_template_id,
            "candidate_round_id": candidate_round_id,
            "job_opening_id": job_opening_id,
        }
        return await self._post_on_demand(url, payload, candidate_round_id, "Assessment platform evaluation")

    async def evaluate_sales_assessment(
        self,
        email: str,
        candidate_round_id: str,
        source: SalesAssessmentSource,
        round_type: str,
    ) -> EvaluationOutcome:
        """Evaluate a sales assessment submission"""
        url = self._require_url(self.sales_url, "SALES_EVALUATION_URL")
        payload = {
            "email": email,
            "assessment_id": source.assessment_id,
            "candidate_round_id": candidate_round_id,
            "account_id": source.account_id,
            "brand_id": source.brand_id,
            "round_type": round_type,
        }
        return await self._post_on_demand(url, payload, candidate_round_id, "Sales assessment evaluation")
