"""
Recruiting API gateway: candidate pages, status persistence, round activation
"""
import asyncio
from typing import Any, Dict, List, Optional, Type

import httpx
import structlog
from pydantic import ValidationError as SchemaValidationError

from hiring_pipeline.core.cache import RedisCache, get_cache_key
from hiring_pipeline.core.cancellation import CancellationToken
from hiring_pipeline.core.config import settings
from hiring_pipeline.core.exceptions import (
    ActivationError,
    CancelledOperation,
    FetchError,
    PersistError,
    PipelineException,
)
from hiring_pipeline.gateway.schemas import (
    BulkCreateCandidateRoundsRequest,
    BulkOperationResponse,
    CandidateRoundOverrideRequest,
    StatusUpdate,
    UpdateRoundStatusRequest,
)
from hiring_pipeline.models.pagination import CandidatePage
from hiring_pipeline.models.round_template import RoundTemplate

logger = structlog.get_logger()

CANDIDATES_BY_ROUND_TEMPLATE = "/candidates/by-job-round-template"
UPDATE_CANDIDATE_ROUND_STATUS = "/update-candidate-round-status"
CANDIDATE_ROUNDS_BULK_CREATE = "/candidate-rounds/bulk-create"
CONFIRM_ROUND_TEMPLATE = "/job-round-template/{round_template_id}/confirm"
CANDIDATE_ROUND_UPDATE = "/candidate-round/{candidate_round_id}/update"
JOB_ROUND_TEMPLATES = "/job-openings/{job_opening_id}/round-templates"

PAGE_CACHE_PREFIX = "round_candidates"


class PipelineGateway:
    """Async client for the recruiting API"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        jobs_base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        cache: Optional[RedisCache] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = (base_url or settings.CANDIDATES_API_URL).rstrip("/")
        self.jobs_base_url = (jobs_base_url or settings.JOBS_API_URL).rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=timeout or settings.HTTP_TIMEOUT_SECONDS)
        self.cache = cache

    async def aclose(self) -> None:
        await self.client.aclose()
        if self.cache is not None:
            await self.cache.close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _send(
        self,
        method: str,
        url: str,
        error_cls: Type[PipelineException],
        action: str,
        token: Optional[CancellationToken] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            if token is None:
                return await self.client.request(method, url, **kwargs)
            return await self._send_cancellable(method, url, token, **kwargs)
        except httpx.HTTPError as e:
            logger.error("gateway_request_failed", action=action, url=url, error=str(e))
            raise error_cls(f"Failed to {action}: {e}", details={"url": url}) from e

    async def _send_cancellable(
        self,
        method: str,
        url: str,
        token: CancellationToken,
        **kwargs: Any,
    ) -> httpx.Response:
        """Issue a request that is aborted when the token is cancelled"""
        token.raise_if_cancelled()
        task = asyncio.ensure_future(self.client.request(method, url, **kwargs))
        unregister = token.on_cancel(task.cancel)
        try:
            response = await task
        except asyncio.CancelledError:
            if token.cancelled and task.cancelled():
                raise CancelledOperation(details={"url": url}) from None
            raise
        finally:
            unregister()
        token.raise_if_cancelled()
        return response

    @staticmethod
    def _json(response: httpx.Response, error_cls: Type[PipelineException], action: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise error_cls(
                f"Failed to {action}: invalid response body",
                details={"status_code": response.status_code},
            ) from e

    def _bulk_ack(self, response: httpx.Response, action: str) -> BulkOperationResponse:
        """2xx, or a 400 that still reports successful_count, is an ack"""
        if response.status_code == 400:
            data = self._json(response, PersistError, action)
            if isinstance(data, dict) and data.get("successful_count") is not None:
                ack = BulkOperationResponse.model_validate(data)
                logger.warning(
                    "bulk_operation_partial_success",
                    action=action,
                    successful_count=ack.successful_count,
                    failed_count=ack.failed_count,
                )
                return ack
            raise PersistError(
                f"Failed to {action}: {response.status_code}",
                details={"status_code": response.status_code, "body": data},
            )
        if not response.is_success:
            raise PersistError(
                f"Failed to {action}: {response.status_code}",
                details={"status_code": response.status_code, "body": response.text[:500]},
            )
        data = self._json(response, PersistError, action)
        return BulkOperationResponse.model_validate(data if isinstance(data, dict) else {})

    # ------------------------------------------------------------------
    # Candidate pages
    # ------------------------------------------------------------------

    def _page_cache_key(self, round_template_id: str, page: int, page_size: int) -> str:
        return get_cache_key(PAGE_CACHE_PREFIX, round_template_id, page, page_size)

    async def invalidate_round_template(self, round_template_id: str) -> int:
        """Drop every cached page of a round template"""
        if self.cache is None:
            return 0
        removed = await self.cache.invalidate_pattern(get_cache_key(PAGE_CACHE_PREFIX, round_template_id, "*"))
        logger.debug("round_candidates_cache_invalidated", round_template_id=round_template_id, removed=removed)
        return removed

    async def fetch_candidate_page(
        self,
        round_template_id: str,
        page: int = 1,
        page_size: Optional[int] = None,
        token: Optional[CancellationToken] = None,
        use_cache: bool = True,
    ) -> CandidatePage:
        """Fetch one page of candidates for a round template"""
        page_size = page_size or settings.CANDIDATE_PAGE_SIZE
        cache_key = self._page_cache_key(round_template_id, page, page_size)

        if use_cache and self.cache is not None:
            cached = await self.cache.get(cache_key)
            if cached is not None:
                if token is not None:
                    token.raise_if_cancelled()
                logger.debug("round_candidates_cache_hit", round_template_id=round_template_id, page=page)
                return CandidatePage.model_validate(cached)

        url = f"{self.base_url}{CANDIDATES_BY_ROUND_TEMPLATE}/{round_template_id}"
        action = "fetch round candidates"
        response = await self._send(
            "GET",
            url,
            FetchError,
            action,
            token=token,
            params={"page": page, "limit": page_size},
        )
        if not response.is_success:
            raise FetchError(
                f"Failed to fetch round candidates: {response.status_code} {response.reason_phrase}",
                details={"round_template_id": round_template_id, "page": page, "status_code": response.status_code},
            )

        data = self._json(response, FetchError, action)
        try:
            candidate_page = CandidatePage.model_validate(data)
        except SchemaValidationError as e:
            raise FetchError(
                "Failed to fetch round candidates: unexpected response shape",
                details={"round_template_id": round_template_id, "error_count": e.error_count()},
            ) from e

        if self.cache is not None:
            await self.cache.set(cache_key, data)

        logger.info(
            "round_candidates_fetched",
            round_template_id=round_template_id,
            page=page,
            count=len(candidate_page.candidates),
        )
        return candidate_page

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def bulk_update_status(
        self,
        round_template_id: str,
        updates: List[StatusUpdate],
    ) -> BulkOperationResponse:
        """Overwrite per-round status for the given candidates"""
        request = UpdateRoundStatusRequest(job_round_template_id=round_template_id, candidate_updates=updates)
        action = "update candidate round status"
        response = await self._send(
            "POST",
            f"{self.base_url}{UPDATE_CANDIDATE_ROUND_STATUS}",
            PersistError,
            action,
            json=request.model_dump(mode="json"),
        )
        ack = self._bulk_ack(response, action)
        await self.invalidate_round_template(round_template_id)
        logger.info("candidate_round_status_updated", round_template_id=round_template_id, count=len(updates))
        return ack

    async def confirm_round_template(self, round_template_id: str) -> Dict[str, Any]:
        """Activate a round template"""
        url = f"{self.base_url}{CONFIRM_ROUND_TEMPLATE.format(round_template_id=round_template_id)}"
        action = "confirm job round template"
        response = await self._send("PATCH", url, ActivationError, action)
        if not response.is_success:
            raise ActivationError(
                f"Failed to confirm job round template: {response.status_code}",
                details={"round_template_id": round_template_id, "status_code": response.status_code},
            )
        data = self._json(response, ActivationError, action) if response.content else {}
        await self.invalidate_round_template(round_template_id)
        logger.info("round_template_confirmed", round_template_id=round_template_id)
        return data if isinstance(data, dict) else {}

    async def bulk_create_candidate_rounds(
        self,
        round_template_id: str,
        updates: List[StatusUpdate],
        created_by: str,
    ) -> BulkOperationResponse:
        """Create or update candidate rounds for a template, one per candidate"""
        request = BulkCreateCandidateRoundsRequest(
            job_round_template_id=round_template_id,
            candidates=updates,
            created_by=created_by,
        )
        action = "create candidate rounds"
        response = await self._send(
            "POST",
            f"{self.base_url}{CANDIDATE_ROUNDS_BULK_CREATE}",
            PersistError,
            action,
            json=request.model_dump(mode="json"),
        )
        ack = self._bulk_ack(response, action)
        await self.invalidate_round_template(round_template_id)
        logger.info(
            "candidate_rounds_bulk_created",
            round_template_id=round_template_id,
            count=len(updates),
            created_by=created_by,
        )
        return ack

    async def update_candidate_round_override(
        self,
        candidate_round_id: str,
        request: CandidateRoundOverrideRequest,
    ) -> Dict[str, Any]:
        """Override competencies and evaluation criteria for one candidate round"""
        url = f"{self.base_url}{CANDIDATE_ROUND_UPDATE.format(candidate_round_id=candidate_round_id)}"
        action = "update candidate round competencies"
        response = await self._send("PUT", url, PersistError, action, json=request.model_dump(mode="json"))
        if not response.is_success:
            raise PersistError(
                f"Failed to update candidate round competencies: {response.status_code}",
                details={"candidate_round_id": candidate_round_id, "status_code": response.status_code},
            )
        data = self._json(response, PersistError, action)
        return data if isinstance(data, dict) else {}

    # ------------------------------------------------------------------
    # Round templates
    # ------------------------------------------------------------------

    async def get_round_templates(self, job_opening_id: str) -> List[RoundTemplate]:
        url = f"{self.jobs_base_url}{JOB_ROUND_TEMPLATES.format(job_opening_id=job_opening_id)}"
        action = "fetch job round templates"
        response = await self._send("GET", url, FetchError, action)
        if not response.is_success:
            raise FetchError(
                f"Failed to fetch job round templates: {response.status_code}",
                details={"job_opening_id": job_opening_id, "status_code": response.status_code},
            )
        data = self._json(response, FetchError, action)
        templates = data.get("job_round_templates", []) if isinstance(data, dict) else data
        try:
            return [RoundTemplate.model_validate(t) for t in templates or []]
        except SchemaValidationError as e:
            raise FetchError(
                "Failed to fetch job round templates: unexpected response shape",
                details={"job_opening_id": job_opening_id, "error_count": e.error_count()},
            ) from e


def build_gateway() -> PipelineGateway:
    """Gateway wired from settings"""
    cache = RedisCache() if settings.REDIS_CACHE_ENABLED else None
    return PipelineGateway(cache=cache)
