"""
Incremental candidate page loader
"""
from typing import Callable, Dict, List, Optional

import structlog

from hiring_pipeline.core.cancellation import CancellationScope
from hiring_pipeline.core.config import settings
from hiring_pipeline.core.exceptions import FetchError
from hiring_pipeline.gateway.client import PipelineGateway
from hiring_pipeline.models.candidate import Candidate
from hiring_pipeline.models.pagination import CandidatePage, PaginationState

logger = structlog.get_logger()

LoadAllProgress = Callable[[int, int, int], None]


class PaginationCache:
    """
    Accumulates candidate pages for the selected round template.

    Every visible load runs against a token from a scope tied to the current
    selection. A new load or cancel() fires the old token, and a fetch whose
    token fired never writes state.
    """

    def __init__(self, gateway: PipelineGateway, page_size: Optional[int] = None):
        self.gateway = gateway
        self.page_size = page_size or settings.CANDIDATE_PAGE_SIZE
        self.round_template_id: Optional[str] = None
        self.state = PaginationState(page_size=self.page_size)
        self.last_page: Optional[CandidatePage] = None
        self.load_more_error: Optional[FetchError] = None
        self.is_loading = False
        self._candidates: List[Candidate] = []
        self._scope = CancellationScope("pagination")

    @property
    def candidates(self) -> List[Candidate]:
        return list(self._candidates)

    @property
    def has_more(self) -> bool:
        return self.state.has_next

    def _apply(self, page: CandidatePage, requested_page: int, reset: bool) -> List[Candidate]:
        info = page.page_info(requested_page)
        if reset:
            self._candidates = []
        known = {c.id for c in self._candidates}
        new_candidates = [c for c in page.candidates if c.id not in known]
        self._candidates.extend(new_candidates)
        self.state = PaginationState(
            current_page=info.current_page,
            page_size=self.state.page_size,
            total_count=info.total_count,
            total_pages=info.total_pages,
            has_next=info.has_next,
        )
        self.last_page = page
        return new_candidates

    async def load(
        self,
        round_template_id: str,
        page: int = 1,
        page_size: Optional[int] = None,
        force_refresh: bool = False,
    ) -> CandidatePage:
        """
        Load a page for a round template. Page 1 (or a different template)
        resets the accumulated list. Supersedes any load in flight.
        """
        if force_refresh:
            page = 1
            await self.gateway.invalidate_round_template(round_template_id)

        token = self._scope.renew(f"pagination:{round_template_id}")
        page_size = page_size or self.state.page_size
        self.is_loading = True
        try:
            result = await self.gateway.fetch_candidate_page(
                round_template_id,
                page=page,
                page_size=page_size,
                token=token,
                use_cache=not force_refresh,
            )
        finally:
            if not token.cancelled:
                self.is_loading = False
        token.raise_if_cancelled()

        # Selection changes only once the new page is in hand
        switching = round_template_id != self.round_template_id
        self.round_template_id = round_template_id
        self.state = self.state.model_copy(update={"page_size": page_size})
        self.load_more_error = None
        self._apply(result, page, reset=page == 1 or switching)
        logger.info(
            "candidate_page_loaded",
            round_template_id=round_template_id,
            page=self.state.current_page,
            loaded=len(self._candidates),
            total_count=self.state.total_count,
        )
        return result

    async def load_more(self) -> List[Candidate]:
        """
        Fetch the next page. Returns newly added candidates; an empty list
        when there is nothing more or a load is already running.
        """
        if self.round_template_id is None or not self.state.has_next or self.is_loading:
            return []

        token = self._scope.token
        round_template_id = self.round_template_id
        next_page = self.state.current_page + 1
        self.is_loading = True
        try:
            result = await self.gateway.fetch_candidate_page(
                round_template_id,
                page=next_page,
                page_size=self.state.page_size,
                token=token,
            )
        except FetchError as e:
            logger.warning(
                "candidate_load_more_failed",
                round_template_id=round_template_id,
                page=next_page,
                error=e.message,
            )
            self.load_more_error = e
            return []
        finally:
            if not token.cancelled:
                self.is_loading = False
        token.raise_if_cancelled()

        self.load_more_error = None
        added = self._apply(result, next_page, reset=False)
        logger.info(
            "candidate_page_loaded_more",
            round_template_id=round_template_id,
            page=next_page,
            added=len(added),
            loaded=len(self._candidates),
        )
        return added

    async def load_all(
        self,
        round_template_id: str,
        on_progress: Optional[LoadAllProgress] = None,
    ) -> List[Candidate]:
        """
        Fetch every page in sequence, bypassing the page cache. Visible
        pagination state is left untouched.
        """
        by_id: Dict[str, Candidate] = {}
        page = 1
        while True:
            result = await self.gateway.fetch_candidate_page(
                round_template_id,
                page=page,
                page_size=self.state.page_size,
                use_cache=False,
            )
            for candidate in result.candidates:
                by_id.setdefault(candidate.id, candidate)
            info = result.page_info(page)
            if on_progress is not None:
                on_progress(page, info.total_pages, len(by_id))
            if not info.has_next or not result.candidates:
                break
            page += 1

        logger.info(
            "candidate_cohort_loaded",
            round_template_id=round_template_id,
            pages=page,
            count=len(by_id),
        )
        return list(by_id.values())

    def replace(self, candidate: Candidate) -> None:
        """Swap in an updated copy of an already loaded candidate"""
        self._candidates = [candidate if c.id == candidate.id else c for c in self._candidates]

    def get(self, candidate_id: str) -> Optional[Candidate]:
        for candidate in self._candidates:
            if candidate.id == candidate_id:
                return candidate
        return None

    def cancel(self) -> None:
        self._scope.cancel()
        self.is_loading = False
