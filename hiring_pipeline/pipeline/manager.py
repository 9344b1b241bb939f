"""
Active round sessions, one per job opening
"""
from typing import Dict, Optional

import structlog

from hiring_pipeline.core.exceptions import NotFoundError, ValidationError
from hiring_pipeline.evaluation.client import EvaluationClient
from hiring_pipeline.gateway.client import PipelineGateway, build_gateway
from hiring_pipeline.models.round_template import RoundPipeline
from hiring_pipeline.pipeline.session import RoundSession

logger = structlog.get_logger()


class RoundSessionManager:
    """Opens, switches and closes round sessions"""

    def __init__(
        self,
        gateway: Optional[PipelineGateway] = None,
        evaluation_client: Optional[EvaluationClient] = None,
        page_size: Optional[int] = None,
    ):
        self.gateway = gateway or build_gateway()
        self.evaluation_client = evaluation_client or EvaluationClient()
        self.page_size = page_size
        self._sessions: Dict[str, RoundSession] = {}

    async def open_round(self, job_opening_id: str, round_template_id: str) -> RoundSession:
        """Open a round template, discarding the job's previous session"""
        templates = await self.gateway.get_round_templates(job_opening_id)
        pipeline = RoundPipeline(templates)
        round_template = pipeline.get(round_template_id)

        previous = self._sessions.pop(job_opening_id, None)
        if previous is not None:
            previous.close()

        session = RoundSession(
            job_opening_id,
            round_template,
            pipeline,
            self.gateway,
            self.evaluation_client,
            page_size=self.page_size,
        )
        self._sessions[job_opening_id] = session
        await session.open()
        return session

    def get(self, job_opening_id: str) -> RoundSession:
        session = self._sessions.get(job_opening_id)
        if session is None:
            raise NotFoundError("Round session", job_opening_id)
        return session

    async def switch_to_next(self, job_opening_id: str) -> RoundSession:
        """Focus the round after the current one, typically after advancement"""
        session = self.get(job_opening_id)
        next_template = session.pipeline.next_after(session.round_template_id)
        if next_template is None:
            raise ValidationError(
                "No next round after the current round",
                details={"round_template_id": session.round_template_id},
            )
        logger.info(
            "round_session_switching",
            job_opening_id=job_opening_id,
            from_round_template_id=session.round_template_id,
            to_round_template_id=next_template.id,
        )
        return await self.open_round(job_opening_id, next_template.id)

    def close(self, job_opening_id: str) -> None:
        session = self._sessions.pop(job_opening_id, None)
        if session is None:
            raise NotFoundError("Round session", job_opening_id)
        session.close()

    async def close_all(self) -> None:
        for session in self._sessions.values():
            session.close()
        self._sessions = {}
        await self.gateway.aclose()
        await self.evaluation_client.aclose()
