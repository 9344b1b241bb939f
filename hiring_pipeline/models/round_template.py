"""
Round template models and pipeline ordering
"""
from enum import Enum
from typing import Any, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict

from hiring_pipeline.core.exceptions import NotFoundError, ValidationError


class RoundType(str, Enum):
    SCREENING = "SCREENING"
    INTERVIEW = "INTERVIEW"
    PROJECT = "PROJECT"
    RAPID_FIRE = "RAPID_FIRE"
    RAPID_FIRE_WITH_GROUNDING = "RAPID_FIRE_WITH_GROUNDING"
    GAMES_ARENA = "GAMES_ARENA"
    TALK_ON_A_TOPIC = "TALK_ON_A_TOPIC"


# Rounds evaluated from a sales assessment
SALES_ROUND_TYPES = {
    RoundType.RAPID_FIRE.value,
    RoundType.RAPID_FIRE_WITH_GROUNDING.value,
    RoundType.GAMES_ARENA.value,
    RoundType.TALK_ON_A_TOPIC.value,
}


class RoundTemplate(BaseModel):
    """One ordered stage of a job's hiring pipeline"""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    job_opening_id: Optional[str] = None
    round_id: Optional[str] = None
    round_name: str = ""
    round_type: str
    order_index: int
    is_active: bool = False
    is_required: bool = False
    custom_evaluation_criteria: Optional[str] = None
    custom_competencies: Optional[List[Any]] = None

    @property
    def is_screening(self) -> bool:
        return self.round_type.upper() == RoundType.SCREENING.value


class RoundPipeline:
    """
    Ordered round templates for one job opening.
    order_index must be unique, start at 1 and have no gaps.
    """

    def __init__(self, templates: Iterable[RoundTemplate]):
        self.templates: List[RoundTemplate] = sorted(templates, key=lambda t: t.order_index)
        self._validate()

    def _validate(self) -> None:
        indexes = [t.order_index for t in self.templates]
        if not indexes:
            return
        if len(set(indexes)) != len(indexes):
            raise ValidationError("Duplicate round order_index in pipeline", details={"order_indexes": indexes})
        expected = list(range(1, len(indexes) + 1))
        if indexes != expected:
            raise ValidationError(
                "Round order_index must start at 1 and be gap-free",
                details={"order_indexes": indexes},
            )

    def __len__(self) -> int:
        return len(self.templates)

    def __iter__(self):
        return iter(self.templates)

    def get(self, round_template_id: str) -> RoundTemplate:
        for template in self.templates:
            if template.id == round_template_id:
                return template
        raise NotFoundError("Round template", round_template_id)

    def first(self) -> Optional[RoundTemplate]:
        return self.templates[0] if self.templates else None

    def next_after(self, round_template_id: str) -> Optional[RoundTemplate]:
        current = self.get(round_template_id)
        for template in self.templates:
            if template.order_index == current.order_index + 1:
                return template
        return None
