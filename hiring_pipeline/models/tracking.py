"""
Pending / Confirmed wrappers for locally created records
"""
from typing import Generic, Literal, TypeVar
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")

TEMP_ID_PREFIX = "temp-"


def new_temp_id() -> str:
    return f"{TEMP_ID_PREFIX}{uuid4().hex}"


class Confirmed(BaseModel, Generic[T]):
    """Record the server has acknowledged with a real id"""

    model_config = ConfigDict(frozen=True)

    state: Literal["confirmed"] = "confirmed"
    id: str
    value: T

    @property
    def is_pending(self) -> bool:
        return False

    @property
    def record_id(self) -> str:
        return self.id


class Pending(BaseModel, Generic[T]):
    """Record created locally, not yet assigned a server id"""

    model_config = ConfigDict(frozen=True)

    state: Literal["pending"] = "pending"
    temp_id: str = Field(default_factory=new_temp_id)
    value: T

    @property
    def is_pending(self) -> bool:
        return True

    @property
    def record_id(self) -> str:
        return self.temp_id

    def resolve(self, record_id: str) -> Confirmed[T]:
        """Replace with a confirmed record carrying the server id"""
        args = self.__pydantic_generic_metadata__["args"]
        confirmed_cls = Confirmed[args[0]] if args else Confirmed
        return confirmed_cls(id=record_id, value=self.value)
