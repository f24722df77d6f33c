import time

from pydantic import BaseModel, ConfigDict, Field, field_validator


def now_ms() -> int:
    return int(time.time() * 1000)


class Participant(BaseModel):
    """채팅방 참가자"""

    id: str | None = Field(None, alias="_id")
    name: str = Field(..., min_length=1)
    last_status: int = Field(default_factory=now_ms, alias="lastStatus")

    model_config = ConfigDict(
        populate_by_name=True,
    )

    @field_validator("id", mode="before")
    @classmethod
    def stringify_id(cls, v):
        return str(v) if v is not None else None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Name cannot be empty")
        return v

    def idle_ms(self, now: int) -> int:
        return now - self.last_status

    def is_inactive(self, now: int, threshold_ms: int) -> bool:
        """마지막 상태 갱신 이후 threshold를 초과했는지"""
        return self.idle_ms(now) > threshold_ms

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, exclude={"id"})
