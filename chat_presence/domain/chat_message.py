from datetime import datetime
from enum import StrEnum
from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field, field_validator

BROADCAST_TARGET = "Todos"

DEFAULT_TIME_FORMAT = "%H:%M:%S"


class MessageType(StrEnum):
    STATUS = "status"
    MESSAGE = "message"
    PRIVATE_MESSAGE = "private_message"


def format_time(time_format: str = DEFAULT_TIME_FORMAT) -> str:
    return datetime.now().strftime(time_format)


class ChatMessage(BaseModel):
    """채팅 메시지 모델 (status / message / private_message)"""

    id: str | None = Field(None, alias="_id")
    sender: str = Field(..., alias="from", min_length=1)
    to: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1)
    type: MessageType
    time: str = Field(default_factory=lambda: format_time())

    model_config = ConfigDict(
        populate_by_name=True,
    )

    @field_validator("id", mode="before")
    @classmethod
    def stringify_id(cls, v):
        return str(v) if v is not None else None

    @field_validator("sender", "to", "text")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Field cannot be blank")
        return v

    @classmethod
    def status(
        cls, name: str, text: str, time_format: str = DEFAULT_TIME_FORMAT
    ) -> "ChatMessage":
        """입장/퇴장 같은 시스템 status 이벤트"""
        return cls(
            sender=name,
            to=BROADCAST_TARGET,
            text=text,
            type=MessageType.STATUS,
            time=format_time(time_format),
        )

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, exclude={"id"}, mode="json")


def is_visible_to(message: ChatMessage, requester: str | None) -> bool:
    """
    메시지 공개 여부

    status, message는 모두에게 공개되고 private_message는
    보낸 사람과 받는 사람에게만 보인다. requester가 없으면 공개 메시지만.
    """
    if message.type in (MessageType.STATUS, MessageType.MESSAGE):
        return True

    if not requester:
        return False

    return requester in (message.sender, message.to)


def filter_visible(
    messages: Iterable[ChatMessage], requester: str | None
) -> list[ChatMessage]:
    return [message for message in messages if is_visible_to(message, requester)]
