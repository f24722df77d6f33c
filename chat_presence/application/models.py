from pydantic import BaseModel, Field, field_validator

from chat_presence.domain.chat_message import MessageType


class JoinRequest(BaseModel):
    name: str = Field(..., min_length=1)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Name cannot be empty")
        return v


class MessageRequest(BaseModel):
    """메시지 작성/수정 요청 바디"""

    to: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1)
    type: MessageType

    @field_validator("to", "text")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Field cannot be blank")
        return v
