import logging

from pydantic import ValidationError
from pymongo import DESCENDING

from chat_presence.common.exceptions import (
    InvalidMessageError,
    NotFoundError,
    UnauthorizedError,
)
from chat_presence.domain.chat_message import (
    ChatMessage,
    DEFAULT_TIME_FORMAT,
    MessageType,
    filter_visible,
    format_time,
)
from chat_presence.infrastructure.document_store import (
    MESSAGES,
    PARTICIPANTS,
    MongoDocumentStore,
)

logger = logging.getLogger(__name__)


class MessageService:
    """메시지 로그 비즈니스 로직"""

    def __init__(
        self,
        store: MongoDocumentStore,
        time_format: str = DEFAULT_TIME_FORMAT,
    ):
        self.store = store
        self.time_format = time_format

    async def post(self, sender: str, to: str, text: str, type: str) -> ChatMessage:
        """
        메시지 작성

        Raises:
            UnauthorizedError: 등록되지 않은 발신자
            InvalidMessageError: 필드 누락 또는 허용되지 않은 type
        """
        if not sender or (
            await self.store.find_one(PARTICIPANTS, {"name": sender}) is None
        ):
            raise UnauthorizedError(f"Sender is not a participant: {sender}")

        message = self._build(sender=sender, to=to, text=text, type=type)
        message.id = await self.store.insert_one(MESSAGES, message.to_document())

        logger.debug(
            f"Message posted by {sender}",
            extra={"sender": sender, "to": to, "type": message.type},
        )
        return message

    async def list_messages(
        self, requester: str | None, limit: int | None = None
    ) -> list[ChatMessage]:
        """
        최근 limit개를 가져온 뒤 공개 여부로 거른다

        limit은 필터 이전 윈도우에 적용되므로 결과가 limit보다 적을 수 있다.
        """
        if limit is not None and limit <= 0:
            limit = None

        documents = await self.store.find(
            MESSAGES, sort=[("_id", DESCENDING)], limit=limit
        )
        documents.reverse()

        messages = [ChatMessage.model_validate(document) for document in documents]
        return filter_visible(messages, requester)

    async def edit(
        self, message_id: str, requester: str | None, to: str, text: str, type: str
    ) -> ChatMessage:
        """
        Raises:
            NotFoundError: 메시지 없음
            UnauthorizedError: 작성자가 아님
            InvalidMessageError: 잘못된 입력
        """
        existing = await self._get_owned(message_id, requester)

        updated = self._build(
            sender=existing.sender, to=to, text=text, type=type, time=existing.time
        )
        matched = await self.store.update_one_by_id(
            MESSAGES,
            message_id,
            {"to": updated.to, "text": updated.text, "type": updated.type.value},
        )
        if not matched:
            raise NotFoundError(f"Message not found: {message_id}")

        updated.id = existing.id
        return updated

    async def delete(self, message_id: str, requester: str | None) -> None:
        await self._get_owned(message_id, requester)

        deleted = await self.store.delete_one_by_id(MESSAGES, message_id)
        if not deleted:
            raise NotFoundError(f"Message not found: {message_id}")

    async def clear(self) -> int:
        """모든 메시지 삭제 (관리용, 소유권 검사 없음)"""
        deleted = await self.store.delete_many(MESSAGES)
        logger.warning(f"Cleared {deleted} messages", extra={"deleted": deleted})
        return deleted

    async def _get_owned(self, message_id: str, requester: str | None) -> ChatMessage:
        document = await self.store.find_one_by_id(MESSAGES, message_id)
        if document is None:
            raise NotFoundError(f"Message not found: {message_id}")

        message = ChatMessage.model_validate(document)
        if message.sender != requester:
            raise UnauthorizedError(f"{requester} is not the author of {message_id}")

        return message

    def _build(self, type, time: str | None = None, **fields) -> ChatMessage:
        try:
            message_type = MessageType(type)
        except ValueError as e:
            raise InvalidMessageError(f"Invalid message type: {type}") from e

        try:
            return ChatMessage(
                type=message_type,
                time=time or format_time(self.time_format),
                **fields,
            )
        except ValidationError as e:
            raise InvalidMessageError("Invalid message") from e
