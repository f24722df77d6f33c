import logging

from pydantic import ValidationError

from chat_presence.common.exceptions import (
    ConflictError,
    DuplicateDocumentError,
    InvalidMessageError,
    NotFoundError,
    StoreUnavailableError,
)
from chat_presence.domain.chat_message import ChatMessage, DEFAULT_TIME_FORMAT
from chat_presence.domain.participant import Participant, now_ms
from chat_presence.infrastructure.document_store import (
    MESSAGES,
    PARTICIPANTS,
    MongoDocumentStore,
)
from chat_presence.infrastructure.otel import OTELManager

logger = logging.getLogger(__name__)

ENTER_TEXT = "entered the room"
LEAVE_TEXT = "left the room"


class ParticipantService:
    """참가자 레지스트리 (입장, 상태 갱신, 목록, 제거)"""

    def __init__(
        self,
        store: MongoDocumentStore,
        otel_manager: OTELManager | None = None,
        time_format: str = DEFAULT_TIME_FORMAT,
    ):
        self.store = store
        self.otel_manager = otel_manager
        self.time_format = time_format

    async def list_participants(self) -> list[Participant]:
        documents = await self.store.find(PARTICIPANTS)
        return [Participant.model_validate(document) for document in documents]

    async def get(self, name: str) -> Participant | None:
        document = await self.store.find_one(PARTICIPANTS, {"name": name})
        if document is None:
            return None
        return Participant.model_validate(document)

    async def join(self, name: str) -> Participant:
        """
        참가자 등록 후 입장 status 메시지 기록

        두 번의 쓰기는 트랜잭션이 아니다. 참가자 문서는 entered=False로
        저장되고 입장 메시지가 기록된 뒤 True가 된다. 메시지 저장이 실패해
        entered=False로 남은 이름으로 다시 입장하면 Conflict 대신 입장
        메시지 기록을 이어서 진행한다.

        Raises:
            InvalidMessageError: 이름이 비어있음
            ConflictError: 이미 등록된 이름
            StoreUnavailableError: 저장소 장애
        """
        try:
            participant = Participant(name=name, last_status=now_ms())
        except ValidationError as e:
            raise InvalidMessageError("Invalid participant name") from e

        existing = await self.store.find_one(PARTICIPANTS, {"name": name})
        if existing is None:
            try:
                participant.id = await self.store.insert_one(
                    PARTICIPANTS, {**participant.to_document(), "entered": False}
                )
            except DuplicateDocumentError as e:
                # check 이후 동시에 같은 이름으로 입장한 경우
                raise ConflictError(f"Name already in use: {name}") from e
        elif existing.get("entered", True):
            raise ConflictError(f"Name already in use: {name}")
        else:
            logger.warning(
                f"Resuming join with missing entry event: {name}",
                extra={"participant": name},
            )
            participant = Participant.model_validate(existing)

        try:
            await self._append_status(name, ENTER_TEXT)
        except StoreUnavailableError:
            logger.error(
                f"Participant joined without entry event: {name}",
                extra={"participant": name},
                exc_info=True,
            )
            raise

        participant.last_status = now_ms()
        await self.store.update_one_by_id(
            PARTICIPANTS,
            participant.id,
            {"entered": True, "lastStatus": participant.last_status},
        )

        if self.otel_manager:
            self.otel_manager.joined_participants_counter.add(1)

        logger.info(f"Participant joined: {name}", extra={"participant": name})
        return participant

    async def heartbeat(self, name: str) -> None:
        """lastStatus 갱신"""
        participant = await self.get(name)
        if participant is None:
            raise NotFoundError(f"Participant not found: {name}")

        matched = await self.store.update_one_by_id(
            PARTICIPANTS, participant.id, {"lastStatus": now_ms()}
        )
        if not matched:
            # 조회와 갱신 사이에 퇴장/추방됨
            raise NotFoundError(f"Participant not found: {name}")

    async def remove(self, name: str) -> None:
        deleted = await self.store.delete_one(PARTICIPANTS, {"name": name})
        if not deleted:
            raise NotFoundError(f"Participant not found: {name}")

        logger.info(f"Participant removed: {name}", extra={"participant": name})

    async def leave(self, name: str) -> None:
        """명시적 퇴장: 제거 후 퇴장 status 메시지"""
        await self.remove(name)
        await self._append_status(name, LEAVE_TEXT)

    async def _append_status(self, name: str, text: str) -> str:
        message = ChatMessage.status(name, text, time_format=self.time_format)
        return await self.store.insert_one(MESSAGES, message.to_document())
