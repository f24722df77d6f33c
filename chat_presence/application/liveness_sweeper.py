import asyncio
import logging
import time

from chat_presence.application.participant_service import LEAVE_TEXT
from chat_presence.common.exceptions import StoreUnavailableError
from chat_presence.domain.chat_message import ChatMessage, DEFAULT_TIME_FORMAT
from chat_presence.domain.participant import Participant, now_ms
from chat_presence.infrastructure.document_store import (
    MESSAGES,
    PARTICIPANTS,
    MongoDocumentStore,
)
from chat_presence.infrastructure.otel import OTELManager

logger = logging.getLogger(__name__)


class LivenessSweeper:
    """주기적으로 비활성 참가자를 추방하고 퇴장 메시지를 남긴다"""

    def __init__(
        self,
        store: MongoDocumentStore,
        otel_manager: OTELManager,
        interval: float = 15.0,
        inactivity_threshold: float = 10.0,
        time_format: str = DEFAULT_TIME_FORMAT,
        shutdown_timeout: float = 5.0,
    ):
        self.store = store
        self.otel_manager = otel_manager
        self.interval = interval
        self.inactivity_threshold = inactivity_threshold
        self.time_format = time_format
        self.shutdown_timeout = shutdown_timeout

        self._sweep_task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()

    async def start(self):
        if self._sweep_task and not self._sweep_task.done():
            logger.warning("LivenessSweeper already running")
            return

        if self._stop_event.is_set():
            self._stop_event.clear()

        self._sweep_task = asyncio.create_task(self._sweep_worker())
        logger.info(
            "LivenessSweeper started",
            extra={
                "interval": self.interval,
                "inactivity_threshold": self.inactivity_threshold,
            },
        )

    async def stop(self):
        if self._stop_event.is_set():
            logger.info("LivenessSweeper already stopping/stopped")
            return

        logger.info("LivenessSweeper stopping...")
        self._stop_event.set()

        if self._sweep_task and not self._sweep_task.done():
            # 진행 중인 sweep은 끝까지 실행되도록 잠시 기다린다
            done, pending = await asyncio.wait(
                [self._sweep_task], timeout=self.shutdown_timeout
            )
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        logger.info("LivenessSweeper stopped")

    async def _sweep_worker(self):
        """interval마다 sweep 실행, 실패해도 다음 주기에 다시 시도"""
        try:
            while not self._stop_event.is_set():
                try:
                    await asyncio.wait_for(
                        self._stop_event.wait(), timeout=self.interval
                    )
                    break
                except asyncio.TimeoutError:
                    pass

                try:
                    await self.sweep()
                except StoreUnavailableError as e:
                    logger.warning(f"Sweep skipped, store unavailable: {e}")
                except Exception as e:
                    logger.error(f"Sweep failed: {e}", exc_info=True)

        except asyncio.CancelledError:
            logger.info("Sweep worker cancelled")
            raise
        finally:
            logger.debug("Sweep worker exited")

    async def sweep(self) -> list[str]:
        """
        한 번의 sweep

        1. 전체 참가자 조회
        2. lastStatus 기준 threshold 초과 참가자 선별
        3. 전부 제거한 뒤 제거된 참가자마다 퇴장 메시지 기록

        제거 도중 저장소 에러가 나면 남은 참가자는 다음 주기로 넘기고,
        이미 제거된 참가자의 퇴장 메시지는 그대로 기록한다. 프로세스가
        두 단계 사이에 죽으면 퇴장 메시지 없이 제거된 참가자가 남을 수 있다.

        Returns:
            추방된 참가자 이름 목록
        """
        started = time.monotonic()

        try:
            with self.otel_manager.tracer.start_as_current_span(
                "liveness.sweep"
            ) as span:
                documents = await self.store.find(PARTICIPANTS)
                participants = [Participant.model_validate(doc) for doc in documents]

                now = now_ms()
                threshold_ms = int(self.inactivity_threshold * 1000)
                inactive = [
                    p for p in participants if p.is_inactive(now, threshold_ms)
                ]

                if span:
                    span.set_attribute("participants.total", len(participants))
                    span.set_attribute("participants.inactive", len(inactive))

                if not inactive:
                    return []

                evicted = await self._remove_inactive(inactive)
                await self._send_leave_messages(evicted)

                self.otel_manager.evicted_participants_counter.add(len(evicted))
        finally:
            self.otel_manager.sweep_duration_histogram.record(
                (time.monotonic() - started) * 1000
            )

        if evicted:
            logger.info(
                f"Evicted {len(evicted)} inactive participants",
                extra={"evicted": evicted},
            )
        return evicted

    async def _remove_inactive(self, inactive: list[Participant]) -> list[str]:
        """
        조회 시점의 lastStatus가 그대로인 참가자만 제거

        저장소 에러가 나면 거기서 멈추고 그때까지 제거된 이름을 반환한다.
        """
        evicted = []
        for index, participant in enumerate(inactive):
            try:
                deleted = await self.store.delete_one(
                    PARTICIPANTS,
                    {
                        "name": participant.name,
                        "lastStatus": participant.last_status,
                    },
                )
            except StoreUnavailableError as e:
                logger.warning(
                    f"Eviction interrupted, {len(inactive) - index} "
                    f"left for next sweep: {e}",
                    extra={"participant": participant.name},
                )
                break

            if deleted:
                evicted.append(participant.name)
            else:
                logger.debug(
                    f"Participant refreshed or gone before eviction: {participant.name}"
                )
        return evicted

    async def _send_leave_messages(self, names: list[str]) -> list[str]:
        """퇴장 메시지 기록, 실패한 이름은 로그를 남기고 계속 진행"""
        failed = []
        for name in names:
            message = ChatMessage.status(name, LEAVE_TEXT, time_format=self.time_format)
            try:
                await self.store.insert_one(MESSAGES, message.to_document())
            except StoreUnavailableError as e:
                failed.append(name)
                logger.error(
                    f"Participant evicted without departure event: {name}: {e}",
                    extra={"participant": name},
                )
        return failed
