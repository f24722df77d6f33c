import logging

from fastapi import APIRouter, Depends, Header, HTTPException
from starlette import status
from starlette.requests import Request

from chat_presence.application.models import JoinRequest
from chat_presence.application.participant_service import ParticipantService
from chat_presence.common.exceptions import (
    ConflictError,
    InvalidMessageError,
    NotFoundError,
    StoreUnavailableError,
)
from chat_presence.domain.participant import Participant

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_participant_service(request: Request) -> ParticipantService:
    return request.app.state.participant_service


@router.get("/participants", response_model=list[Participant])
async def list_participants(
    participant_service: ParticipantService = Depends(get_participant_service),
):
    try:
        return await participant_service.list_participants()

    except StoreUnavailableError as e:
        logger.error(f"Failed to list participants: {e}")
        raise HTTPException(status_code=400, detail=e.message)


@router.post(
    "/participants",
    response_model=Participant,
    status_code=status.HTTP_201_CREATED,
)
async def join(
    body: JoinRequest,
    participant_service: ParticipantService = Depends(get_participant_service),
):
    try:
        return await participant_service.join(body.name)

    except ConflictError as e:
        raise HTTPException(status_code=409, detail=e.message)

    except InvalidMessageError as e:
        raise HTTPException(status_code=422, detail=e.message)

    except StoreUnavailableError as e:
        logger.error(f"Join failed: {e}", extra={"participant": body.name})
        raise HTTPException(status_code=500, detail="Failed to join")


@router.delete("/participants")
async def leave(
    user: str | None = Header(None),
    participant_service: ParticipantService = Depends(get_participant_service),
):
    try:
        await participant_service.leave(user or "")

    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)

    except StoreUnavailableError as e:
        logger.error(f"Leave failed: {e}", extra={"participant": user})
        raise HTTPException(status_code=500, detail="Failed to leave")

    return {"status": "ok"}


@router.post("/status")
async def heartbeat(
    user: str | None = Header(None),
    participant_service: ParticipantService = Depends(get_participant_service),
):
    try:
        await participant_service.heartbeat(user or "")

    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)

    except StoreUnavailableError as e:
        logger.error(f"Heartbeat failed: {e}", extra={"participant": user})
        raise HTTPException(status_code=422, detail=e.message)

    return {"status": "ok"}
