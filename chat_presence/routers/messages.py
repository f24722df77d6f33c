import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Path, Query
from starlette import status
from starlette.requests import Request

from chat_presence.application.message_service import MessageService
from chat_presence.application.models import MessageRequest
from chat_presence.common.exceptions import (
    InvalidMessageError,
    NotFoundError,
    StoreUnavailableError,
    UnauthorizedError,
)
from chat_presence.domain.chat_message import ChatMessage

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_message_service(request: Request) -> MessageService:
    return request.app.state.message_service


def parse_limit(raw: str | None) -> int | None:
    """숫자가 아니거나 0 이하이면 전체 조회"""
    if raw is None:
        return None
    try:
        limit = int(raw)
    except ValueError:
        return None
    return limit if limit > 0 else None


@router.post(
    "/messages",
    response_model=ChatMessage,
    status_code=status.HTTP_201_CREATED,
)
async def post_message(
    body: MessageRequest,
    user: str | None = Header(None),
    message_service: MessageService = Depends(get_message_service),
):
    try:
        return await message_service.post(
            sender=user or "", to=body.to, text=body.text, type=body.type
        )

    except UnauthorizedError as e:
        raise HTTPException(status_code=404, detail=e.message)

    except (InvalidMessageError, StoreUnavailableError) as e:
        raise HTTPException(status_code=422, detail=e.message)


@router.get("/messages", response_model=list[ChatMessage])
async def list_messages(
    user: str | None = Header(None),
    limit: str | None = Query(None),
    message_service: MessageService = Depends(get_message_service),
):
    try:
        return await message_service.list_messages(
            requester=user, limit=parse_limit(limit)
        )

    except StoreUnavailableError as e:
        logger.error(f"Failed to fetch messages: {e}")
        raise HTTPException(status_code=400, detail=e.message)


@router.put("/messages/{message_id}", response_model=ChatMessage)
async def edit_message(
    body: MessageRequest,
    message_id: str = Path(..., min_length=1),
    user: str | None = Header(None),
    message_service: MessageService = Depends(get_message_service),
):
    try:
        return await message_service.edit(
            message_id, requester=user, to=body.to, text=body.text, type=body.type
        )

    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)

    except UnauthorizedError as e:
        raise HTTPException(status_code=401, detail=e.message)

    except InvalidMessageError as e:
        raise HTTPException(status_code=422, detail=e.message)

    except StoreUnavailableError as e:
        logger.error(f"Failed to edit message {message_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to edit message")


@router.delete("/messages/{message_id}")
async def delete_message(
    message_id: str = Path(..., min_length=1),
    user: str | None = Header(None),
    message_service: MessageService = Depends(get_message_service),
):
    try:
        await message_service.delete(message_id, requester=user)

    except (NotFoundError, UnauthorizedError) as e:
        raise HTTPException(status_code=404, detail=e.message)

    except StoreUnavailableError as e:
        logger.error(f"Failed to delete message {message_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete message")

    return {"status": "ok"}


@router.delete("/messages")
async def clear_messages(
    message_service: MessageService = Depends(get_message_service),
):
    deleted = await message_service.clear()
    return {"status": "ok", "deleted": deleted}
