from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.responses import ORJSONResponse
from starlette.testclient import TestClient

from chat_presence.application.message_service import MessageService
from chat_presence.application.participant_service import ParticipantService
from chat_presence.routers.messages import router as messages_router
from chat_presence.routers.participants import router as participants_router


@pytest.fixture
def mock_participant_service():
    return AsyncMock(spec=ParticipantService)


@pytest.fixture
def mock_message_service():
    return AsyncMock(spec=MessageService)


@pytest.fixture
def test_app(mock_participant_service, mock_message_service):
    """테스트용 FastAPI 앱"""
    app = FastAPI(default_response_class=ORJSONResponse)
    app.include_router(participants_router)
    app.include_router(messages_router)

    app.state.is_draining = False
    app.state.participant_service = mock_participant_service
    app.state.message_service = mock_message_service
    return app


@pytest.fixture
def client(test_app):
    """TestClient 인스턴스"""
    with TestClient(test_app) as client:
        yield client
