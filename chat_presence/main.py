import logging
from contextlib import asynccontextmanager
from datetime import datetime, UTC

from fastapi import FastAPI
from fastapi.responses import ORJSONResponse
from starlette import status
from starlette.middleware.cors import CORSMiddleware
from starlette.middleware.gzip import GZipMiddleware
from starlette.requests import Request

from chat_presence.application.liveness_sweeper import LivenessSweeper
from chat_presence.application.message_service import MessageService
from chat_presence.application.participant_service import ParticipantService
from chat_presence.config import Settings
from chat_presence.infrastructure.document_store import MongoDocumentStore
from chat_presence.infrastructure.otel import OTELManager
from chat_presence.routers.messages import router as messages_router
from chat_presence.routers.participants import router as participants_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Chat Presence Service...")

    services_to_stop = []
    try:
        app.state.is_draining = False
        settings = Settings()
        app.state.settings = settings

        # OTel
        otel_manager = OTELManager(
            service_name=settings.OTEL_SERVICE_NAME,
            otlp_grpc_endpoint=settings.OTEL_OTLP_GRPC_ENDPOINT,
            metric_export_interval_ms=settings.OTEL_METRIC_EXPORT_INTERVAL_MS,
        )
        app.state.otel_manager = otel_manager
        services_to_stop.append(otel_manager)

        # MongoDocumentStore
        document_store = MongoDocumentStore(
            mongo_client_host=settings.DOCUMENT_STORE_MONGO_CLIENT_HOST,
            mongo_client_max_pool_size=settings.DOCUMENT_STORE_MONGO_CLIENT_MAX_POOL_SIZE,
            mongo_client_min_pool_size=settings.DOCUMENT_STORE_MONGO_CLIENT_MIN_POOL_SIZE,
            server_selection_timeout_ms=settings.DOCUMENT_STORE_SERVER_SELECTION_TIMEOUT_MS,
            db_name=settings.DOCUMENT_STORE_DB_NAME,
            operation_timeout=settings.DOCUMENT_STORE_OPERATION_TIMEOUT,
        )
        await document_store.start()
        app.state.document_store = document_store
        services_to_stop.append(document_store)

        # ParticipantService
        participant_service = ParticipantService(
            store=document_store,
            otel_manager=otel_manager,
            time_format=settings.MESSAGE_TIME_FORMAT,
        )
        app.state.participant_service = participant_service

        # MessageService
        message_service = MessageService(
            store=document_store,
            time_format=settings.MESSAGE_TIME_FORMAT,
        )
        app.state.message_service = message_service

        # LivenessSweeper
        liveness_sweeper = LivenessSweeper(
            store=document_store,
            otel_manager=otel_manager,
            interval=settings.LIVENESS_SWEEPER_INTERVAL,
            inactivity_threshold=settings.LIVENESS_SWEEPER_INACTIVITY_THRESHOLD,
            time_format=settings.MESSAGE_TIME_FORMAT,
        )
        await liveness_sweeper.start()
        app.state.liveness_sweeper = liveness_sweeper
        services_to_stop.append(liveness_sweeper)

        logger.info("Application started successfully!")

        yield

    except Exception as e:
        logger.critical(f"Startup failed: {e}", exc_info=True)
        raise

    finally:
        logger.info("Shutting down...")
        app.state.is_draining = True

        for service in reversed(services_to_stop):
            try:
                await service.stop()
            except Exception as e:
                logger.error(f"Error stopping service: {e}", exc_info=True)

        logger.info("Shutdown complete")


app = FastAPI(lifespan=lifespan, default_response_class=ORJSONResponse)

# 미들웨어
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(GZipMiddleware)


app.include_router(participants_router)
app.include_router(messages_router)


@app.get("/health")
async def health_check_liveness():
    return {"status": "ok", "timestamp": datetime.now(UTC).isoformat()}


@app.get("/readiness")
async def health_check_readiness(request: Request):
    if request.app.state.is_draining:
        return ORJSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "shutting_down",
                "timestamp": datetime.now(UTC).isoformat(),
            },
        )

    return {"status": "ready", "timestamp": datetime.now(UTC).isoformat()}
