from pydantic.v1 import BaseSettings


class Settings(BaseSettings):
    # OTEL
    OTEL_SERVICE_NAME: str = "chat-presence-service"
    OTEL_OTLP_GRPC_ENDPOINT: str = "otel-collector:4317"
    OTEL_METRIC_EXPORT_INTERVAL_MS: int = 10_000

    # MongoDocumentStore
    DOCUMENT_STORE_MONGO_CLIENT_HOST: str = "mongodb://mongodb:27017"
    DOCUMENT_STORE_MONGO_CLIENT_MAX_POOL_SIZE: int = 50
    DOCUMENT_STORE_MONGO_CLIENT_MIN_POOL_SIZE: int = 10
    DOCUMENT_STORE_SERVER_SELECTION_TIMEOUT_MS: int = 5_000
    DOCUMENT_STORE_DB_NAME: str = "chat"
    DOCUMENT_STORE_OPERATION_TIMEOUT: float = 5.0

    # Messages
    MESSAGE_TIME_FORMAT: str = "%H:%M:%S"

    # LivenessSweeper
    LIVENESS_SWEEPER_INTERVAL: float = 15.0
    LIVENESS_SWEEPER_INACTIVITY_THRESHOLD: float = 10.0

    class Config:
        env_file = ".env"
