import asyncio
import logging
from contextlib import asynccontextmanager

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError

from chat_presence.common.exceptions import (
    DuplicateDocumentError,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)

PARTICIPANTS = "participants"
MESSAGES = "messages"


def to_object_id(document_id: str) -> ObjectId | None:
    """문자열 id를 ObjectId로 변환, 형식이 잘못되면 None"""
    if not isinstance(document_id, str):
        return None
    try:
        return ObjectId(document_id)
    except InvalidId:
        return None


class MongoDocumentStore:
    """참가자/메시지 컬렉션에 대한 최소 CRUD + 조회 클라이언트"""

    def __init__(
        self,
        mongo_client_host: str = "mongodb://mongodb:27017",
        mongo_client_max_pool_size: int = 50,
        mongo_client_min_pool_size: int = 10,
        server_selection_timeout_ms: int = 5_000,
        db_name: str = "chat",
        operation_timeout: float = 5.0,
    ):
        self._mongo_client = AsyncIOMotorClient(
            mongo_client_host,
            maxPoolSize=mongo_client_max_pool_size,
            minPoolSize=mongo_client_min_pool_size,
            serverSelectionTimeoutMS=server_selection_timeout_ms,
        )
        self._db = self._mongo_client[db_name]
        self.operation_timeout = operation_timeout

    async def start(self):
        """연결 확인 및 인덱스 초기화"""
        await self._mongo_client.admin.command("ping")
        await self._db[PARTICIPANTS].create_index(
            [("name", ASCENDING)], unique=True
        )
        logger.info("MongoDocumentStore started")

    async def stop(self):
        self._mongo_client.close()
        logger.info("MongoDocumentStore stopped")

    @asynccontextmanager
    async def _operation(self, name: str, collection: str):
        """타임아웃과 드라이버 에러를 StoreUnavailableError로 변환"""
        try:
            async with asyncio.timeout(self.operation_timeout):
                yield
        except DuplicateKeyError as e:
            raise DuplicateDocumentError(collection, str(e)) from e
        except TimeoutError as e:
            logger.warning(
                f"Store operation timed out: {name}",
                extra={"collection": collection, "timeout": self.operation_timeout},
            )
            raise StoreUnavailableError(f"{name} timed out") from e
        except PyMongoError as e:
            logger.error(
                f"Store operation failed: {name}: {e}",
                extra={"collection": collection},
                exc_info=True,
            )
            raise StoreUnavailableError(f"{name} failed") from e

    async def insert_one(self, collection: str, document: dict) -> str:
        async with self._operation("insert_one", collection):
            result = await self._db[collection].insert_one(document)
        return str(result.inserted_id)

    async def find(
        self,
        collection: str,
        query: dict | None = None,
        sort: list[tuple[str, int]] | None = None,
        limit: int | None = None,
    ) -> list[dict]:
        async with self._operation("find", collection):
            cursor = self._db[collection].find(query or {})
            if sort:
                cursor = cursor.sort(sort)
            if limit:
                cursor = cursor.limit(limit)
            return await cursor.to_list(limit)

    async def find_one(self, collection: str, query: dict) -> dict | None:
        async with self._operation("find_one", collection):
            return await self._db[collection].find_one(query)

    async def find_one_by_id(self, collection: str, document_id: str) -> dict | None:
        object_id = to_object_id(document_id)
        if object_id is None:
            return None
        return await self.find_one(collection, {"_id": object_id})

    async def update_one_by_id(
        self, collection: str, document_id: str, fields: dict
    ) -> int:
        object_id = to_object_id(document_id)
        if object_id is None:
            return 0

        async with self._operation("update_one", collection):
            result = await self._db[collection].update_one(
                {"_id": object_id}, {"$set": fields}
            )
        return result.matched_count

    async def delete_one(self, collection: str, query: dict) -> int:
        async with self._operation("delete_one", collection):
            result = await self._db[collection].delete_one(query)
        return result.deleted_count

    async def delete_one_by_id(self, collection: str, document_id: str) -> int:
        object_id = to_object_id(document_id)
        if object_id is None:
            return 0
        return await self.delete_one(collection, {"_id": object_id})

    async def delete_many(self, collection: str, query: dict | None = None) -> int:
        async with self._operation("delete_many", collection):
            result = await self._db[collection].delete_many(query or {})
        return result.deleted_count
