from collections import defaultdict

import pytest
from bson import ObjectId

from chat_presence.common.exceptions import DuplicateDocumentError
from chat_presence.infrastructure.document_store import PARTICIPANTS, to_object_id


def _matches(document: dict, query: dict | None) -> bool:
    return all(document.get(key) == value for key, value in (query or {}).items())


class FakeDocumentStore:
    """MongoDocumentStore와 같은 인터페이스의 인메모리 저장소 (equality 쿼리만 지원)"""

    def __init__(self):
        self.collections: dict[str, list[dict]] = defaultdict(list)
        self.unique_fields = {PARTICIPANTS: "name"}

    async def insert_one(self, collection: str, document: dict) -> str:
        field = self.unique_fields.get(collection)
        if field and any(
            doc.get(field) == document.get(field) for doc in self.collections[collection]
        ):
            raise DuplicateDocumentError(collection)

        stored = {"_id": ObjectId(), **document}
        self.collections[collection].append(stored)
        return str(stored["_id"])

    async def find(
        self,
        collection: str,
        query: dict | None = None,
        sort: list[tuple[str, int]] | None = None,
        limit: int | None = None,
    ) -> list[dict]:
        # _id 정렬은 삽입 순서로 대신한다
        indexed = [
            (index, dict(doc))
            for index, doc in enumerate(self.collections[collection])
            if _matches(doc, query)
        ]
        for key, direction in reversed(sort or []):
            indexed.sort(
                key=lambda item: item[0] if key == "_id" else item[1][key],
                reverse=direction < 0,
            )
        documents = [doc for _, doc in indexed]
        return documents[:limit] if limit else documents

    async def find_one(self, collection: str, query: dict) -> dict | None:
        for doc in self.collections[collection]:
            if _matches(doc, query):
                return dict(doc)
        return None

    async def find_one_by_id(self, collection: str, document_id: str) -> dict | None:
        object_id = to_object_id(document_id)
        if object_id is None:
            return None
        return await self.find_one(collection, {"_id": object_id})

    async def update_one_by_id(
        self, collection: str, document_id: str, fields: dict
    ) -> int:
        object_id = to_object_id(document_id)
        for doc in self.collections[collection]:
            if doc["_id"] == object_id:
                doc.update(fields)
                return 1
        return 0

    async def delete_one(self, collection: str, query: dict) -> int:
        docs = self.collections[collection]
        for index, doc in enumerate(docs):
            if _matches(doc, query):
                del docs[index]
                return 1
        return 0

    async def delete_one_by_id(self, collection: str, document_id: str) -> int:
        object_id = to_object_id(document_id)
        if object_id is None:
            return 0
        return await self.delete_one(collection, {"_id": object_id})

    async def delete_many(self, collection: str, query: dict | None = None) -> int:
        docs = self.collections[collection]
        kept = [doc for doc in docs if not _matches(doc, query)]
        deleted = len(docs) - len(kept)
        self.collections[collection] = kept
        return deleted


@pytest.fixture
def fake_store():
    return FakeDocumentStore()
