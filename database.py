"""
Document store gateway

One MongoDB client per process, wrapped in a DocumentStore that the app
creates at startup and hands to the services. Each collection is exposed
as a Table with the handful of primitives the services need.

Documents are stored with a string ObjectId in "_id" and always leave
this module with that value under "id".
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import ASCENDING, AsyncMongoClient

logger = logging.getLogger(__name__)

USER_TABLE = "tbl_User"
GROUP_TABLE = "tbl_Group"
USER_GROUP_TABLE = "tbl_UserGroup"
MESSAGE_TABLE = "tbl_Message"


@dataclass
class WriteResult:
    replaced: int = 0
    unchanged: int = 0


def _to_document(doc: Dict[str, Any]) -> Dict[str, Any]:
    out = {k: v for k, v in doc.items() if k != "_id"}
    out["id"] = str(doc["_id"])
    return out


def _to_query(query: Dict[str, Any]) -> Dict[str, Any]:
    if "id" in query:
        query = dict(query)
        query["_id"] = query.pop("id")
    return query


class Table:
    def __init__(self, collection):
        self.collection = collection

    @property
    def name(self) -> str:
        return self.collection.name

    async def get(self, doc_id: str) -> Optional[Dict[str, Any]]:
        doc = await self.collection.find_one({"_id": doc_id})
        return _to_document(doc) if doc else None

    async def all(self) -> List[Dict[str, Any]]:
        return await self.filter({})

    async def filter(self, query: Dict[str, Any], sort: Optional[str] = None) -> List[Dict[str, Any]]:
        kwargs = {}
        if sort:
            kwargs["sort"] = [(sort, ASCENDING)]
        cursor = self.collection.find(_to_query(query), **kwargs)
        docs = await cursor.to_list(None)
        return [_to_document(d) for d in docs]

    async def first(self, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        doc = await self.collection.find_one(_to_query(query))
        return _to_document(doc) if doc else None

    async def count(self, query: Optional[Dict[str, Any]] = None) -> int:
        return await self.collection.count_documents(_to_query(query or {}))

    async def insert(self, doc: Union[BaseModel, Dict[str, Any]]) -> str:
        """Insert a document and return its generated id."""
        data = doc.model_dump() if isinstance(doc, BaseModel) else dict(doc)
        data.pop("id", None)
        data["_id"] = str(ObjectId())
        await self.collection.insert_one(data)
        return data["_id"]

    async def update(self, doc_id: str, changes: Dict[str, Any]) -> WriteResult:
        """Apply a partial update.

        Mirrors a "replaced / unchanged" count pair: a matched document whose
        fields already hold the given values counts as unchanged.
        """
        changes = {k: v for k, v in changes.items() if k not in ("id", "_id")}
        if not changes:
            exists = await self.collection.count_documents({"_id": doc_id})
            return WriteResult(unchanged=exists)
        result = await self.collection.update_one({"_id": doc_id}, {"$set": changes})
        return WriteResult(
            replaced=result.modified_count,
            unchanged=result.matched_count - result.modified_count,
        )

    async def replace(self, doc: Dict[str, Any]) -> WriteResult:
        data = {k: v for k, v in doc.items() if k != "id"}
        data["_id"] = doc["id"]
        result = await self.collection.replace_one({"_id": doc["id"]}, data)
        return WriteResult(
            replaced=result.modified_count,
            unchanged=result.matched_count - result.modified_count,
        )

    async def delete(self, doc_id: str) -> int:
        result = await self.collection.delete_one({"_id": doc_id})
        return result.deleted_count

    async def delete_where(self, query: Dict[str, Any]) -> int:
        result = await self.collection.delete_many(_to_query(query))
        return result.deleted_count

    async def merge(
        self,
        docs: List[Dict[str, Any]],
        key: str,
        other: "Table",
        field: str,
    ) -> List[Dict[str, Any]]:
        """Attach to each doc the document of `other` whose id is doc[key]."""
        merged = []
        for doc in docs:
            related = await other.get(doc[key]) if doc.get(key) is not None else None
            merged.append({**doc, field: related})
        return merged


class DocumentStore:
    def __init__(self, client, database_name: str):
        self.client = client
        self.db = client[database_name]
        self.users = Table(self.db[USER_TABLE])
        self.groups = Table(self.db[GROUP_TABLE])
        self.user_groups = Table(self.db[USER_GROUP_TABLE])
        self.messages = Table(self.db[MESSAGE_TABLE])

    @classmethod
    def from_settings(cls, settings) -> "DocumentStore":
        return cls(AsyncMongoClient(settings.database_url), settings.database_name)

    async def connect(self) -> None:
        # inbox lookups go through receiver_id
        await self.messages.collection.create_index("receiver_id")
        logger.info("Connected to document store %s", self.db.name)

    async def close(self) -> None:
        await self.client.close()
        logger.info("Closed document store connection")
