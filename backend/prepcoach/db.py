# backend/prepcoach/db.py
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from .config import MONGO_DB_NAME, MONGODB_URI
from .errors import ConflictError, NotFoundError, PersistenceError
from .schemas import Interview, User, utcnow

logger = logging.getLogger(__name__)

_client: Optional[AsyncIOMotorClient] = None


def get_client() -> AsyncIOMotorClient:
    global _client
    if _client is None:
        if not MONGODB_URI:
            raise RuntimeError("MONGODB_URI not set in backend/.env")
        _client = AsyncIOMotorClient(MONGODB_URI, tz_aware=True)
    return _client


def get_database():
    return get_client()[MONGO_DB_NAME]


def interviews_collection():
    return get_database()["interviews"]


def users_collection():
    return get_database()["users"]


@asynccontextmanager
async def _mongo(action: str):
    try:
        yield
    except PyMongoError as e:
        logger.exception("Mongo %s failed", action)
        raise PersistenceError(f"Database error during {action}") from e


class InterviewRepository:
    """Interview documents, always scoped to their owner."""

    def __init__(self, collection=None):
        self._collection = collection

    @property
    def collection(self):
        if self._collection is None:
            self._collection = interviews_collection()
        return self._collection

    async def insert(self, interview: Interview) -> Interview:
        async with _mongo("interview insert"):
            await self.collection.insert_one(interview.to_document())
        logger.info("Created interview %s for %s", interview.id, interview.owner)
        return interview

    async def get(self, interview_id: str, owner: str) -> Interview:
        async with _mongo("interview lookup"):
            doc = await self.collection.find_one({"_id": interview_id, "owner": owner})
        if not doc:
            raise NotFoundError("Interview not found")
        return Interview.from_document(doc)

    async def list(
        self,
        owner: str,
        status: Optional[str] = None,
        interview_type: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[Interview], int]:
        query: Dict[str, Any] = {"owner": owner}
        if status:
            query["status"] = status
        if interview_type:
            query["type"] = interview_type

        async with _mongo("interview list"):
            cursor = (
                self.collection.find(query)
                .sort("created_at", DESCENDING)
                .skip((page - 1) * limit)
                .limit(limit)
            )
            docs = await cursor.to_list(length=limit)
            total = await self.collection.count_documents(query)
        return [Interview.from_document(d) for d in docs], total

    async def list_completed(self, owner: str) -> List[Interview]:
        async with _mongo("completed interview list"):
            docs = await self.collection.find({"owner": owner, "status": "completed"}).to_list(length=None)
        return [Interview.from_document(d) for d in docs]

    async def save(self, interview: Interview, expected_version: int) -> Interview:
        """
        Write the whole document if nobody else wrote it since `expected_version`
        was read. Returns the stored interview with its bumped version.
        """
        doc = interview.to_document()
        doc.pop("_id")
        doc.pop("version")
        doc["updated_at"] = utcnow()

        exists = True
        async with _mongo("interview update"):
            updated = await self.collection.find_one_and_update(
                {"_id": interview.id, "owner": interview.owner, "version": expected_version},
                {"$set": doc, "$inc": {"version": 1}},
                return_document=ReturnDocument.AFTER,
            )
            if updated is None:
                exists = await self.collection.count_documents({"_id": interview.id, "owner": interview.owner})
        if updated is None:
            if not exists:
                raise NotFoundError("Interview not found")
            raise ConflictError("Interview was modified concurrently; reload and retry")
        return Interview.from_document(updated)

    async def delete(self, interview_id: str, owner: str) -> None:
        async with _mongo("interview delete"):
            result = await self.collection.delete_one({"_id": interview_id, "owner": owner})
        if result.deleted_count == 0:
            raise NotFoundError("Interview not found")
        logger.info("Deleted interview %s", interview_id)


class UserRepository:
    def __init__(self, collection=None):
        self._collection = collection

    @property
    def collection(self):
        if self._collection is None:
            self._collection = users_collection()
        return self._collection

    async def get_or_create(self, user_id: str) -> User:
        async with _mongo("user lookup"):
            doc = await self.collection.find_one({"_id": user_id})
            if doc:
                return User.from_document(doc)
            user = User(id=user_id, username=user_id)
            try:
                await self.collection.insert_one(user.to_document())
            except DuplicateKeyError:
                # created by a parallel request
                doc = await self.collection.find_one({"_id": user_id})
                return User.from_document(doc)
        logger.info("Created profile for %s", user_id)
        return user

    async def list_all(self, length: int = 1000) -> List[User]:
        async with _mongo("user list"):
            docs = await self.collection.find({}).to_list(length=length)
        return [User.from_document(d) for d in docs]

    async def save(self, user: User, expected_version: int) -> User:
        doc = user.to_document()
        doc.pop("_id")
        doc.pop("version")

        async with _mongo("user update"):
            updated = await self.collection.find_one_and_update(
                {"_id": user.id, "version": expected_version},
                {"$set": doc, "$inc": {"version": 1}},
                return_document=ReturnDocument.AFTER,
            )
        if updated is None:
            raise ConflictError("Profile was modified concurrently; reload and retry")
        return User.from_document(updated)
