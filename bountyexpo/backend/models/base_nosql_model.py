"""
Base model class for MongoDB operations.
Provides ActiveRecord-style CRUD over one collection, with the database taken
from the Flask context unless one is passed in.
"""
from contextlib import contextmanager
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pymongo import ReturnDocument
from pymongo.errors import ConnectionFailure, DuplicateKeyError, OperationFailure

from bountyexpo.backend.database.context import DatabaseContext
from bountyexpo.shared.modules.errors import BackendError, BackendErrorCode

MONGO_UNAUTHORIZED = 13


@contextmanager
def translate_errors():
    """Turn PyMongo failures into BackendError codes."""
    try:
        yield
    except DuplicateKeyError as e:
        raise BackendError(BackendErrorCode.DUPLICATE_KEY, str(e)) from e
    except OperationFailure as e:
        if e.code == MONGO_UNAUTHORIZED:
            raise BackendError(BackendErrorCode.PERMISSION_DENIED, str(e)) from e
        raise BackendError(BackendErrorCode.CONFLICT, str(e)) from e
    except ConnectionFailure as e:
        raise BackendError(BackendErrorCode.UNAVAILABLE, str(e)) from e


def _plain(value):
    if isinstance(value, Enum):
        return value.value
    return value


class BaseNoSqlModel:
    """
    Base class for MongoDB models. Subclasses name their collection and
    convert documents to their pydantic type.
    """
    collection_name: str = ""

    def __init__(self, db=None):
        self._db = db

    @property
    def db(self):
        return self._db if self._db is not None else DatabaseContext.get_mongo_db()

    @property
    def collection(self):
        if not self.collection_name:
            raise NotImplementedError("Subclasses must set collection_name")
        return self.db[self.collection_name]

    # -------------------------------------------------------------------------
    # Common CRUD operations
    # -------------------------------------------------------------------------
    def find(self, doc_id: str) -> Optional[Any]:
        """Find a document by its id and return it as a model instance."""
        doc = self.find_by_id(doc_id)
        return self._from_doc(doc) if doc else None

    def find_by_id(self, doc_id: str) -> Optional[Dict[str, Any]]:
        with translate_errors():
            return self.collection.find_one({"_id": doc_id})

    def find_many(self, query: Dict[str, Any], sort_field: str = "created_at", descending: bool = True) -> List[Any]:
        query = {k: _plain(v) for k, v in query.items() if v is not None}
        with translate_errors():
            cursor = self.collection.find(query).sort(sort_field, -1 if descending else 1)
            return [self._from_doc(doc) for doc in cursor]

    def create(self, model_instance: Any) -> Any:
        """
        Insert a pydantic model, using its `id` as the Mongo `_id`.
        Sets created_at when the model has none.
        """
        doc = model_instance.model_dump()
        doc["_id"] = doc.pop("id")
        if not doc.get("created_at"):
            doc["created_at"] = datetime.utcnow()
        with translate_errors():
            self.collection.insert_one(doc)
        return self._from_doc(doc)

    def update(self, doc_id: str, **kwargs) -> int:
        """Update a document by id. Returns the number of matched documents."""
        return self.update_where({"_id": doc_id}, **kwargs)

    def update_where(self, query: Dict[str, Any], **kwargs) -> int:
        """
        Conditional update of a single document: only applies when `query`
        still matches. Returns the number of matched documents.
        """
        fields = {k: _plain(v) for k, v in kwargs.items()}
        fields["updated_at"] = datetime.utcnow()
        with translate_errors():
            result = self.collection.update_one(
                {k: _plain(v) for k, v in query.items()},
                {"$set": fields}
            )
        return result.matched_count

    def increment_where(self, query: Dict[str, Any], **deltas) -> int:
        """Atomic `$inc` of numeric fields, applied only when `query` matches."""
        with translate_errors():
            result = self.collection.update_one(
                {k: _plain(v) for k, v in query.items()},
                {"$inc": deltas, "$set": {"updated_at": datetime.utcnow()}}
            )
        return result.matched_count

    def find_one_and_update(self, doc_id: str, **kwargs) -> Optional[Any]:
        fields = {k: _plain(v) for k, v in kwargs.items()}
        fields["updated_at"] = datetime.utcnow()
        with translate_errors():
            doc = self.collection.find_one_and_update(
                {"_id": doc_id},
                {"$set": fields},
                return_document=ReturnDocument.AFTER
            )
        return self._from_doc(doc) if doc else None

    def delete(self, doc_id: str) -> bool:
        with translate_errors():
            result = self.collection.delete_one({"_id": doc_id})
        return result.deleted_count > 0

    def _from_doc(self, doc: Dict[str, Any]) -> Any:
        """
        Convert a MongoDB document to a model instance.
        Override in subclasses to provide proper model instantiation.
        """
        raise NotImplementedError("Subclasses must implement _from_doc method")

    @staticmethod
    def _strip_id(doc: Dict[str, Any]) -> Dict[str, Any]:
        doc = dict(doc)
        doc["id"] = str(doc.pop("_id"))
        return doc
