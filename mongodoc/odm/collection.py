import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from pymongo.collection import Collection
from pymongo.errors import PyMongoError
from pymongo.write_concern import WriteConcern
from typing_extensions import Protocol, runtime_checkable

from mongodoc.odm.operators.update import Push, PushAll

logger = logging.getLogger(__name__)

Projection = Union[Sequence[str], Mapping[str, Any], None]


@dataclass
class InsertResult:
    identity: Any = None
    error: Optional[str] = None


@runtime_checkable
class DocumentCollection(Protocol):
    """
    The collection operations a document needs. `PyMongoCollection` is the
    production implementation; anything with these methods can be bound to
    a model instead.
    """

    def find_one(
        self, filter: Mapping[str, Any], projection: Projection = None
    ) -> Optional[Dict[str, Any]]:
        ...

    def insert(self, values: Dict[str, Any], safe: bool = True) -> InsertResult:
        ...

    def update(
        self,
        filter: Mapping[str, Any],
        operations: Mapping[str, Any],
        upsert: bool = False,
        safe: bool = True,
    ) -> bool:
        ...

    def remove(
        self, filter: Mapping[str, Any], just_one: bool = True, safe: bool = True
    ) -> bool:
        ...

    def last_error(self) -> Dict[str, Any]:
        ...


def translate_operations(operations: Mapping[str, Any]) -> Dict[str, Any]:
    """Rewrite `$pushAll` as `$push` with `$each` for current servers"""
    result = {token: dict(fields) for token, fields in operations.items()}
    push_all = result.pop(PushAll.operator, None)
    if push_all:
        push = result.setdefault(Push.operator, {})
        for path, values in push_all.items():
            push[path] = {"$each": list(values)}
    return result


class PyMongoCollection:
    """`DocumentCollection` over a synchronous pymongo collection"""

    def __init__(self, collection: Collection):
        self._collection = collection
        self._last_error: Dict[str, Any] = {"err": None}

    @property
    def name(self) -> str:
        return self._collection.name

    def find_one(
        self, filter: Mapping[str, Any], projection: Projection = None
    ) -> Optional[Dict[str, Any]]:
        return self._collection.find_one(filter, projection or None)

    def insert(self, values: Dict[str, Any], safe: bool = True) -> InsertResult:
        try:
            result = self._target(safe).insert_one(values)
        except PyMongoError as e:
            self._remember(e)
            return InsertResult(identity=values.get("_id"), error=str(e))
        self._forget()
        return InsertResult(identity=result.inserted_id)

    def update(
        self,
        filter: Mapping[str, Any],
        operations: Mapping[str, Any],
        upsert: bool = False,
        safe: bool = True,
    ) -> bool:
        try:
            self._target(safe).update_one(
                filter, translate_operations(operations), upsert=upsert
            )
        except PyMongoError as e:
            self._remember(e)
            return False
        self._forget()
        return True

    def remove(
        self, filter: Mapping[str, Any], just_one: bool = True, safe: bool = True
    ) -> bool:
        target = self._target(safe)
        try:
            if just_one:
                target.delete_one(filter)
            else:
                target.delete_many(filter)
        except PyMongoError as e:
            self._remember(e)
            return False
        self._forget()
        return True

    def last_error(self) -> Dict[str, Any]:
        return dict(self._last_error)

    def _target(self, safe: bool) -> Collection:
        if safe:
            return self._collection
        return self._collection.with_options(write_concern=WriteConcern(w=0))

    def _remember(self, error: PyMongoError) -> None:
        logger.warning(
            "Write to collection %s failed: %s", self._collection.name, error
        )
        self._last_error = {"err": str(error)}

    def _forget(self) -> None:
        self._last_error = {"err": None}
