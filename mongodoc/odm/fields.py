from typing import Any, Dict, Mapping

import bson
from bson.errors import InvalidId
from pydantic import PlainSerializer, PlainValidator, WithJsonSchema
from typing_extensions import Annotated

ID_FIELD = "_id"
ID_ALIAS = "id"
PATH_SEPARATOR = "."


def _validate_objectid(v: Any) -> bson.ObjectId:
    try:
        return bson.ObjectId(v.decode("utf-8") if isinstance(v, bytes) else v)
    except (InvalidId, TypeError):
        raise ValueError("Id must be of type bson.ObjectId")


PydanticObjectId = Annotated[
    bson.ObjectId,
    PlainValidator(_validate_objectid),
    PlainSerializer(lambda v: str(v), when_used="json"),
    WithJsonSchema({"type": "string", "example": "5eb7cf5a86d9755df3a6c593"}),
]


def coerce_identity(value: Any) -> Any:
    """
    Convert the hex string form of an ObjectId to ``bson.ObjectId``.

    Anything that is not a string, is not a valid ObjectId, or does not
    render back to the very same string (e.g. upper-case hex) is returned
    unchanged.
    """
    if not isinstance(value, str):
        return value
    try:
        object_id = bson.ObjectId(value)
    except InvalidId:
        return value
    return object_id if str(object_id) == value else value


class FieldResolver:
    """
    Translate public field names to the names used in the database.

    ``aliases`` maps a database field name to its public alias. ``id`` is
    always an alias of ``_id``.
    """

    __slots__ = ("_aliases", "_fields")

    def __init__(self, aliases: Mapping[str, str]):
        self._aliases: Dict[str, str] = dict(aliases)
        self._fields: Dict[str, str] = {
            alias: field for field, alias in self._aliases.items()
        }

    @property
    def aliases(self) -> Dict[str, str]:
        return dict(self._aliases)

    def resolve(self, name: str, dot_allowed: bool = True) -> str:
        if name == ID_ALIAS:
            return ID_FIELD
        if not dot_allowed or PATH_SEPARATOR not in name:
            return self._fields.get(name, name)
        return PATH_SEPARATOR.join(
            self.resolve(part, dot_allowed=False)
            for part in name.split(PATH_SEPARATOR)
        )

    def alias_of(self, field: str) -> str:
        return self._aliases.get(field, field)


def top_level(path: str) -> str:
    return path.split(PATH_SEPARATOR, 1)[0]
