import logging
from typing import TYPE_CHECKING, Dict, Iterator, Mapping, Optional, Tuple

from pydantic import BaseModel

import mongodoc
from mongodoc.exceptions import TypeMismatch
from mongodoc.odm.registry import factory

if TYPE_CHECKING:
    from mongodoc.odm.documents import Document

logger = logging.getLogger(__name__)


class Reference(BaseModel):
    """
    A field holding the ``_id`` of a document of another model.

    ``field`` is the name of the foreign key field in the owner document,
    ``_<reference name>`` by default.
    """

    model: str
    field: Optional[str] = None

    def foreign_key(self, name: str) -> str:
        return self.field or f"_{name}"


class ReferenceResolver:
    """Lazily built referenced documents of one owner document"""

    def __init__(
        self, owner: "Document", references: Mapping[str, Reference]
    ) -> None:
        self._owner = owner
        self._references = references
        self._objects: Dict[str, "Document"] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._references

    def is_resolved(self, name: str) -> bool:
        return name in self._objects

    def get(self, name: str) -> "Document":
        try:
            return self._objects[name]
        except KeyError:
            pass
        reference = self._references[name]
        identity = self._owner.get_value(reference.foreign_key(name))
        document = factory(reference.model, identity)
        self._objects[name] = document
        return document

    def assign(self, name: str, document: "Document") -> None:
        if not isinstance(document, mongodoc.Document):
            raise TypeMismatch(
                f"Cannot set reference {name!r} of "
                f"{type(self._owner).__name__} to {type(document).__name__}, "
                "a Document is required"
            )
        self._objects[name] = document
        if document.id is not None:
            reference = self._references[name]
            self._owner.set_value(reference.foreign_key(name), document.id)

    def cascade_save(self, safe: bool = True) -> None:
        for name, document in self._iter_resolved():
            if document.id is None:
                logger.debug(
                    "Inserting %s referenced as %r before its owner",
                    type(document).__name__,
                    name,
                )
                document.save(safe)
                reference = self._references[name]
                self._owner.set_value(reference.foreign_key(name), document.id)
            elif document.is_changed():
                logger.debug(
                    "Saving changed %s referenced as %r",
                    type(document).__name__,
                    name,
                )
                document.save(safe)

    def _iter_resolved(self) -> Iterator[Tuple[str, "Document"]]:
        return iter(list(self._objects.items()))
