import logging
from copy import deepcopy
from typing import (
    Any,
    ClassVar,
    Dict,
    Iterable,
    Mapping,
    Optional,
    Sequence,
    Union,
)

from typing_extensions import Self

from mongodoc.exceptions import (
    DeleteFailed,
    EmptyInsert,
    ImmutableIdentity,
    InsertFailed,
    MissingCriteria,
    MissingIdentity,
    UpdateFailed,
    UpsertFailed,
)
from mongodoc.odm.actions import ActionDirections, ActionRegistry, EventTypes
from mongodoc.odm.collection import DocumentCollection
from mongodoc.odm.fields import ID_FIELD, FieldResolver
from mongodoc.odm.interfaces.settings import SettingsInterface
from mongodoc.odm.operations import UpdateOperations
from mongodoc.odm.operators import FieldNameMapping
from mongodoc.odm.references import Reference, ReferenceResolver
from mongodoc.odm.state import DocumentSnapshot, DocumentState
from mongodoc.odm.utils.parsing import (
    Criteria,
    build_criteria,
    build_projection,
)

logger = logging.getLogger(__name__)

# attributes of the python object, everything else is a document field
_INTERNALS = frozenset(
    ("_object", "_state", "_operations", "_references", "_resolver")
)


def _is_identical(current: Any, value: Any) -> bool:
    return current is value or (type(current) is type(value) and current == value)


# lists and dicts leave and enter the document as copies
def _detached(value: Any) -> Any:
    return deepcopy(value) if isinstance(value, (list, dict)) else value


class Document(SettingsInterface):
    """
    Object view of a single MongoDB document.

    Subclass it once per model and bind it with `init_mongodoc`:

    ```python
    class Post(Document):
        aliases = {"t": "title"}
        references = {"user": Reference(model="user")}

        class Settings:
            name = "posts"

    post = Post()
    post.title = "MongoDB"          # stored as "t"
    post.user = factory("user", "colin")
    post.save()
    # insert({"t": "MongoDB", "_user": "colin"})
    ```

    Fields are read and written as attributes (or with `get_value` and
    `set_value`). A document built with an `_id` is assumed to exist: it is
    loaded on the first field read and `save()` updates it in place.

    Update operators (`inc`, `push`, `pull`, ...) are queued and chainable;
    nothing is sent until `save()`:

    ```python
    doc.inc("uses.boing").push("used", {"type": "sound"})
    doc.inc("uses.bonk").push("used", {"type": "sound"}).save()
    # update({"_id": ...}, {"$inc": {"uses.boing": 1, "uses.bonk": 1},
    #                       "$pushAll": {"used": [{...}, {...}]}})
    ```

    A field touched by an operator is reloaded from the database the next
    time it is read after the save, so the server computed value is seen.
    """

    aliases: ClassVar[Dict[str, str]] = {}
    references: ClassVar[Dict[str, Reference]] = {}

    _resolver: ClassVar[FieldResolver] = FieldResolver({})

    _object: Dict[str, Any]
    _state: DocumentState
    _operations: UpdateOperations
    _references: ReferenceResolver

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls._resolver = FieldResolver(cls.aliases)
        cls.references = {
            name: Reference.model_validate(reference)
            if not isinstance(reference, Reference)
            else reference
            for name, reference in cls.references.items()
        }
        ActionRegistry.register_type(cls)

    def __init__(self, id: Any = None) -> None:
        self._init_internals()
        if id is not None:
            self._object[ID_FIELD] = id

    def _init_internals(self) -> None:
        object.__setattr__(self, "_object", {})
        object.__setattr__(self, "_state", DocumentState())
        object.__setattr__(self, "_operations", UpdateOperations())
        object.__setattr__(
            self, "_references", ReferenceResolver(self, self.references)
        )

    # Field access

    def __getattr__(self, name: str) -> Any:
        if name.startswith("__") or name in _INTERNALS:
            raise AttributeError(name)
        return self.get_value(name)

    def __setattr__(self, name: str, value: Any) -> None:
        if name in _INTERNALS or isinstance(
            getattr(type(self), name, None), property
        ):
            object.__setattr__(self, name, value)
        else:
            self.set_value(name, value)

    def __delattr__(self, name: str) -> None:
        if name in _INTERNALS:
            object.__delattr__(self, name)
        else:
            self.unset(name)

    def __contains__(self, name: str) -> bool:
        name = self.get_field_name(name, dot_allowed=False)
        return self._object.get(name) is not None

    def __repr__(self) -> str:
        return (
            f"<{self.__class__.__name__} {ID_FIELD}="
            f"{self._object.get(ID_FIELD)!r} loaded={self._state.loaded}>"
        )

    @property
    def id(self) -> Any:
        return self.get_value(ID_FIELD)

    @id.setter
    def id(self, value: Any) -> None:
        self.set_value(ID_FIELD, value)

    @property
    def loaded(self) -> bool:
        return self._state.loaded

    def get_field_name(self, name: str, dot_allowed: bool = True) -> str:
        """
        Database name of a field: ``id`` is ``_id`` and aliases are
        translated, segment by segment for dotted paths
        """
        return self._resolver.resolve(name, dot_allowed)

    def get_value(self, name: str, default: Any = None) -> Any:
        """
        Read a field, loading the document first when needed.

        A reference name returns the referenced document. A field changed
        by an operator that was already saved triggers a reload; an
        unloaded document with a known `_id` is loaded lazily.
        """
        name = self.get_field_name(name, dot_allowed=False)

        if name in self._references:
            return self._references.get(name)

        if self._state.needs_reload(name, bool(self._operations)):
            logger.debug(
                "Reloading %s to read dirty field %r",
                self.__class__.__name__,
                name,
            )
            self.load()
        elif self._can_lazy_load(name):
            self.load()

        return _detached(self._object.get(name, default))

    def set_value(self, name: str, value: Any) -> Self:
        """
        Assign a top level field. It is saved as a whole value, use `set`
        to change nested fields. Assigning the current value is a no-op.
        """
        name = self.get_field_name(name, dot_allowed=False)

        if name in self._references:
            self._references.assign(name, value)
            return self

        if name in self._object and _is_identical(self._object[name], value):
            return self

        if name == ID_FIELD and self._state.loaded:
            raise ImmutableIdentity(
                f"Cannot change the {ID_FIELD} of a loaded "
                f"{self.__class__.__name__}"
            )

        self._object[name] = _detached(value)
        self._state.mark_changed(name)
        return self

    def _can_lazy_load(self, name: str) -> bool:
        return (
            not self._state.loaded
            and self._object.get(ID_FIELD) is not None
            and ID_FIELD not in self._state.changed
            and name != ID_FIELD
        )

    # State

    def clear(self) -> Self:
        """Forget all fields and pending changes"""
        self._object.clear()
        self._state.clear()
        self._operations.clear()
        return self

    def is_changed(self, name: Optional[str] = None) -> bool:
        if name is None:
            return bool(self._state.changed) or bool(self._operations)
        return self._state.is_field_changed(self.get_field_name(name))

    def is_resolved(self, name: str) -> bool:
        return self._references.is_resolved(
            self.get_field_name(name, dot_allowed=False)
        )

    def collection(self) -> DocumentCollection:
        return self.get_collection()

    def __copy__(self) -> Self:
        return self.__class__()

    def __deepcopy__(self, memo: Dict[int, Any]) -> Self:
        return self.__class__()

    # Update operators

    def set(self, name: str, value: Any) -> Self:
        """Queue `$set`; dotted names reach into embedded documents"""
        path = self.get_field_name(name)
        self._operations.set(path, value)
        return self._set_dirty(path)

    def unset(self, name: str) -> Self:
        path = self.get_field_name(name)
        self._operations.unset(path)
        return self._set_dirty(path)

    def inc(self, name: str, value: Union[int, float] = 1) -> Self:
        path = self.get_field_name(name)
        self._operations.inc(path, value)
        return self._set_dirty(path)

    def push(self, name: str, value: Any) -> Self:
        """Queue a push, can be called several times for the same field"""
        path = self.get_field_name(name)
        self._operations.push(path, value)
        return self._set_dirty(path)

    def push_all(self, name: str, values: Iterable[Any]) -> Self:
        path = self.get_field_name(name)
        self._operations.push_all(path, values)
        return self._set_dirty(path)

    def pop(self, name: str) -> Self:
        """Remove the last element of an array"""
        path = self.get_field_name(name)
        self._operations.pop(path)
        return self._set_dirty(path)

    def shift(self, name: str) -> Self:
        """Remove the first element of an array"""
        path = self.get_field_name(name)
        self._operations.shift(path)
        return self._set_dirty(path)

    def pull(self, name: str, value: Any) -> Self:
        path = self.get_field_name(name)
        self._operations.pull(path, value)
        return self._set_dirty(path)

    def pull_all(self, name: str, values: Iterable[Any]) -> Self:
        path = self.get_field_name(name)
        self._operations.pull_all(path, values)
        return self._set_dirty(path)

    def bit(self, name: str, value: Mapping[str, int]) -> Self:
        path = self.get_field_name(name)
        self._operations.bit(path, value)
        return self._set_dirty(path)

    def get_operations(self) -> Dict[str, Dict[str, Any]]:
        return self._operations.to_dict()

    def _set_dirty(self, path: str) -> Self:
        self._state.mark_dirty(path)
        return self

    # Bulk values

    def load_values(
        self, values: FieldNameMapping, clean: bool = False
    ) -> Self:
        """
        Assign many fields at once. Clean values come from the database and
        bypass change tracking; the load hooks run around them.
        """
        if clean:
            self.before_load()
            self._run_actions(EventTypes.LOAD, ActionDirections.BEFORE)
            self._object.update(values)
            self.after_load()
            self._run_actions(EventTypes.LOAD, ActionDirections.AFTER)
        else:
            for name, value in values.items():
                self.set_value(name, value)
        return self

    def as_dict(self, clean: bool = False) -> Dict[str, Any]:
        """
        Fields of the document. Unless ``clean``, values are read the usual
        way (lazy loading, references) and aliased fields are keyed by alias.
        """
        if clean:
            return deepcopy(self._object)

        result = {name: self.get_value(name) for name in list(self._object)}
        for name, alias in self._resolver.aliases.items():
            if name in result:
                result[alias] = result.pop(name)
        return result

    # Lifecycle

    def load(
        self, criteria: Criteria = None, fields: Sequence[str] = ()
    ) -> Self:
        """
        Load the document from the database. ``criteria`` is one of:

        - nothing: the current `_id`, or all current fields without one
        - a JSON string such as ``'{"name": "Mongo"}'``
        - a mapping used as the filter
        - any other value, taken as the `_id`

        ``fields`` limits the loaded fields. When nothing matches the
        document is left empty and not loaded.
        """
        criteria = build_criteria(criteria, self._object, self.get_field_name)
        if not criteria:
            raise MissingCriteria(
                f"Cannot find {self.__class__.__name__} without "
                f"{ID_FIELD} or other search criteria"
            )
        projection = build_projection(fields, self.get_field_name)

        self.clear()

        logger.debug("Loading %s with %r", self.__class__.__name__, criteria)
        values = self.get_collection().find_one(criteria, projection)
        if values:
            self._state.loaded = True
            self.load_values(values, clean=True)
        else:
            logger.debug("No %s matches %r", self.__class__.__name__, criteria)
        return self

    def save(self, safe: Optional[bool] = None) -> Self:
        """
        Insert the document when it has no `_id` (or the `_id` was just
        assigned), otherwise send the pending changes as one update.
        Referenced documents are saved first.

        :param safe: wait for the server to acknowledge, defaults to
            ``Settings.safe``
        """
        if safe is None:
            safe = self.get_settings().safe

        self._references.cascade_save(safe)

        if self._object.get(ID_FIELD) is None or ID_FIELD in self._state.changed:
            event = self._insert(safe)
        else:
            event = self._update(safe)

        self._state.clear_changes()
        self._operations.clear()

        self.after_save()
        self._run_actions(event, ActionDirections.AFTER)
        return self

    def upsert(
        self,
        operations: Optional[Mapping[str, FieldNameMapping]] = None,
        safe: Optional[bool] = None,
    ) -> Self:
        """
        Update the document matching all current fields, creating it when
        missing. The new `_id` is not retrieved.

        ``operations`` (an ``{"$inc": {...}}`` mapping or an operator object,
        several combine with ``**``) is merged over the queued ones and wins
        on conflicts.
        """
        if not self._object:
            raise MissingCriteria(
                f"Cannot upsert {self.__class__.__name__}: no criteria"
            )
        if safe is None:
            safe = self.get_settings().safe

        self.before_save("upsert")
        self._run_actions(EventTypes.UPSERT, ActionDirections.BEFORE)

        merged = self._operations.merged(operations or {})
        collection = self.get_collection()
        logger.debug(
            "Upserting %s %r with %r",
            self.__class__.__name__,
            self._object,
            merged,
        )
        if not collection.update(
            dict(self._object), merged, upsert=True, safe=safe
        ):
            raise UpsertFailed(
                f"Upsert of {self.__class__.__name__} failed: "
                f"{collection.last_error().get('err')}"
            )

        self._state.clear_changes()
        self._operations.clear()

        self.after_save()
        self._run_actions(EventTypes.UPSERT, ActionDirections.AFTER)
        return self

    def delete(self, safe: Optional[bool] = None) -> Self:
        """
        Delete this document by `_id`, it does not have to be loaded. The
        instance is cleared and may be reused.
        """
        if self._object.get(ID_FIELD) is None:
            raise MissingIdentity(
                f"Cannot delete {self.__class__.__name__} without the {ID_FIELD}"
            )
        if safe is None:
            safe = self.get_settings().safe

        self.before_delete()
        self._run_actions(EventTypes.DELETE, ActionDirections.BEFORE)

        collection = self.get_collection()
        criteria = {ID_FIELD: self._object[ID_FIELD]}
        logger.debug("Deleting %s %r", self.__class__.__name__, criteria)
        if not collection.remove(criteria, just_one=True, safe=safe):
            raise DeleteFailed(
                f"Failed to delete {self.__class__.__name__}: "
                f"{collection.last_error().get('err')}"
            )

        self.clear()

        self.after_delete()
        self._run_actions(EventTypes.DELETE, ActionDirections.AFTER)
        return self

    def _insert(self, safe: bool) -> EventTypes:
        self.before_save("insert")
        self._run_actions(EventTypes.INSERT, ActionDirections.BEFORE)

        changed = self._state.changed
        values = {
            name: value
            for name, value in self._object.items()
            if name in changed
        }
        if not values:
            raise EmptyInsert(
                f"Cannot insert empty {self.__class__.__name__}"
            )

        collection = self.get_collection()
        logger.debug("Inserting %s %r", self.__class__.__name__, values)
        result = collection.insert(values, safe)
        if safe and result.error:
            raise InsertFailed(
                f"Unable to insert {self.__class__.__name__}: {result.error}"
            )

        self._object[ID_FIELD] = result.identity
        self._state.loaded = True

        # operators queued before the first save
        if self._operations:
            self._send_update(collection, self._operations.to_dict(), safe)
        return EventTypes.INSERT

    def _update(self, safe: bool) -> EventTypes:
        self.before_save("update")
        self._run_actions(EventTypes.UPDATE, ActionDirections.BEFORE)

        # assigned fields go out as $set, the queue itself is left as built
        changed = self._state.changed
        assigned = {
            name: value
            for name, value in self._object.items()
            if name in changed
        }
        operations = self._operations.merged(
            {"$set": assigned} if assigned else {}
        )

        if operations:
            self._send_update(self.get_collection(), operations, safe)
        return EventTypes.UPDATE

    def _send_update(
        self,
        collection: DocumentCollection,
        operations: Dict[str, Dict[str, Any]],
        safe: bool,
    ) -> None:
        criteria = {ID_FIELD: self._object[ID_FIELD]}
        logger.debug(
            "Updating %s %r with %r",
            self.__class__.__name__,
            criteria,
            operations,
        )
        if not collection.update(criteria, operations, upsert=False, safe=safe):
            raise UpdateFailed(
                f"Update of {self.__class__.__name__} failed: "
                f"{collection.last_error().get('err')}"
            )

    # Hooks, override in subclasses

    def before_save(self, action: str) -> None:
        """
        Runs before the document is written

        :param action: "insert", "update" or "upsert"
        """

    def after_save(self) -> None:
        pass

    def before_load(self) -> None:
        pass

    def after_load(self) -> None:
        pass

    def before_delete(self) -> None:
        pass

    def after_delete(self) -> None:
        pass

    def _run_actions(
        self, event_type: EventTypes, direction: ActionDirections
    ) -> None:
        ActionRegistry.run_actions(self, event_type, direction)

    # Snapshots

    def snapshot(self) -> DocumentSnapshot:
        return DocumentSnapshot(
            aliases=self._resolver.aliases,
            fields=deepcopy(self._object),
            changed=sorted(self._state.changed),
            operations=self._operations.to_dict(),
            loaded=self._state.loaded,
            dirty=sorted(self._state.dirty),
        )

    @classmethod
    def from_snapshot(cls, snapshot: DocumentSnapshot) -> Self:
        document = cls()
        document._restore(snapshot)
        return document

    def _restore(self, snapshot: DocumentSnapshot) -> None:
        if snapshot.aliases != self._resolver.aliases:
            object.__setattr__(
                self, "_resolver", FieldResolver(snapshot.aliases)
            )
        self._object.clear()
        self._object.update(deepcopy(snapshot.fields))
        self._state.changed = set(snapshot.changed)
        self._state.dirty = set(snapshot.dirty)
        self._state.loaded = snapshot.loaded
        self._operations.load(snapshot.operations)

    def __getstate__(self) -> Dict[str, Any]:
        return self.snapshot().model_dump()

    def __setstate__(self, state: Dict[str, Any]) -> None:
        self._init_internals()
        self._restore(DocumentSnapshot.model_validate(state))
