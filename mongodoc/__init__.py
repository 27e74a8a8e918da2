from mongodoc.odm.actions import (
    ActionDirections,
    EventTypes,
    after_event,
    before_event,
)
from mongodoc.odm.binding import apply_model, to_model
from mongodoc.odm.collection import (
    DocumentCollection,
    InsertResult,
    PyMongoCollection,
)
from mongodoc.odm.documents import Document
from mongodoc.odm.fields import PydanticObjectId
from mongodoc.odm.references import Reference
from mongodoc.odm.registry import factory
from mongodoc.odm.state import DocumentSnapshot
from mongodoc.odm.utils.init import init_mongodoc

Insert = EventTypes.INSERT
Update = EventTypes.UPDATE
Upsert = EventTypes.UPSERT
Load = EventTypes.LOAD
Delete = EventTypes.DELETE
Before = ActionDirections.BEFORE
After = ActionDirections.AFTER
del EventTypes, ActionDirections

__version__ = "0.1.0"
__all__ = [
    # ODM
    "Document",
    "Reference",
    "factory",
    "init_mongodoc",
    "PydanticObjectId",
    "DocumentSnapshot",
    # Collections
    "DocumentCollection",
    "PyMongoCollection",
    "InsertResult",
    # Actions
    "before_event",
    "after_event",
    "Insert",
    "Update",
    "Upsert",
    "Load",
    "Delete",
    "Before",
    "After",
    # Typed binding
    "to_model",
    "apply_model",
]
