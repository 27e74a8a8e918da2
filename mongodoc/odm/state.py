from dataclasses import dataclass, field
from typing import Any, Dict, List, Set

from pydantic import BaseModel, ConfigDict
from typing_extensions import Literal

from mongodoc.odm.fields import top_level

SNAPSHOT_VERSION = 1


@dataclass
class DocumentState:
    """
    Change tracking for one document instance.

    - `changed`: fields assigned directly, saved as whole values
    - `dirty`: top level fields touched by an update operator; their real
      value is only known after a reload
    - `loaded`: the in-memory fields came from the database
    """

    changed: Set[str] = field(default_factory=set)
    dirty: Set[str] = field(default_factory=set)
    loaded: bool = False

    def mark_changed(self, name: str) -> None:
        self.changed.add(name)

    def mark_dirty(self, path: str) -> None:
        self.dirty.add(top_level(path))

    def is_field_changed(self, name: str) -> bool:
        return name in self.changed or name in self.dirty

    def needs_reload(self, name: str, has_operations: bool) -> bool:
        return self.loaded and not has_operations and name in self.dirty

    def clear_changes(self) -> None:
        self.changed.clear()

    def clear(self) -> None:
        self.changed.clear()
        self.dirty.clear()
        self.loaded = False


class DocumentSnapshot(BaseModel):
    """Everything a document needs to be rebuilt in another process"""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    version: Literal[1] = SNAPSHOT_VERSION
    aliases: Dict[str, str]
    fields: Dict[str, Any]
    changed: List[str]
    operations: Dict[str, Dict[str, Any]]
    loaded: bool
    dirty: List[str]
