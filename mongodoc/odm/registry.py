from typing import TYPE_CHECKING, Any, Dict, Generic, List, Type, TypeVar

from mongodoc.exceptions import ModelNotRegistered

if TYPE_CHECKING:
    from mongodoc.odm.collection import DocumentCollection
    from mongodoc.odm.documents import Document

T = TypeVar("T", bound="Document")


class DocsRegistry(Generic[T]):
    """Model name -> document class, filled in by `init_mongodoc`"""

    def __init__(self):
        self._registry: Dict[str, Type[T]] = {}

    def register(self, name: str, doc_type: Type[T]):
        self._registry[name] = doc_type

    def get(self, name: str) -> Type[T]:
        try:
            return self._registry[name]
        except KeyError:
            raise ModelNotRegistered(f"No document model named {name!r}")

    def get_collection(self, name: str) -> "DocumentCollection":
        return self.get(name).get_collection()

    def names(self) -> List[str]:
        return sorted(self._registry)

    def clear(self) -> None:
        self._registry.clear()

    def factory(self, name: str, id: Any = None) -> T:
        return self.get(name)(id)


models: DocsRegistry = DocsRegistry()


def factory(model_name: str, id: Any = None) -> "Document":
    """
    Build a document of the model registered as ``model_name``.

    When ``id`` is given the document is assumed to exist: it will be
    loaded on first field access and `save()` will update it in place.
    """
    return models.factory(model_name, id)
