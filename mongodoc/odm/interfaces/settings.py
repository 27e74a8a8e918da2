from typing import Any, ClassVar, Optional

from pydantic import BaseModel, ConfigDict, model_validator
from pymongo.collection import Collection
from typing_extensions import Self

from mongodoc.exceptions import DocumentNotInitialized
from mongodoc.odm.collection import DocumentCollection, PyMongoCollection


class DocumentSettings(BaseModel):
    model_config = ConfigDict(
        arbitrary_types_allowed=True, protected_namespaces=()
    )

    # collection name
    name: str
    # name used by `factory()` and in references
    model_name: str
    # default write acknowledgment for `Document.save`
    safe: bool = True

    collection: Any = None

    @model_validator(mode="after")
    def _check_collection(self) -> Self:
        if isinstance(self.collection, Collection):
            self.collection = PyMongoCollection(self.collection)
        if self.collection is not None and not isinstance(
            self.collection, DocumentCollection
        ):
            raise ValueError(
                f"{type(self.collection).__name__} is not a DocumentCollection"
            )
        return self


class SettingsInterface:
    _settings: ClassVar[DocumentSettings]

    @classmethod
    def default_model_name(cls) -> str:
        return cls.__name__.lower()

    @classmethod
    def set_settings(cls, database: Any = None) -> None:
        settings = dict(name=cls.__name__, model_name=cls.default_model_name())
        if hasattr(cls, "Settings"):
            settings.update(vars(cls.Settings))
        if settings.get("collection") is None and database is not None:
            settings["collection"] = database[settings["name"]]
        cls._settings = DocumentSettings.model_validate(settings)

    @classmethod
    def get_settings(cls) -> DocumentSettings:
        # settings are per class, a subclass must be initialized on its own
        settings: Optional[DocumentSettings] = cls.__dict__.get("_settings")
        if settings is None:
            raise DocumentNotInitialized(
                f"{cls.__name__} was not initialized with init_mongodoc()"
            )
        return settings

    @classmethod
    def get_collection(cls) -> DocumentCollection:
        collection = cls.get_settings().collection
        if collection is None:
            raise DocumentNotInitialized(
                f"{cls.__name__} has no collection bound"
            )
        return collection

    @classmethod
    def get_collection_name(cls) -> str:
        return cls.get_settings().name

    @classmethod
    def get_model_name(cls) -> str:
        return cls.get_settings().model_name
