import importlib
import logging
from typing import Any, List, Optional, Type, Union

from pymongo import MongoClient

from mongodoc.odm.documents import Document
from mongodoc.odm.registry import DocsRegistry, models

logger = logging.getLogger(__name__)


def resolve_name(name: str) -> Type[Document]:
    try:
        module_name, class_name = name.rsplit(".", 1)
    except ValueError:
        raise ValueError(
            f"'{name}' doesn't have '.' path, eg. path.to.model.class"
        )
    module = importlib.import_module(module_name)
    return getattr(module, class_name)


def init_mongodoc(
    database: Any = None,
    connection_string: Optional[str] = None,
    document_models: Optional[List[Union[Type[Document], str]]] = None,
    registry: DocsRegistry = models,
) -> None:
    """
    Bind document models to their collections and register them for
    `factory()`.

    :param database: pymongo Database, or any mapping of collection name to
        a `DocumentCollection`
    :param connection_string: str - MongoDB connection string with a default
        database
    :param document_models: List[Union[Type[Document], str]] - model classes
        or strings with dot separated paths
    :param registry: DocsRegistry - where models are registered
    :return: None
    """
    if document_models is None:
        raise ValueError("document_models parameter must be set")

    if connection_string is database is None:
        raise ValueError("Either connection_string or database must be set")

    if connection_string is not None and database is not None:
        raise ValueError("Either connection_string or database must be set")

    if database is None:
        client: MongoClient = MongoClient(connection_string)
        database = client.get_default_database()

    for model in document_models:
        if isinstance(model, str):
            model = resolve_name(model)
        if not (isinstance(model, type) and issubclass(model, Document)):
            raise TypeError(f"{model!r} is not a Document subclass")
        model.set_settings(database)
        registry.register(model.get_model_name(), model)
        logger.debug(
            "Registered %s as %r on collection %r",
            model.__name__,
            model.get_model_name(),
            model.get_collection_name(),
        )
