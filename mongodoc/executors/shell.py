import logging
import os
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence

import click
import toml
from bson import json_util
from pymongo import MongoClient

from mongodoc.exceptions import MongoDocumentError
from mongodoc.odm.documents import Document
from mongodoc.odm.fields import coerce_identity
from mongodoc.odm.registry import factory
from mongodoc.odm.utils.init import init_mongodoc

logging.basicConfig(format="%(message)s", level=logging.INFO)
logger = logging.getLogger(__name__)

DEFAULT_CONNECTION_URI = "mongodb://localhost:27017"


class ShellSettings:
    def __init__(
        self,
        connection_uri: Optional[str] = None,
        database_name: Optional[str] = None,
        models: Sequence[str] = (),
    ):
        self.connection_uri = str(
            connection_uri
            or self.get_env_value("connection_uri")
            or self.get_from_toml("connection_uri")
            or DEFAULT_CONNECTION_URI
        )
        self.database_name: Optional[str] = (
            database_name
            or self.get_env_value("database_name")
            or self.get_from_toml("database_name")
        )
        env_models = self.get_env_value("models")
        self.models: List[str] = list(
            models
            or (env_models.split(",") if env_models else None)
            or self.get_from_toml("models")
            or []
        )

    @staticmethod
    def get_env_value(field_name: str) -> Optional[str]:
        def get_value(key: str) -> Optional[str]:
            return os.getenv(key.upper()) or os.getenv(key.lower())

        if field_name == "connection_uri":
            return (
                get_value("MONGODOC_URI")
                or get_value("MONGODOC_CONNECTION_URI")
                or get_value("MONGODOC_MONGODB_URI")
            )
        if field_name == "database_name":
            return get_value("MONGODOC_DB") or get_value(
                "MONGODOC_DATABASE_NAME"
            )
        return get_value(f"MONGODOC_{field_name}")

    @staticmethod
    def get_from_toml(field_name: str) -> Any:
        path = Path("pyproject.toml")
        if path.is_file():
            val = toml.load(path).get("tool", {}).get("mongodoc", {})
        else:
            val = {}
        return val.get(field_name)


def connect(settings: ShellSettings) -> Any:
    client: MongoClient = MongoClient(settings.connection_uri)
    if settings.database_name:
        return client[settings.database_name]
    return client.get_default_database()


def parse_value(text: str) -> Any:
    """Extended JSON when it parses, the raw string otherwise"""
    try:
        return json_util.loads(text)
    except ValueError:
        return text


def run_on_document(
    settings: ShellSettings,
    model: str,
    document_id: str,
    action: Callable[[Document], Any],
) -> Any:
    if not settings.models:
        raise click.UsageError(
            "No document models configured, use --model or MONGODOC_MODELS"
        )
    try:
        init_mongodoc(database=connect(settings), document_models=settings.models)
        document = factory(model, coerce_identity(document_id))
        return action(document)
    except MongoDocumentError as e:
        raise click.ClickException(str(e))


@click.group()
@click.option("-uri", "--connection-uri", help="MongoDB connection URI")
@click.option("-db", "--database-name", help="DataBase name")
@click.option(
    "-m",
    "--model",
    "models",
    multiple=True,
    help="Dotted path of a Document class, can be repeated",
)
@click.pass_context
def shell(
    ctx: click.Context,
    connection_uri: Optional[str],
    database_name: Optional[str],
    models: Sequence[str],
) -> None:
    ctx.obj = ShellSettings(
        connection_uri=connection_uri,
        database_name=database_name,
        models=models,
    )


@shell.command()
@click.argument("model")
@click.argument("document_id")
@click.option("-f", "--field", "fields", multiple=True, help="Field to show")
@click.pass_obj
def show(
    settings: ShellSettings, model: str, document_id: str, fields: Sequence[str]
) -> None:
    """Print a document as extended JSON"""

    def load(document: Document) -> None:
        document.load(fields=fields)
        if not document.loaded:
            raise click.ClickException(f"No {model} with _id {document_id}")
        click.echo(json_util.dumps(document.as_dict(), indent=2))

    run_on_document(settings, model, document_id, load)


@shell.command(name="set")
@click.argument("model")
@click.argument("document_id")
@click.argument("field")
@click.argument("value")
@click.pass_obj
def set_field(
    settings: ShellSettings, model: str, document_id: str, field: str, value: str
) -> None:
    """Set FIELD (dotted paths allowed) to an extended JSON VALUE"""
    run_on_document(
        settings,
        model,
        document_id,
        lambda document: document.set(field, parse_value(value)).save(),
    )
    logger.info(f"Set {field} of {model} {document_id}")


@shell.command()
@click.argument("model")
@click.argument("document_id")
@click.argument("field")
@click.option("--by", default="1", help="Increment, 1 by default")
@click.pass_obj
def inc(
    settings: ShellSettings, model: str, document_id: str, field: str, by: str
) -> None:
    """Increment FIELD atomically"""
    run_on_document(
        settings,
        model,
        document_id,
        lambda document: document.inc(field, parse_value(by)).save(),
    )
    logger.info(f"Incremented {field} of {model} {document_id} by {by}")


@shell.command()
@click.argument("model")
@click.argument("document_id")
@click.argument("field")
@click.argument("value")
@click.pass_obj
def push(
    settings: ShellSettings, model: str, document_id: str, field: str, value: str
) -> None:
    """Append VALUE to the FIELD array"""
    run_on_document(
        settings,
        model,
        document_id,
        lambda document: document.push(field, parse_value(value)).save(),
    )
    logger.info(f"Pushed to {field} of {model} {document_id}")


@shell.command()
@click.argument("model")
@click.argument("document_id")
@click.argument("field")
@click.pass_obj
def unset(
    settings: ShellSettings, model: str, document_id: str, field: str
) -> None:
    """Remove FIELD from the document"""
    run_on_document(
        settings,
        model,
        document_id,
        lambda document: document.unset(field).save(),
    )
    logger.info(f"Removed {field} from {model} {document_id}")


@shell.command()
@click.argument("model")
@click.argument("document_id")
@click.pass_obj
def delete(settings: ShellSettings, model: str, document_id: str) -> None:
    """Delete the document"""
    run_on_document(
        settings, model, document_id, lambda document: document.delete()
    )
    logger.info(f"Deleted {model} {document_id}")


if __name__ == "__main__":
    shell()
