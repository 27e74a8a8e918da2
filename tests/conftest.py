import pytest

from mongodoc import init_mongodoc
from mongodoc.odm.registry import models
from tests.odm.memory import MemoryDatabase
from tests.odm.models import Post, Sample, Unacknowledged, User, Visit


@pytest.fixture
def database():
    return MemoryDatabase()


@pytest.fixture(autouse=True)
def init(database):
    Visit.events = []
    init_mongodoc(
        database=database,
        document_models=[Sample, User, Post, Unacknowledged, Visit],
    )
    yield
    models.clear()


@pytest.fixture
def samples(database):
    return database["samples"]


@pytest.fixture
def users(database):
    return database["users"]


@pytest.fixture
def posts(database):
    return database["posts"]
