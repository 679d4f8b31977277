import pytest

from mongo_service import RecordService, create_record_service

from .factories import Article
from .fake_collection import FakeCollection


@pytest.fixture
def fake_collection() -> FakeCollection:
    """Create a fresh fake collection for each test."""
    return FakeCollection("articles")


@pytest.fixture
def articles(fake_collection: FakeCollection) -> RecordService:
    """Article service backed by the fake collection."""
    return create_record_service(
        schema=Article, collection=lambda: fake_collection
    )
