import pytest
from fastapi.testclient import TestClient

from continuum.db import get_db
from continuum.main import create_app
from continuum.routers.utils.dependencies import (
    get_intent_extractor,
    get_reply_runner,
    get_text_generator,
)


@pytest.fixture
def app(db, reply_runner, text_generator, intent_extractor):
    app = create_app(testing=True)

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_reply_runner] = lambda: reply_runner
    app.dependency_overrides[get_text_generator] = lambda: text_generator
    app.dependency_overrides[get_intent_extractor] = lambda: intent_extractor
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client
