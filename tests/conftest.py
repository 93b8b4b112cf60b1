import os
from datetime import datetime, timezone

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite://')

from workshop_api.auth import jwt_handler  # noqa: E402
from workshop_api.core import config  # noqa: E402
from workshop_api.database import get_db, init_schema  # noqa: E402
from workshop_api.main import app  # noqa: E402
from workshop_api.services import entity_store  # noqa: E402
from workshop_api.services.http_client import get_http_client  # noqa: E402


class FakeGoogle:
    """Records outbound requests and answers them from a queue per URL prefix."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self._responses: dict[str, list] = {}

    def queue(self, url_prefix: str, *responses) -> None:
        self._responses.setdefault(url_prefix, []).extend(responses)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        for prefix, responses in self._responses.items():
            if url.startswith(prefix) and responses:
                response = responses.pop(0)
                if isinstance(response, Exception):
                    raise response
                return response
        return httpx.Response(404, json={'error': f'unexpected request to {url}'})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture(autouse=True)
def fast_password_hashing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'PASSWORD_HASH_ITERATIONS', 1000)


@pytest.fixture
def google_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'GOOGLE_CLIENT_ID', 'client-id')
    monkeypatch.setattr(config, 'GOOGLE_CLIENT_SECRET', 'client-secret')
    monkeypatch.setattr(config, 'GOOGLE_REDIRECT_URI', 'http://localhost:8000/oauth2callback')
    monkeypatch.setattr(config, 'GOOGLE_MAPS_API_KEY', 'maps-key')


@pytest.fixture
def db_engine():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    init_schema(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def db(db_engine):
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def mentor(db):
    return entity_store.create_user(
        db,
        name='Grace Mentor',
        email='grace@example.com',
        password='correct-horse',
        role='mentor',
    )


@pytest.fixture
def learner(db):
    return entity_store.create_user(
        db,
        name='Ada Learner',
        email='ada@example.com',
        password='battery-staple',
        role='learner',
    )


@pytest.fixture
def workshop(db, mentor):
    return entity_store.create_workshop(
        db,
        title='Intro to Rust',
        description='Ownership and borrowing',
        mentor_id=mentor.id,
        location='1600 Amphitheatre Parkway, Mountain View, CA',
        date_time=datetime(2025, 3, 1, 10, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def activity(db, workshop):
    return entity_store.create_activity(
        db,
        title='Borrow checker lab',
        description='Hands-on exercises',
        workshop_id=workshop.id,
        date_time=datetime(2025, 3, 1, 11, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def fake_google() -> FakeGoogle:
    return FakeGoogle()


@pytest.fixture
def auth_header():
    def _auth_header(user) -> dict:
        token = jwt_handler.create_access_token(user_id=user.id, role=user.role)
        return {'Authorization': f'Bearer {token}'}

    return _auth_header


@pytest.fixture
def client(db, fake_google):
    def override_get_db():
        yield db

    async def override_get_http_client():
        async with fake_google.client() as http_client:
            yield http_client

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_http_client] = override_get_http_client
    try:
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        app.dependency_overrides.clear()
