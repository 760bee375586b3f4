# tests/conftest.py
import os
import asyncio
import json
from urllib.parse import urlencode

import pytest
from sqlalchemy.pool import StaticPool

# Settings are cached on first use, so the environment is set before any
# application import.
os.environ["REDIS_URL"] = ""
os.environ["AUTH_RATE_LIMIT_TIMES"] = "10000"
os.environ["LOG_LEVEL"] = "WARNING"

from fastapi_limiter import FastAPILimiter

from contact_manager.database import Base, Database, get_db
from main import create_app


# DB (SQLite in-memory for tests)
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

database = Database(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
app = create_app(database)


@pytest.fixture(scope="session", autouse=True)
def prepare_database():
    database.create_all()
    yield
    Base.metadata.drop_all(bind=database.engine)


@pytest.fixture()
def db_session():
    session = database.session_factory()
    try:
        yield session
    finally:
        session.rollback()
        for table in reversed(Base.metadata.sorted_tables):
            session.execute(table.delete())
        session.commit()
        session.close()


# One event loop for the WHOLE pytest session
@pytest.fixture(scope="session")
def session_loop():
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    yield loop
    loop.close()


# Run FastAPI startup/shutdown once per session (same loop)
# This ensures FastAPILimiter.init() is called correctly.
@pytest.fixture(scope="session", autouse=True)
def app_lifespan(session_loop, prepare_database):
    session_loop.run_until_complete(app.router.startup())
    yield
    # FastAPILimiter.close() and the pool dispose run here
    session_loop.run_until_complete(app.router.shutdown())
    FastAPILimiter.redis = None


# Simple ASGI response/client
class SimpleResponse:
    def __init__(
        self, status_code: int, body: bytes, headers: list[tuple[bytes, bytes]]
    ):
        self.status_code = status_code
        self._body = body
        self.headers = {k.decode(): v.decode() for k, v in headers}

    def json(self):
        return json.loads(self._body.decode())


class SimpleClient:
    """
    Important:
    - uses ONE shared session loop (passed from fixture)
    - does NOT call asyncio.run()
    - does NOT close the loop
    """

    def __init__(self, app, loop, raise_server_exceptions=True):
        self.app = app
        self.loop = loop
        self.raise_server_exceptions = raise_server_exceptions

    def close(self):
        # do not close the loop here (session fixture closes it)
        pass

    def request(
        self,
        method: str,
        path: str,
        json_body=None,
        params=None,
        headers=None,
    ):
        headers = dict(headers or {})
        body_bytes = b""

        if json_body is not None:
            body_bytes = json.dumps(json_body).encode()
            headers.setdefault("content-type", "application/json")

        query_string = b""
        if "?" in path:
            path, raw_query = path.split("?", 1)
            query_string = raw_query.encode()
        if params:
            query_string = urlencode(params, doseq=True).encode()

        raw_headers = [(k.lower().encode(), v.encode()) for k, v in headers.items()]
        scope = {
            "type": "http",
            "method": method.upper(),
            "path": path,
            "raw_path": path.encode(),
            "root_path": "",
            "scheme": "http",
            "server": ("testserver", 80),
            "headers": raw_headers,
            "query_string": query_string,
            "client": ("testclient", 5000),
        }

        async def receive():
            nonlocal body_bytes
            chunk, body_bytes = body_bytes, b""
            return {"type": "http.request", "body": chunk, "more_body": False}

        response_body = bytearray()
        response_status = 500
        response_headers: list[tuple[bytes, bytes]] = []

        async def send(message):
            nonlocal response_status, response_headers
            if message["type"] == "http.response.start":
                response_status = message["status"]
                response_headers = message.get("headers", [])
            elif message["type"] == "http.response.body":
                response_body.extend(message.get("body", b""))

        # ensure the loop is the current one
        asyncio.set_event_loop(self.loop)
        try:
            self.loop.run_until_complete(self.app(scope, receive, send))
        except Exception:
            # the 500 response has already been sent by the error middleware
            if self.raise_server_exceptions:
                raise
        return SimpleResponse(response_status, bytes(response_body), response_headers)

    def get(self, path: str, params=None, headers=None):
        return self.request("GET", path, params=params, headers=headers)

    def post(self, path: str, json=None, headers=None):
        return self.request("POST", path, json_body=json, headers=headers)

    def put(self, path: str, json=None, headers=None):
        return self.request("PUT", path, json_body=json, headers=headers)

    def patch(self, path: str, json=None, headers=None):
        return self.request("PATCH", path, json_body=json, headers=headers)

    def delete(self, path: str, headers=None):
        return self.request("DELETE", path, headers=headers)


# Client fixture: override DB dependency per test
@pytest.fixture()
def client(db_session, session_loop):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    c = SimpleClient(app, loop=session_loop)
    try:
        yield c
    finally:
        app.dependency_overrides.clear()
        c.close()




# Same as ``client`` but returns the 500 response instead of re-raising
@pytest.fixture()
def lenient_client(client):
    return SimpleClient(client.app, loop=client.loop, raise_server_exceptions=False)
