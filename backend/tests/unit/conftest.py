import contextlib
from typing import Optional

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.constants import CHAT_NAMESPACE
from app.core.enums import CourseStatus
from app.database import Base

# Import models so Base.metadata is populated for reflection/create_all.
import app.models  # noqa: F401
from app.models.course import Course
from app.models.message import Attachment
from app.models.user import User
from app.realtime.connection import Connection
from app.realtime.hub import RealtimeHub
from app.repositories.factory import RepositoryFactory
from tests.helpers.realtime import FakeWebSocket, frame, token_for


@pytest.fixture(scope="session")
def _unit_engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def _driver_autocommit(dbapi_connection, connection_record):
        # pysqlite would otherwise defer BEGIN and turn RELEASE SAVEPOINT into a COMMIT
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def unit_db(_unit_engine) -> Session:
    """
    Provide a transactional session bound to the shared in-memory engine.
    """
    connection = _unit_engine.connect()
    transaction = connection.begin()
    # Service commits and rollbacks only release or roll back a SAVEPOINT
    SessionLocal = sessionmaker(
        bind=connection,
        expire_on_commit=False,
        future=True,
        join_transaction_mode="create_savepoint",
    )
    session = SessionLocal()

    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_user(unit_db):
    counter = {"n": 0}

    def _make(username: Optional[str] = None, roles: tuple = (), is_active: bool = True) -> User:
        counter["n"] += 1
        name = username or f"user{counter['n']}"
        user = User(
            email=f"{name}.{counter['n']}@example.com",
            username=name,
            first_name=name.capitalize(),
            is_active=is_active,
        )
        repo = RepositoryFactory.create_user_repository(unit_db)
        for role_name in roles:
            user.roles.append(repo.get_or_create_role(role_name))
        unit_db.add(user)
        unit_db.flush()
        return user

    return _make


@pytest.fixture
def make_course(unit_db):
    def _make(owner: User, name: str = "Intro to Python", status: CourseStatus = CourseStatus.APPROVED) -> Course:
        course = Course(course_name=name, owner_id=owner.id, status=status.value)
        unit_db.add(course)
        unit_db.flush()
        return course

    return _make


@pytest.fixture
def make_attachment(unit_db):
    def _make(owner: User, file_id: str = "file-1") -> Attachment:
        attachment = Attachment(
            user_id=owner.id, file_id=file_id, mimetype="image/png", original_name="pic.png"
        )
        unit_db.add(attachment)
        unit_db.flush()
        return attachment

    return _make


# ---------------------------------------------------------------------------
# Real-time
# ---------------------------------------------------------------------------


@pytest.fixture
def session_factory(unit_db):
    return lambda: contextlib.nullcontext(unit_db)


@pytest.fixture
def hub(session_factory):
    return RealtimeHub(session_factory=session_factory, relay_enabled=False)


@pytest.fixture
def open_connection(hub):
    """Register a fake socket in a namespace without logging in."""

    def _open(namespace: str = CHAT_NAMESPACE):
        ws = FakeWebSocket()
        connection = Connection(ws, namespace)
        hub.directory.register(connection)
        return connection, ws

    return _open


@pytest.fixture
def login(hub, open_connection):
    """Open a connection and log it in as ``user``."""

    async def _login(user: User, namespace: str = CHAT_NAMESPACE):
        connection, ws = open_connection(namespace)
        gateway = hub.chat if namespace == CHAT_NAMESPACE else hub.notifications
        await gateway.dispatch(connection, frame("login", {"accessToken": token_for(user)}))
        return connection, ws

    return _login
