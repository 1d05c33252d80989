import itertools

import pytest
from unittest.mock import Mock, MagicMock
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from app.database import get_db
from app.auth.dependencies import get_current_user
from app.integrations.gateway import PaymentGatewayConfig
from app.integrations.threepay import ThreePayClient
from app.models import Base
from app.models.coach import Coach, CoachStatus
from app.models.strategy import Strategy, StrategyVideo
from app.models.user import User, UserRole, UserStatus
from app.services.payments import threepay_client


@pytest.fixture
def mock_db():
    """Mock database session"""
    db = MagicMock()
    db.query.return_value = db
    db.filter.return_value = db
    db.first.return_value = None
    db.all.return_value = []
    db.count.return_value = 0
    return db


def _mock_user(id, email, role):
    user = Mock(spec=User)
    user.id = id
    user.email = email
    user.display_name = None
    user.name = email
    user.role = role
    user.status = UserStatus.ACTIVE
    user.password_hash = "$2b$12$test_hash"
    user.assigned_coach_id = None
    user.assigned_coach_name = None
    user.coach_commission_override = None
    user.ban_reason = None
    user.banned_at = None
    user.created_at = None
    return user


@pytest.fixture
def mock_coach_user():
    """Mock coach user"""
    return _mock_user(1, "coach@test.com", UserRole.COACH)


@pytest.fixture
def mock_user():
    """Mock subscriber"""
    return _mock_user(2, "user@test.com", UserRole.USER)


@pytest.fixture
def mock_admin():
    """Mock admin user"""
    return _mock_user(3, "admin@test.com", UserRole.ADMIN)


@pytest.fixture
def client_with_coach(mock_db, mock_coach_user):
    """TestClient with coach auth and mocked DB"""
    app.dependency_overrides[get_db] = lambda: mock_db
    app.dependency_overrides[get_current_user] = lambda: mock_coach_user
    client = TestClient(app)
    yield client, mock_db, mock_coach_user
    app.dependency_overrides.clear()


@pytest.fixture
def client_with_user(mock_db, mock_user):
    """TestClient with subscriber auth and mocked DB"""
    app.dependency_overrides[get_db] = lambda: mock_db
    app.dependency_overrides[get_current_user] = lambda: mock_user
    client = TestClient(app)
    yield client, mock_db, mock_user
    app.dependency_overrides.clear()


@pytest.fixture
def client_with_admin(mock_db, mock_admin):
    """TestClient with admin auth and mocked DB"""
    app.dependency_overrides[get_db] = lambda: mock_db
    app.dependency_overrides[get_current_user] = lambda: mock_admin
    client = TestClient(app)
    yield client, mock_db, mock_admin
    app.dependency_overrides.clear()


@pytest.fixture
def unauthenticated_client(mock_db):
    """TestClient with mocked DB but no auth"""
    app.dependency_overrides[get_db] = lambda: mock_db
    client = TestClient(app)
    yield client, mock_db
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def db_session():
    """Real session on in-memory SQLite for ledger and state machine tests"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite needs these for SAVEPOINT (begin_nested) to behave
    @event.listens_for(engine, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = Session()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def make_user(db_session):
    counter = itertools.count(1)

    def _make(role=UserRole.USER, coach=None, override=None, display_name=None):
        n = next(counter)
        user = User(
            email=f"{role.value}{n}@test.com",
            password_hash="not-a-real-hash",
            display_name=display_name,
            role=role,
            status=UserStatus.ACTIVE,
            coach_commission_override=override,
        )
        if coach is not None:
            user.assigned_coach_id = coach.id
            user.assigned_coach_name = coach.full_name
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture
def make_coach(db_session, make_user):
    def _make(full_name="Coach C", commission=30):
        user = make_user(role=UserRole.COACH)
        coach = Coach(
            user_id=user.id,
            full_name=full_name,
            email=user.email,
            status=CoachStatus.APPROVED,
            default_commission_percentage=commission,
        )
        db_session.add(coach)
        db_session.commit()
        return coach

    return _make


@pytest.fixture
def make_strategy(db_session):
    counter = itertools.count(1)

    def _make(price=100, videos=3, name=None, is_active=True):
        n = next(counter)
        strategy = Strategy(number=n, name=name or f"Strategy {n}", price=price, is_active=is_active)
        db_session.add(strategy)
        db_session.flush()
        for order in range(videos):
            db_session.add(StrategyVideo(
                strategy_id=strategy.id, order=order, title=f"Video {order + 1}", is_visible=True,
            ))
        db_session.commit()
        return strategy

    return _make


@pytest.fixture
def api(db_session):
    """TestClient backed by the SQLite session; call it with the user to act as"""
    current = {}
    app.dependency_overrides[get_db] = lambda: db_session
    app.dependency_overrides[get_current_user] = lambda: current["user"]
    app.dependency_overrides[threepay_client] = lambda: ThreePayClient(PaymentGatewayConfig(mode="test"))
    client = TestClient(app)

    def _as(user):
        current["user"] = user
        return client

    yield _as
    app.dependency_overrides.clear()
