from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine, event, StaticPool
from sqlalchemy.orm import sessionmaker

from safari_ops.auth import hash_password
from safari_ops.database import Base, get_db
from safari_ops.main import app
from safari_ops.models import Booking, Driver, Trip, User, Vehicle
from safari_ops.store import ChangeFeed, SqlAlchemyStore

from fastapi.testclient import TestClient

PASSWORD = "secret123"
PASSWORD_HASH = hash_password(PASSWORD)

# Tuesday morning, before the late threshold
NOW = datetime(2026, 3, 10, 8, 30)
TODAY = NOW.date()


@pytest.fixture(scope="function")
def db_engine():
    """Create a fresh in-memory SQLite engine for each test.
    Uses StaticPool so all threads share the same connection."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, _):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine):
    """Create a session bound to the test engine."""
    Session = sessionmaker(bind=db_engine)
    session = Session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(db_engine, db_session):
    """FastAPI test client with overridden DB dependency."""
    def _override_get_db():
        session = sessionmaker(bind=db_engine)()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def store(db_session) -> SqlAlchemyStore:
    """Data store on the test session with its own change feed."""
    return SqlAlchemyStore(db_session, feed=ChangeFeed())


class FixedClock:
    """Callable clock for services; move it with `set`."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, *args):
        self.now = datetime(*args)


@pytest.fixture(scope="function")
def clock() -> FixedClock:
    return FixedClock(NOW)


class Factory:
    """Seeds rows straight through the ORM session."""

    def __init__(self, db):
        self.db = db
        self._plates = 0
        self._refs = 0

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def user(self, email: str, role: str, name: str = None, is_active: bool = True) -> User:
        return self._save(User(
            email=email,
            name=name or email.split("@")[0].title(),
            hashed_password=PASSWORD_HASH,
            role=role,
            is_active=is_active,
        ))

    def driver(self, user: User = None, **kwargs) -> Driver:
        return self._save(Driver(user_id=user.id if user else None, **kwargs))

    def vehicle(self, plate: str = None, model: str = "Land Cruiser", status: str = "available") -> Vehicle:
        if plate is None:
            self._plates += 1
            plate = f"KDA {self._plates:03d}A"
        return self._save(Vehicle(plate=plate, model=model, status=status))

    def booking(self, reference: str = None, customer_name: str = "Jane Traveller") -> Booking:
        if reference is None:
            self._refs += 1
            reference = f"SAF-{self._refs:04d}"
        return self._save(Booking(booking_reference=reference, customer_name=customer_name))

    def trip(self, start_in_days: int = 2, length_days: int = 3, booking: Booking = None, **kwargs) -> Trip:
        start = TODAY + timedelta(days=start_in_days)
        values = {
            "customer_name": booking.customer_name if booking else "Walk-in Guest",
            "package_name": "Masai Mara Explorer",
            "start_date": start,
            "end_date": start + timedelta(days=length_days),
        }
        values.update(kwargs)
        return self._save(Trip(booking_id=booking.id if booking else None, **values))


@pytest.fixture(scope="function")
def factory(db_session) -> Factory:
    return Factory(db_session)


@pytest.fixture(scope="function")
def super_admin_user(factory) -> User:
    return factory.user("root@safari.test", "super_admin", name="Root Admin")


@pytest.fixture(scope="function")
def admin_user(factory) -> User:
    return factory.user("admin@safari.test", "admin", name="Office Admin")


@pytest.fixture(scope="function")
def coordinator_user(factory) -> User:
    return factory.user("ops@safari.test", "operations_coordinator", name="Ops Coordinator")


@pytest.fixture(scope="function")
def driver_user(factory) -> User:
    return factory.user("driver@safari.test", "driver", name="Joseph Kamau")


@pytest.fixture(scope="function")
def booking_manager_user(factory) -> User:
    return factory.user("bookings@safari.test", "booking_manager", name="Booking Desk")


def get_auth_headers(client: TestClient, email: str, password: str = PASSWORD) -> dict:
    """Login and return Authorization headers with Bearer token."""
    resp = client.post("/api/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, f"Login failed for {email}: {resp.text}"
    token = resp.json()["access_token"]
    # the login cookie would otherwise authenticate every later request
    client.cookies.clear()
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
def super_admin_headers(client, super_admin_user) -> dict:
    return get_auth_headers(client, super_admin_user.email)


@pytest.fixture(scope="function")
def admin_headers(client, admin_user) -> dict:
    return get_auth_headers(client, admin_user.email)


@pytest.fixture(scope="function")
def coordinator_headers(client, coordinator_user) -> dict:
    return get_auth_headers(client, coordinator_user.email)


@pytest.fixture(scope="function")
def driver_headers(client, driver_user) -> dict:
    return get_auth_headers(client, driver_user.email)


@pytest.fixture(scope="function")
def booking_manager_headers(client, booking_manager_user) -> dict:
    return get_auth_headers(client, booking_manager_user.email)
