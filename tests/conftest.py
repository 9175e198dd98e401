import pytest
import os
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool
from httpx import AsyncClient, ASGITransport

from medcourier.core.events import TrackingEventBus
from medcourier.database import Base, get_db, session_scope
from medcourier.main import app
from medcourier.services.session import TrackingSessionManager
from medcourier.services.status_machine import DeliveryStateMachine
from medcourier.services.store import SqlTrackingStore
from tests.fixtures.clock import ManualScheduler
from tests.fixtures.memory_store import InMemoryTrackingStore
from tests.fixtures.test_data import SAN_ANTONIO_DROPOFF, SAN_ANTONIO_PICKUP

# Use in-memory SQLite for tests by default, unless TEST_DATABASE_URL is set
TEST_DB_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")


@pytest.fixture
async def test_engine():
    """Function-scoped test database engine with fresh tables."""
    engine = create_async_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False} if "sqlite" in TEST_DB_URL else {},
        poolclass=StaticPool if "sqlite" in TEST_DB_URL else None,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_maker(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
def sql_store(session_maker) -> SqlTrackingStore:
    return SqlTrackingStore(session_maker)


@pytest.fixture
def memory_store() -> InMemoryTrackingStore:
    return InMemoryTrackingStore()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def event_bus() -> TrackingEventBus:
    return TrackingEventBus()


@pytest.fixture
async def tracking_manager(sql_store, scheduler, event_bus):
    """Session manager over the SQL store, driven by the virtual clock."""
    manager = TrackingSessionManager(
        sql_store,
        state_machine=DeliveryStateMachine(sql_store),
        scheduler=scheduler,
        event_bus=event_bus,
    )
    yield manager
    await manager.close_all()


@pytest.fixture
async def client(session_maker, sql_store, tracking_manager) -> AsyncGenerator[AsyncClient, None]:
    """Test client wired to the test database; ASGITransport skips lifespan."""
    async def override_get_db():
        async with session_scope(session_maker) as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.state.tracking_store = sql_store
    app.state.tracking_manager = tracking_manager

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def pending_delivery(sql_store):
    """Pending delivery between two San Antonio addresses."""
    return await sql_store.create_delivery(
        pickup_location="7703 Floyd Curl Dr, San Antonio, TX",
        delivery_location="4502 Medical Dr, San Antonio, TX",
        pickup=SAN_ANTONIO_PICKUP,
        destination=SAN_ANTONIO_DROPOFF,
    )


@pytest.fixture
async def available_driver(sql_store):
    return await sql_store.create_driver(name="Maria Lopez", phone="210-555-0101")
