"""Shared fixtures: in-memory database, sample device and a fake SNMP session."""
import os

# Settings are read at import time, so these must be set before netscope loads
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import netscope.models  # noqa: E402,F401
from netscope.database import Base  # noqa: E402
from netscope.models.device import Device  # noqa: E402


@pytest_asyncio.fixture
async def db_engine():
    """In-memory SQLite shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def device(db_session) -> Device:
    d = Device(name="core-sw1", ip_address="10.0.0.1", device_type="switch", status="unknown",
               snmp_version="2c", snmp_port=161, poll_interval=60, is_enabled=True)
    db_session.add(d)
    await db_session.commit()
    await db_session.refresh(d)
    return d


class FakeSnmpSession:
    """In-memory stand-in for SnmpSession: scalar OIDs in ``values``,
    walkable subtrees in ``tables`` keyed by prefix."""

    def __init__(self, values=None, tables=None, fail_with=None):
        self.values = dict(values or {})
        self.tables = {k: list(v) for k, v in (tables or {}).items()}
        self.fail_with = fail_with
        self.opened = False
        self.closed = False

    async def open(self):
        self.opened = True
        if self.fail_with is not None:
            raise self.fail_with
        return self

    async def close(self):
        self.closed = True

    async def __aenter__(self):
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def get(self, oid):
        return self.values.get(oid)

    async def get_multiple(self, oids):
        return {oid: self.values[oid] for oid in oids if oid in self.values}

    async def walk(self, prefix):
        return list(self.tables.get(prefix, []))


@pytest.fixture
def fake_session():
    """Factory building FakeSnmpSession instances."""
    return FakeSnmpSession
