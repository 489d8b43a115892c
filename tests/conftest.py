import os
import uuid
from decimal import Decimal

import pytest

# Settings are read at import time; configure before importing the app
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["ENVIRONMENT"] = "test"
os.environ["ALLOWED_HOSTS"] = '["*"]'
os.environ["SMTP_USER"] = ""
os.environ["SMTP_PASSWORD"] = ""

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from storefront.core.database import enable_sqlite_savepoints, get_db
from storefront.core.security import SecurityUtils
from storefront.main import app as fastapi_app
from storefront.models import Base, Product, User, UserRole


@pytest.fixture(scope='function')
async def engine():
    """In-memory database shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_savepoints(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture(scope='function')
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture(scope='function')
async def session(session_factory):
    """Database session for service-level tests."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture(scope='function')
async def user(session):
    """Customer with a complete profile."""
    user = User(
        email=f'customer-{uuid.uuid4().hex[:8]}@test.com',
        full_name='Test Customer',
        role=UserRole.USER,
        phone='0100000000',
        address='1 Test Street',
        region='Cairo'
    )
    session.add(user)
    await session.commit()
    return user


@pytest.fixture(scope='function')
async def bare_user(session):
    """Customer without profile details."""
    user = User(email=f'bare-{uuid.uuid4().hex[:8]}@test.com', role=UserRole.USER)
    session.add(user)
    await session.commit()
    return user


@pytest.fixture(scope='function')
async def admin(session):
    user = User(email=f'admin-{uuid.uuid4().hex[:8]}@test.com', full_name='Admin', role=UserRole.ADMIN)
    session.add(user)
    await session.commit()
    return user


@pytest.fixture(scope='function')
async def products(session):
    """P1 uses the default sizes, P2 only offers L and XL."""
    p1 = Product(name='Classic Tee', image='tee.png', category='men', new_price=Decimal('100.00'),
                 old_price=Decimal('120.00'), sizes=[])
    p2 = Product(name='Hoodie', image='hoodie.png', category='women', new_price=Decimal('50.00'),
                 sizes=['L', 'XL'])
    session.add_all([p1, p2])
    await session.commit()
    return p1, p2


def make_token(user, role=None):
    return SecurityUtils.create_access_token({
        "sub": str(user.id),
        "role": role or user.role.value,
        "email": user.email,
    })


@pytest.fixture(scope='function')
def auth_headers(user):
    return {"Authorization": f"Bearer {make_token(user)}"}


@pytest.fixture(scope='function')
def admin_headers(admin):
    return {"Authorization": f"Bearer {make_token(admin)}"}


@pytest.fixture(scope='function')
async def client(session_factory):
    """HTTP client; every request gets its own committed session."""
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    fastapi_app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=fastapi_app), base_url="http://testserver") as client:
        yield client
    fastapi_app.dependency_overrides.clear()


class QueuedEmails(list):
    """Stands in for the email task; records what would go to the broker."""

    def delay(self, *args):
        self.append(args)


@pytest.fixture(autouse=True)
def queued_emails(monkeypatch):
    queued = QueuedEmails()
    monkeypatch.setattr('storefront.services.notification.send_order_email', queued)
    return queued
