import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from schoollib.core.config import settings
from schoollib.core.database import get_db
from schoollib.main import app
from schoollib.schemas.book import BookCreate
from schoollib.schemas.student import StudentCreate
from schoollib.services.book_service import BookService
from schoollib.services.migration_service import run_migrations
from schoollib.services.student_service import StudentService


@pytest.fixture
async def engine():
    # One shared in-memory database per test
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session_factory(engine):
    factory = sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )
    async with factory() as session:
        await run_migrations(session)
    return factory


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def library_pin(monkeypatch):
    monkeypatch.setattr(settings, "LIBRARY_PIN", "4321")
    return "4321"


@pytest.fixture
def make_book(db):
    counter = {"n": 0}

    async def _make_book(**overrides):
        counter["n"] += 1
        fields = {
            "barcode": f"BK-{counter['n']:04d}",
            "title": f"Book {counter['n']}",
            "category": "Fiction",
            "quantity": 5,
            "price": 850.0,
        }
        fields.update(overrides)
        return await BookService.create_book(db, BookCreate(**fields))

    return _make_book


@pytest.fixture
def make_student(db):
    counter = {"n": 0}

    async def _make_student(**overrides):
        counter["n"] += 1
        fields = {
            "student_id": f"ADM{counter['n']:03d}",
            "name": f"Student {counter['n']}",
            "class_name": "7B",
        }
        fields.update(overrides)
        return await StudentService.create_student(db, StudentCreate(**fields))

    return _make_student
