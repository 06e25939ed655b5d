# ============================================================================
# Test Configuration & Fixtures
# ============================================================================
import os

# Point the app at SQLite before anything reads the settings
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")

import pytest
from typing import AsyncGenerator, Dict
from uuid import uuid4, UUID
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy import event
from sqlalchemy.pool import NullPool

from app.main import app
from app.core.database import Base, get_db
from app.core.security import create_access_token
from app.models.curriculum import Category, Subcategory, Question
from app.models.practice import PracticeSession

# Test database URL (use SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///./test.db"

# NullPool so no connection outlives the event loop of the test that opened it
test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    poolclass=NullPool,
)

# pysqlite defers BEGIN and breaks SAVEPOINT; emit BEGIN ourselves
@event.listens_for(test_engine.sync_engine, "connect")
def _disable_driver_begin(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None

@event.listens_for(test_engine.sync_engine, "begin")
def _emit_begin(conn):
    conn.exec_driver_sql("BEGIN")

test_session_maker = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

@pytest.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test"""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with test_session_maker() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

@pytest.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with overridden database"""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()

@pytest.fixture
def user_id() -> UUID:
    return uuid4()

@pytest.fixture
def auth_headers(user_id: UUID) -> Dict[str, str]:
    token = create_access_token({"sub": str(user_id)})
    return {"Authorization": f"Bearer {token}"}

@pytest.fixture
async def question_bank(db_session: AsyncSession) -> Dict:
    """
    One category with two topics.

    Percentages: 3 easy, 3 medium, 2 hard. Time and Work: 2 medium only.
    """
    category = Category(name="Quantitative Aptitude", slug="quantitative-aptitude")
    db_session.add(category)
    await db_session.flush()

    percentages = Subcategory(category_id=category.id, name="Percentages", slug="percentages")
    time_work = Subcategory(category_id=category.id, name="Time and Work", slug="time-and-work")
    db_session.add_all([percentages, time_work])
    await db_session.flush()

    layout = [
        (percentages, "easy", 3),
        (percentages, "medium", 3),
        (percentages, "hard", 2),
        (time_work, "medium", 2),
    ]
    questions = []
    for subcategory, difficulty, count in layout:
        for i in range(count):
            questions.append(Question(
                subcategory_id=subcategory.id,
                question_text=f"{subcategory.name} {difficulty} question {i + 1}",
                question_type="mcq",
                options=["10%", "20%", "25%", "40%"],
                correct_answer="20%",
                difficulty=difficulty,
            ))
    db_session.add_all(questions)
    await db_session.commit()

    return {
        "category": category,
        "percentages": percentages,
        "time_work": time_work,
        "questions": questions,
    }

@pytest.fixture
async def practice_session(db_session: AsyncSession, question_bank: Dict, user_id: UUID) -> PracticeSession:
    session = PracticeSession(
        user_id=user_id,
        category_id=question_bank["category"].id,
        config={
            "selected_subcategories": [
                str(question_bank["percentages"].id),
                str(question_bank["time_work"].id),
            ],
            "mode": "adaptive",
        },
        status="in_progress",
    )
    db_session.add(session)
    await db_session.commit()
    return session
