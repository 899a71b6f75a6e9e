"""Test configuration."""
import os
from pathlib import Path
from typing import Generator

import pytest
from dotenv import load_dotenv
from faker import Faker
from sqlalchemy.orm import Session, sessionmaker

# Set test environment before any imports
os.environ["ENV"] = "test"

# Load test environment variables
test_env_path = Path(__file__).parents[3] / ".env.test"
load_dotenv(test_env_path)

# Import after environment setup
from vocabmaster.config import ensure_directories
from vocabmaster.models.base import Base, init_db, make_engine
from vocabmaster.models.learning_models import UserData
from vocabmaster.services.persistence import DatabasePersistenceService, DemoPersistenceService
from vocabmaster.services.storage import MemoryStorage

fake = Faker()


@pytest.fixture(autouse=True)
def setup_test_environment():
    """Set up test environment before each test."""
    # Ensure test directories exist
    ensure_directories()

    yield


@pytest.fixture
def persistence() -> DemoPersistenceService:
    """Create a demo backend over memory storage."""
    return DemoPersistenceService(MemoryStorage()).init()


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create a session on a fresh in-memory database."""
    engine = make_engine("sqlite://")
    init_db(bind=engine)
    db = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db_persistence(db: Session) -> DatabasePersistenceService:
    """Create a database backend."""
    return DatabasePersistenceService(db)


@pytest.fixture
def student(persistence: DemoPersistenceService) -> UserData:
    """Create a test student in the demo backend."""
    return persistence.create_user(fake.name(), email=fake.email())
