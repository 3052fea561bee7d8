"""
Shared fixtures for the GameVault marketplace test suite

Every test gets its own in-memory SQLite database so services can commit
freely.
"""

import os

# Must be set before config is imported
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["ADMIN_NOTIFICATIONS_ENABLED"] = "false"

import logging
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.orm import sessionmaker

from database import build_engine
from models import Base
from services.admin_notifications import AdminNotificationService
from tests.marketplace_test_foundation import TestDataFactory

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@pytest.fixture
def test_engine():
    """Fresh in-memory database per test"""
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(test_engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def factory(db_session):
    return TestDataFactory(db_session)


@pytest.fixture
def mock_bot():
    bot = AsyncMock()
    bot.send_message = AsyncMock(return_value=None)
    return bot


@pytest.fixture
def notifier(mock_bot):
    return AdminNotificationService(bot=mock_bot, admin_ids=[1001, 1002], enabled=True)
