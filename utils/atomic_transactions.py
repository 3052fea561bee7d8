"""Atomic transaction utilities for wallet and order operations"""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy.orm import Session

from database import SessionLocal

logger = logging.getLogger(__name__)


@contextmanager
def atomic_transaction(session: Optional[Session] = None) -> Generator[Session, None, None]:
    """
    Context manager for atomic database transactions with proper rollback.

    With a provided session, nested uses are tracked and only the outermost
    block commits; any error rolls the whole unit back and propagates.
    Without one, a fresh session is opened and closed around the block.
    """
    if session is None:
        session = SessionLocal()
        try:
            yield session
            session.commit()
            logger.debug("Sync atomic transaction committed successfully")
        except Exception as e:
            session.rollback()
            logger.error(f"Sync transaction rolled back due to error: {e}")
            raise
        finally:
            session.close()
        return

    transaction_depth = getattr(session, "_atomic_transaction_depth", 0)
    setattr(session, "_atomic_transaction_depth", transaction_depth + 1)
    try:
        yield session
        # For nested transactions, let the outermost handle commit
        if transaction_depth == 0:
            session.commit()
            logger.debug("Outermost sync transaction committed successfully")
    except Exception as e:
        # Only the outermost block rolls back so nested handlers see one rollback
        if transaction_depth == 0:
            session.rollback()
            logger.warning(f"Sync transaction rolled back: {type(e).__name__}: {e}")
        raise
    finally:
        setattr(session, "_atomic_transaction_depth", transaction_depth)
