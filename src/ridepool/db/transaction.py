"""Scoped unit of work with automatic commit/rollback.

Every write path goes through ``transaction`` so partial state is never
left behind, even when the surrounding task is cancelled.
"""

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy.orm import Session

from .database import BEGIN_MODE_OPTION


@contextmanager
def transaction(session: Session) -> Generator[Session]:
    """Run the block as one write unit of work.

    The write lock is requested when the transaction begins, so concurrent
    units serialize at BEGIN and each one reads the state the previous one
    committed. Enter this before the session issues any statement.

    Example:
        with session_factory() as session, transaction(session):
            ride_request_repo.mark_accepted("rr_1", driver_id="d1")
            ride_repo.add_passenger("ride_1", destination, path)
        # Committed if the block returns, rolled back otherwise

    Raises:
        Any exception raised within the context (after rollback)
    """
    try:
        session.connection(execution_options={BEGIN_MODE_OPTION: "IMMEDIATE"})
        yield session
        session.commit()
    except BaseException:
        session.rollback()
        raise
