"""
Service base class and unit-of-work helper.

Each public service method that mutates state is one unit of work: it runs
inside a single transaction that is committed on success and rolled back on
any error. Transient database failures are retried with exponential backoff.
"""
import functools
import logging

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from lucia_hrms.core.config import settings
from lucia_hrms.core.exceptions import DatabaseError, TransientDatabaseError


class BaseService:
    def __init__(self, db: Session):
        self.db = db
        self._logger = logging.getLogger(self.__class__.__module__)


def transactional(func):
    """
    Run a service method as one committed unit of work.

    OperationalError (lost connection, lock timeout) is retried up to
    settings.db_retry_attempts times; the session is rolled back before every
    retry so each attempt starts from the persisted state.
    """
    @functools.wraps(func)
    def wrapper(self, *args, **kwargs):
        retrying = Retrying(
            stop=stop_after_attempt(settings.db_retry_attempts),
            wait=wait_exponential(multiplier=0.1, max=2),
            retry=retry_if_exception_type(OperationalError),
            reraise=True,
        )
        try:
            for attempt in retrying:
                with attempt:
                    try:
                        result = func(self, *args, **kwargs)
                        self.db.commit()
                    except Exception:
                        self.db.rollback()
                        raise
            return result
        except OperationalError as e:
            self._logger.error(f"Transient database failure in {func.__name__}: {e}", exc_info=True)
            raise TransientDatabaseError() from e
        except IntegrityError as e:
            self._logger.error(f"Integrity violation in {func.__name__}: {e}", exc_info=True)
            raise DatabaseError() from e
        except SQLAlchemyError as e:
            self._logger.error(f"Database error in {func.__name__}: {e}", exc_info=True)
            raise DatabaseError() from e

    return wrapper
