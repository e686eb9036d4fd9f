# backend/app/services/base.py
"""
Base Service Pattern for Coursehub chat

Services hold the business rules and own the transaction boundary; the
real-time gateway and HTTP routes call them from worker threads through
a short-lived session, so everything here is synchronous.
"""

from contextlib import contextmanager
from functools import wraps
import logging
import time
from typing import Any, Callable, Iterator, TypeVar, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import DomainException, RepositoryException, ServiceException
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

SLOW_OPERATION_SECONDS = 1.0


class BaseService:
    """
    Base class for all service layer components.

    Provides:
    - Database session and per-service logger
    - ``transaction()`` commit/rollback boundary
    - ``measure_operation`` timings exported to Prometheus
    """

    def __init__(self, db: Session):
        self.db = db
        self.logger = logging.getLogger(self.__class__.__name__)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Context manager for database transactions.

        Usage:
            with self.transaction():
                message = self.message_repository.create(...)
                self.read_state_service.on_message_created(message, members)
                # commit happens on exit, rollback on any error

        Raises:
            ServiceException: the store rejected the write
        """
        try:
            yield self.db
            self.db.commit()
            self.logger.debug("Transaction committed successfully")
        except (SQLAlchemyError, RepositoryException) as e:
            self.logger.error(f"Transaction failed: {str(e)}")
            self.db.rollback()
            raise ServiceException(f"Database operation failed: {str(e)}") from e
        except Exception:
            self.db.rollback()
            raise

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """
        Decorator timing a service method.

        Usage:
            @BaseService.measure_operation("send_message")
            def send_message(self, sender_id, conversation_id, content): ...

        Domain errors are recorded under their ``code`` so rejected sends,
        forbidden joins and the like show up separately in metrics.
        """

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self, *args, **kwargs):
                start_time = time.time()
                error_type = None
                try:
                    return func(self, *args, **kwargs)
                except DomainException as e:
                    error_type = e.code
                    raise
                except Exception as e:
                    error_type = type(e).__name__
                    raise
                finally:
                    self._finish_measure(operation_name, time.time() - start_time, error_type)

            return cast(F, wrapper)

        return decorator

    def _finish_measure(self, operation_name: str, elapsed: float, error_type) -> None:
        # Only log if it's actually slow
        if elapsed > SLOW_OPERATION_SECONDS:
            self.logger.warning(f"Slow operation detected: {operation_name} took {elapsed:.2f}s")

        try:
            prometheus_metrics.record_service_operation(
                service=self.__class__.__name__,
                operation=operation_name,
                duration=elapsed,
                status="success" if error_type is None else "error",
                error_type=error_type,
            )
        except Exception as exc:
            # Don't let metrics collection break the operation
            self.logger.debug(f"Metric recording failed for {operation_name}: {exc}")

    def log_operation(self, operation: str, **context) -> None:
        """Log an operation with structured context."""
        self.logger.info(f"Operation: {operation}", extra={"operation": operation, **context})
