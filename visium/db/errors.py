"""Map storage driver exceptions onto the typed error taxonomy."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import structlog
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from visium.kernel.errors import ConflictError, StorageError

logger = structlog.get_logger()


@contextmanager
def translate_storage_errors(operation: str) -> Iterator[None]:
    """Re-raise driver errors as ConflictError / StorageError.

    Wrap the whole unit of work so the session has already rolled back by the
    time the error is translated. Nothing here retries.
    """
    try:
        yield
    except IntegrityError as exc:
        logger.warning("Storage constraint violated", operation=operation, error=str(exc.orig))
        raise ConflictError(
            message="Conflicts with an existing record",
            code="storage.conflict",
            meta={"operation": operation},
        ) from exc
    except (OperationalError, PoolTimeoutError, TimeoutError) as exc:
        logger.error("Storage unavailable", operation=operation, error=str(exc))
        raise StorageError(meta={"operation": operation}) from exc
    except DBAPIError as exc:
        logger.error("Storage call failed", operation=operation, error=str(exc))
        raise StorageError(message="Storage call failed", meta={"operation": operation}) from exc
