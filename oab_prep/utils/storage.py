"""
Key-value document storage on top of SQLAlchemy
"""
import json
import logging
from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from oab_prep.database import SessionLocal
from oab_prep.exceptions import PersistenceError
from oab_prep.models import StorageEntry

logger = logging.getLogger(__name__)


class KeyValueStorage:
    """
    JSON documents addressed by string keys

    Every write replaces the whole document under its key.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self._session_factory = session_factory

    def get(self, key: str) -> Optional[Any]:
        """
        Read and decode one document

        Raises:
            PersistenceError: storage unavailable or document not valid JSON
        """
        db = self._session_factory()
        try:
            entry = db.get(StorageEntry, key)
            if entry is None:
                return None
            return json.loads(entry.value)
        except (SQLAlchemyError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Failed to read '{key}': {str(e)}") from e
        finally:
            db.close()

    def set(self, key: str, value: Any) -> None:
        """
        Encode and write one document

        Raises:
            PersistenceError: storage unavailable
        """
        db = self._session_factory()
        try:
            serialized = json.dumps(value, ensure_ascii=False)
            entry = db.get(StorageEntry, key)
            if entry is None:
                db.add(StorageEntry(key=key, value=serialized))
            else:
                entry.value = serialized
            db.commit()
            logger.debug(f"Stored '{key}' ({len(serialized)} bytes)")
        except (SQLAlchemyError, TypeError, ValueError) as e:
            db.rollback()
            raise PersistenceError(f"Failed to write '{key}': {str(e)}") from e
        finally:
            db.close()
