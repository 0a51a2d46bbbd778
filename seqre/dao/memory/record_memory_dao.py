"""Data Access Object (DAO) implementation keeping records in process memory

Records live in a dictionary guarded by a lock. There is no native TTL:
every read checks `expires_at` (lazy expiry) and purge_expired() reclaims
memory for records nobody reads again.

Nothing survives a restart; use RecordRedisDAO where durability matters.

Classes:
    RecordMemoryDAO:
        DAO for storing and retrieving one record kind in memory.
"""

import logging
import threading
from datetime import datetime, UTC

from beartype import beartype

from seqre.models import RecordModel
from seqre.dao.base import RecordBaseDAO, RecordPredicate
from seqre.dao.exceptions import RecordAlreadyExistsError, RecordNotFoundError
from seqre.utils.shortener import validate_shortcode


logger = logging.getLogger(__name__)


class RecordMemoryDAO(RecordBaseDAO):
    """In-memory Data Access Object (DAO) for one record kind

    Every operation holds the DAO lock for its whole duration, which makes
    take() an atomic read-and-delete.

    Example:
        >>> dao = RecordMemoryDAO(PasteModel)
        >>> dao.insert(paste).get(paste.shortcode).content
        'print("hello")'
    """

    def __init__(self, model: type[RecordModel]):
        self.model = model
        self._records: dict[str, RecordModel] = {}
        self._lock = threading.Lock()

    def _not_found(self, shortcode: str) -> RecordNotFoundError:
        return RecordNotFoundError(f"{self.model.kind.capitalize()} with code '{shortcode}' not found.")

    def _live(self, shortcode: str, now: datetime) -> RecordModel | None:
        # Caller must hold the lock
        record = self._records.get(shortcode)
        if record is not None and record.is_expired(now):
            del self._records[shortcode]
            return None
        return record

    @beartype
    def insert(self, record: RecordModel, **kwargs) -> 'RecordMemoryDAO':
        self._check_model(record)
        shortcode = validate_shortcode(record.shortcode)

        now = datetime.now(UTC)
        if record.is_expired(now):
            raise ValueError(f"Record '{shortcode}' expired at {record.expires_at.isoformat()}.")

        with self._lock:
            if self._live(shortcode, now) is not None:
                raise RecordAlreadyExistsError(f"{self.model.kind.capitalize()} with code '{shortcode}' already exists.")
            self._records[shortcode] = record
        return self

    @beartype
    def get(self, shortcode: str, **kwargs) -> RecordModel:
        validate_shortcode(shortcode)
        with self._lock:
            record = self._live(shortcode, datetime.now(UTC))
        if record is None:
            raise self._not_found(shortcode)
        return record

    @beartype
    def take(self, shortcode: str, **kwargs) -> RecordModel:
        validate_shortcode(shortcode)
        with self._lock:
            record = self._live(shortcode, datetime.now(UTC))
            if record is None:
                raise self._not_found(shortcode)
            del self._records[shortcode]
        return record

    @beartype
    def delete(self, shortcode: str, **kwargs) -> bool:
        validate_shortcode(shortcode)
        with self._lock:
            return self._records.pop(shortcode, None) is not None

    @beartype
    def exists(self, shortcode: str, **kwargs) -> bool:
        validate_shortcode(shortcode)
        with self._lock:
            return self._live(shortcode, datetime.now(UTC)) is not None

    def count(self, predicate: RecordPredicate | None = None, **kwargs) -> int:
        now = datetime.now(UTC)
        with self._lock:
            records = [record for record in self._records.values() if not record.is_expired(now)]
        return sum(1 for record in records if predicate is None or predicate(record))

    def purge_expired(self) -> int:
        """Drop expired records, returning how many were removed."""
        now = datetime.now(UTC)
        with self._lock:
            expired = [shortcode for shortcode, record in self._records.items() if record.is_expired(now)]
            for shortcode in expired:
                del self._records[shortcode]

        if expired:
            logger.debug('Purged expired records.', extra={'kind': str(self.model.kind), 'count': len(expired)})
        return len(expired)
