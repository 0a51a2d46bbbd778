"""Data Access Object (DAO) implementation for managing records in Redis

This module provides a Redis-based implementation of RecordBaseDAO for
ephemeral records of any kind (links, pastes, images, secrets).

Responsibilities:
    - Insert records with a native Redis TTL equal to their remaining lifetime;
    - Retrieve live records, double-checking their expiry;
    - Atomically take (GET + DEL in MULTI/EXEC) one-time records;
    - Count live records for administrative use;
    - Raise appropriate DAO exceptions.

Persisted layout:
    <prefix>:<kind>s:<shortcode>  ->  JSON document of RecordModel.to_dict()
                                      (PX = remaining lifetime in milliseconds)

Classes:
    RecordRedisDAO:
        DAO for storing and retrieving one record kind in a Redis datastore.

Example:
    >>> from seqre.models import LinkModel
    >>> from seqre.dao.redis import RecordRedisDAO

    >>> dao = RecordRedisDAO(LinkModel, prefix="seqre:dev")
    >>> dao.insert(link)
    <RecordRedisDAO>

    >>> dao.get(link.shortcode).url
    'https://example.com/page'
    >>> dao.take(link.shortcode).url
    'https://example.com/page'
    >>> dao.exists(link.shortcode)
    False
"""

import json
import logging
from datetime import datetime, UTC

from beartype import beartype

from seqre.models import RecordModel
from seqre.dao.base import RecordBaseDAO, RecordPredicate
from seqre.dao.redis.mixins import RedisClientMixin
from seqre.dao.redis.helpers import handle_redis_connection_error
from seqre.dao.exceptions import RecordAlreadyExistsError, RecordNotFoundError, DataStoreError
from seqre.utils.shortener import validate_shortcode


logger = logging.getLogger(__name__)

SCAN_BATCH = 500
MGET_BATCH = 100


class RecordRedisDAO(RedisClientMixin, RecordBaseDAO):
    """Redis-based Data Access Object (DAO) for one record kind

    This class implements the RecordBaseDAO interface using Redis as a data store.

    Attributes:
        model (type[RecordModel]):
            Record class stored by this DAO.
        redis (redis.Redis):
            Redis client used to communicate with the Redis datastore (see RedisClientMixin).
        keys (RedisKeySchema):
            Key schema helper for generating namespaced Redis keys (see RedisClientMixin).

    Example:
        >>> dao = RecordRedisDAO(SecretModel, redis_host="localhost", prefix="seqre:test")
        >>> dao.insert(secret)
        <RecordRedisDAO>
        >>> dao.take(secret.shortcode).data
        'q1w2e3...'
        >>> dao.take(secret.shortcode)
        Traceback (most recent call last):
            ...
        seqre.dao.exceptions.RecordNotFoundError: Secret with code 'abc123' not found.
    """

    def __init__(self, model: type[RecordModel], **kwargs):
        """Initialize a Redis DAO for `model` records

        Args:
            model (type[RecordModel]):
                Record class to store (LinkModel, PasteModel, ImageModel or SecretModel).
            **kwargs:
                Redis connection parameters, see RedisClientMixin.
        """
        self.model = model
        super().__init__(**kwargs)

    def _key(self, shortcode: str) -> str:
        return self.keys.record_key(self.model.kind, validate_shortcode(shortcode))

    def _not_found(self, shortcode: str) -> RecordNotFoundError:
        return RecordNotFoundError(f"{self.model.kind.capitalize()} with code '{shortcode}' not found.")

    def _decode(self, raw: str | bytes) -> RecordModel:
        try:
            return self.model.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            raise DataStoreError(f'Corrupt {self.model.kind} record in Redis.') from e

    def _live(self, shortcode: str, raw: str | bytes | None) -> RecordModel:
        if raw is None:
            raise self._not_found(shortcode)

        record = self._decode(raw)
        # Redis expires keys on its own; this guards against clock skew between app and server
        if record.is_expired():
            raise self._not_found(shortcode)
        return record

    @handle_redis_connection_error
    @beartype
    def insert(self, record: RecordModel, **kwargs) -> 'RecordRedisDAO':
        """Insert a record into Redis

        The existence check and the write are a single SET NX command, so two
        concurrent inserts under the same short code can never both succeed
        and an existing record is never overwritten.

        Args:
            record (RecordModel):
                Record of this DAO's kind.
            **kwargs:
                Optional keyword arguments (for future use).

        Returns:
            RecordRedisDAO: self (for method chaining)

        Raises:
            RecordAlreadyExistsError:
                If a live record with the same short code exists.
            ValueError:
                If the record is already expired.
            DataStoreError:
                If a Redis connection issue occurs.
        """
        self._check_model(record)
        key = self._key(record.shortcode)

        ttl_ms = int(record.ttl().total_seconds() * 1000)
        if ttl_ms <= 0:
            raise ValueError(f"Record '{record.shortcode}' expired at {record.expires_at.isoformat()}.")

        created = self.redis.set(key, json.dumps(record.to_dict()), px=ttl_ms, nx=True)
        if not created:
            raise RecordAlreadyExistsError(f"{self.model.kind.capitalize()} with code '{record.shortcode}' already exists.")
        return self

    @handle_redis_connection_error
    @beartype
    def get(self, shortcode: str, **kwargs) -> RecordModel:
        """Retrieve a live record by short code without consuming it

        Raises:
            InvalidShortcodeError:
                If the short code is malformed.
            RecordNotFoundError:
                If the record is absent, expired or already consumed.
            DataStoreError:
                If Redis connectivity issues occur or the stored value is corrupt.
        """
        return self._live(shortcode, self.redis.get(self._key(shortcode)))

    @handle_redis_connection_error
    @beartype
    def take(self, shortcode: str, **kwargs) -> RecordModel:
        """Atomically retrieve and delete a record

        GET and DEL run inside one MULTI/EXEC transaction. Redis executes the
        transaction without interleaving other clients' commands, so only the
        first of several concurrent takers reads the value:

            (reader 1): MULTI, GET <key>, DEL <key>, EXEC  => (<record>, 1)
            (reader 2): MULTI, GET <key>, DEL <key>, EXEC  => (None, 0)

        Raises:
            InvalidShortcodeError:
                If the short code is malformed.
            RecordNotFoundError:
                If the record is absent, expired or already consumed.
            DataStoreError:
                If Redis connectivity issues occur or the stored value is corrupt.
        """
        key = self._key(shortcode)
        with self.redis.pipeline(transaction=True) as pipe:
            pipe.get(key)
            pipe.delete(key)
            raw, _ = pipe.execute()

        return self._live(shortcode, raw)

    @handle_redis_connection_error
    @beartype
    def delete(self, shortcode: str, **kwargs) -> bool:
        return bool(self.redis.delete(self._key(shortcode)))

    @handle_redis_connection_error
    @beartype
    def exists(self, shortcode: str, **kwargs) -> bool:
        """Check for a live record without consuming it

        Agrees with get(): a key Redis still holds past its record's
        expires_at (app clock ahead of the server) is reported absent.
        """
        try:
            self._live(shortcode, self.redis.get(self._key(shortcode)))
        except RecordNotFoundError:
            return False
        return True

    @handle_redis_connection_error
    def count(self, predicate: RecordPredicate | None = None, **kwargs) -> int:
        """Count live records of this kind

        Keys are enumerated with SCAN (non-blocking for the server) and read
        back in MGET batches. Keys expiring between the two steps are skipped.

        Args:
            predicate (RecordPredicate | None):
                Only count records for which the predicate returns True.

        Returns:
            int: number of matching live records.

        Example:
            >>> dao.count(lambda record: record.encrypted)
            12
        """
        keys = list(self.redis.scan_iter(match=self.keys.record_pattern(self.model.kind), count=SCAN_BATCH))
        now = datetime.now(UTC)

        total = 0
        for start in range(0, len(keys), MGET_BATCH):
            for raw in self.redis.mget(keys[start : start + MGET_BATCH]):
                if raw is None:
                    continue
                try:
                    record = self._decode(raw)
                except DataStoreError:
                    logger.warning('Skipping corrupt record while counting.', extra={'kind': str(self.model.kind)})
                    continue
                if record.is_expired(now):
                    continue
                if predicate is None or predicate(record):
                    total += 1
        return total
