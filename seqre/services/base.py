"""Shared lifecycle of every record kind

RecordService implements what all kinds have in common:

    - allocate a short code and store a new record, drawing a fresh code
      when the data store reports a collision;
    - retrieve a record, consuming it atomically when the disclosure policy
      says so;
    - peek at or check a record without consuming it;
    - delete and count records.

Kind-specific services subclass it and add a `create()` method validating
their payload.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, UTC
from typing import Any

from seqre.constants import TTL, ShortCode
from seqre.models import RecordModel, RecordSummary
from seqre.policy import DisclosurePolicy, consumes_on_read, policy_for
from seqre.dao.base import RecordBaseDAO, RecordPredicate
from seqre.dao.exceptions import RecordAlreadyExistsError
from seqre.exceptions import EncryptionError
from seqre.utils.crypto import is_envelope
from seqre.utils.shortener import generate_shortcode


logger = logging.getLogger(__name__)


class RecordService:
    """Create, disclose and delete records of one kind

    Attributes:
        model (type[RecordModel]):
            Record class handled by the service (set by subclasses).
        dao (RecordBaseDAO):
            Data store for `model` records.
        ttl (timedelta):
            Lifetime of newly created records. Defaults to 7 days.

    Methods:
        retrieve(shortcode: str) -> RecordModel:
            Return a live record, consuming it if the disclosure policy says so.
        peek(shortcode: str) -> RecordSummary:
            Describe a live record without consuming it.
        exists(shortcode: str) -> bool:
            Check for a live record without consuming it.
        delete(shortcode: str) -> None:
            Remove a record. Idempotent.
        count(predicate: RecordPredicate | None = None) -> int:
            Count live records.
    """

    model: type[RecordModel]

    def __init__(
        self,
        dao: RecordBaseDAO,
        ttl: timedelta = TTL.DEFAULT,
        shortcode_factory: Callable[[], str] = generate_shortcode,
    ):
        if dao.model is not self.model:
            raise TypeError(f'{type(self).__name__} requires a DAO for {self.model.__name__} records (given: {dao.model.__name__}).')
        if ttl <= timedelta(0):
            raise ValueError(f'TTL must be positive (given value: {ttl}).')

        self.dao = dao
        self.ttl = ttl
        self._shortcodes = shortcode_factory

    def _store(self, **fields: Any) -> RecordModel:
        """Build a record from `fields` under a fresh short code and insert it

        Raises:
            RecordAlreadyExistsError:
                If every one of ShortCode.MAX_ATTEMPTS drawn codes collided.
            DataStoreError:
                If the data store fails.
        """
        for attempt in range(1, ShortCode.MAX_ATTEMPTS + 1):
            now = datetime.now(UTC)
            record = self.model(shortcode=self._shortcodes(), created_at=now, expires_at=now + self.ttl, **fields)
            try:
                self.dao.insert(record)
            except RecordAlreadyExistsError:
                logger.warning('Short code collision, drawing a new code.', extra={'kind': str(self.model.kind), 'attempt': attempt})
                continue

            logger.info(
                'Record created.',
                extra={'kind': str(self.model.kind), 'encrypted': record.encrypted, 'onetime': record.onetime},
            )
            return record

        logger.error('Could not allocate a free short code.', extra={'kind': str(self.model.kind), 'attempts': ShortCode.MAX_ATTEMPTS})
        raise RecordAlreadyExistsError(f'No free short code found after {ShortCode.MAX_ATTEMPTS} attempts.')

    @staticmethod
    def _require_envelope(value: str, what: str) -> None:
        if not is_envelope(value):
            raise EncryptionError(f'{what} must be a base64 encoded envelope (nonce, ciphertext and tag).')

    def consumes(self, record: RecordModel) -> bool:
        return consumes_on_read(record)

    def _fetch(self, shortcode: str) -> tuple[RecordModel, bool]:
        """Read a record, applying the disclosure policy

        A record that must be consumed is always returned by the data
        store's atomic take(), never by a plain get(): of several concurrent
        readers only the one whose take() succeeds sees the payload, the
        others get RecordNotFoundError.

        Returns:
            tuple[RecordModel, bool]: the record and whether it was consumed.
        """
        if policy_for(self.model.kind) is DisclosurePolicy.ALWAYS_CONSUME:
            record = self.dao.take(shortcode)
        else:
            record = self.dao.get(shortcode)
            if not self.consumes(record):
                return record, False
            record = self.dao.take(shortcode)

        logger.info('Record consumed.', extra={'kind': str(self.model.kind)})
        return record, True

    def retrieve(self, shortcode: str) -> RecordModel:
        """Return a live record, consuming it if the disclosure policy says so

        Raises:
            InvalidShortcodeError:
                If the short code is malformed.
            RecordNotFoundError:
                If the record is absent, expired or already consumed.
            DataStoreError:
                If the data store fails.
        """
        record, _ = self._fetch(shortcode)
        return record

    def peek(self, shortcode: str) -> RecordSummary:
        """Describe a live record (without its payload) without consuming it."""
        return RecordSummary.from_record(self.dao.get(shortcode))

    def exists(self, shortcode: str) -> bool:
        return self.dao.exists(shortcode)

    def delete(self, shortcode: str) -> None:
        if self.dao.delete(shortcode):
            logger.info('Record deleted.', extra={'kind': str(self.model.kind)})

    def count(self, predicate: RecordPredicate | None = None) -> int:
        return self.dao.count(predicate)
