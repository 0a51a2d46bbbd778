"""Abstract base class for record data access objects (DAOs).

This class establishes a consistent contract for all record DAO
implementations, regardless of the underlying storage mechanism (e.g.,
Redis or process memory). One DAO instance serves one record kind.

Responsibilities:
    - Insert records with a TTL derived from their expiry.
    - Retrieve live records, never returning expired ones.
    - Atomically take (read and delete) a record for one-time disclosure.
    - Delete records idempotently.
    - Standardize error handling across data store implementations.

Example:
    Typical usage with a datastore-specific implementation:

        >>> from seqre.models import SecretModel
        >>> from seqre.dao.memory import RecordMemoryDAO

        >>> dao = RecordMemoryDAO(SecretModel)
        >>> dao.insert(secret)
        <RecordMemoryDAO>
        >>> dao.take(secret.shortcode) == secret
        True
        >>> dao.exists(secret.shortcode)
        False
"""

from abc import ABC, abstractmethod
from collections.abc import Callable

from seqre.models import RecordModel


type RecordPredicate = Callable[[RecordModel], bool]


class RecordBaseDAO(ABC):
    """Interface for record data access objects (DAOs).

    Attributes:
        model (type[RecordModel]):
            Record class stored by this DAO; also selects the key namespace.

    Methods:
        insert(record: RecordModel, **kwargs) -> RecordBaseDAO:
            Insert a new record with TTL `record.expires_at - now`.
            Raises RecordAlreadyExistsError if a live record holds the short code.
            Raises DataStoreError on connection or write failure.

        get(shortcode: str, **kwargs) -> RecordModel:
            Retrieve a live record without consuming it.
            Raises RecordNotFoundError if absent, expired or consumed.

        take(shortcode: str, **kwargs) -> RecordModel:
            Atomically retrieve and delete a live record.
            Raises RecordNotFoundError if absent, expired or consumed.

        delete(shortcode: str, **kwargs) -> bool:
            Delete a record. Deleting an absent record is not an error.

        exists(shortcode: str, **kwargs) -> bool:
            Check whether a live record exists, without consuming it.

        count(predicate: RecordPredicate | None = None, **kwargs) -> int:
            Count live records, optionally filtered.

    All methods raise InvalidShortcodeError for malformed short codes.

    Subclassing:
        Datastore-specific implementations (e.g., RecordRedisDAO or
        RecordMemoryDAO) must extend this class and implement all
        abstract methods.
    """

    model: type[RecordModel]

    def _check_model(self, record: RecordModel) -> None:
        if not isinstance(record, self.model):
            raise TypeError(f'{type(self).__name__} stores {self.model.__name__} records (given type: {type(record).__name__}).')

    @abstractmethod
    def insert(self, record: RecordModel, **kwargs) -> 'RecordBaseDAO':
        """Insert a new record into the data store.

        Args:
            record (RecordModel):
                The record to be inserted.

            **kwargs:
                Additional keyword arguments, used by data store.

        Returns:
            RecordBaseDAO: self (for method chaining)

        Raises:
            RecordAlreadyExistsError:
                If a live record with the same short code already exists.

            ValueError:
                If the record is already expired.

            DataStoreError:
                If there is an error in the data store.
        """
        pass

    @abstractmethod
    def get(self, shortcode: str, **kwargs) -> RecordModel:
        """Retrieve a live record by its short code without consuming it.

        Raises:
            RecordNotFoundError:
                If no live record with the given short code exists.

            DataStoreError:
                If there is an error in the data store.
        """
        pass

    @abstractmethod
    def take(self, shortcode: str, **kwargs) -> RecordModel:
        """Atomically retrieve and delete a live record.

        Of any number of concurrent callers, exactly one receives the record.

        Raises:
            RecordNotFoundError:
                If no live record with the given short code exists.

            DataStoreError:
                If there is an error in the data store.
        """
        pass

    @abstractmethod
    def delete(self, shortcode: str, **kwargs) -> bool:
        """Delete a record by its short code.

        Returns:
            bool: True if a record was removed, False if it was already absent.

        Raises:
            DataStoreError:
                If there is an error in the data store.
        """
        pass

    @abstractmethod
    def exists(self, shortcode: str, **kwargs) -> bool:
        pass

    @abstractmethod
    def count(self, predicate: RecordPredicate | None = None, **kwargs) -> int:
        """Count live records.

        Args:
            predicate (RecordPredicate | None):
                Only count records for which the predicate returns True.

        Raises:
            DataStoreError:
                If there is an error in the data store.
        """
        pass
