"""Errors raised by the data access layer

Classes:
    DAOError:
        Base of every data store error.
    RecordNotFoundError:
        No live record under the short code. Absent, expired and already
        consumed records all raise it, and callers cannot tell them apart.
    RecordAlreadyExistsError:
        A live record already holds the short code; nothing was written.
    DataStoreError:
        The store itself failed (unreachable, timed out, corrupt value).

Example:
    >>> try:
    ...     secrets.take('abc123')
    ... except RecordNotFoundError:
    ...     ...  # never existed, expired, or someone else read it first
"""

from seqre.exceptions import SeqreError


class DAOError(SeqreError):
    """Base of every data store error."""

    error_code = 'dao:dao_error'


class RecordNotFoundError(DAOError):
    """Raised when no live record exists under a short code."""

    error_code = 'dao:record_not_found_error'


class RecordAlreadyExistsError(DAOError):
    """Raised when inserting under a short code that a live record holds."""

    error_code = 'dao:record_already_exists_error'


class DataStoreError(DAOError):
    """Raised when the data store cannot serve a request.

    Connectivity loss, timeouts and undecodable stored values end up here;
    no partial result is ever returned alongside it.
    """

    error_code = 'dao:data_store_error'
