"""Helpers shared by the Redis DAOs

Functions:
    connection_label(client) -> str:
        `host:port/db` of the server a client talks to.
    handle_redis_connection_error(method):
        Translate connectivity failures raised by redis-py into DataStoreError.
"""

import logging
import functools
from collections.abc import Callable
from typing import Any

import redis

from seqre.dao.exceptions import DataStoreError


__all__ = ['CONNECTIVITY_ERRORS', 'connection_label', 'handle_redis_connection_error']

logger = logging.getLogger(__name__)

# Raised by redis-py when the server is unreachable or stops answering
CONNECTIVITY_ERRORS = (redis.exceptions.ConnectionError, redis.exceptions.TimeoutError)


def connection_label(client: redis.Redis) -> str:
    info = client.connection_pool.connection_kwargs
    return f"{info.get('host')}:{info.get('port')}/{info.get('db')}"


def handle_redis_connection_error[F: Callable[..., Any]](method: F) -> F:
    """Turn connectivity errors of a DAO method into DataStoreError

    The wrapped method must belong to an object exposing its client as
    `self.redis` (see RedisClientMixin). Other exceptions pass through.

    Example:
        >>> @handle_redis_connection_error
        ... def exists(self, shortcode):
        ...     return self.redis.exists(shortcode)
    """

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except CONNECTIVITY_ERRORS as e:
            where = connection_label(self.redis)
            logger.error('Redis is unreachable.', extra={'redis': where, 'operation': method.__qualname__})
            raise DataStoreError(f"Can't connect to Redis at {where}.") from e

    return wrapper
