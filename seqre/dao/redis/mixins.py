"""Redis client ownership for DAOs

RedisClientMixin gives a DAO two attributes:

    redis   the client, injected or built from connection parameters
    keys    a RedisKeySchema bound to the DAO's prefix

and PINGs the server on construction, so a misconfigured deployment fails
at startup rather than on its first request.

Example:
    >>> class RecordRedisDAO(RedisClientMixin, RecordBaseDAO):
    ...     ...
    >>> shared = redis.Redis(host='localhost', decode_responses=True)
    >>> links = RecordRedisDAO(LinkModel, redis_client=shared, prefix='seqre:prod')
    >>> secrets = RecordRedisDAO(SecretModel, redis_client=shared, prefix='seqre:prod')
"""

import redis

from seqre.dao.exceptions import DataStoreError
from seqre.dao.redis.helpers import CONNECTIVITY_ERRORS, connection_label
from seqre.dao.redis.redis_key_schema import RedisKeySchema


class RedisClientMixin:
    """Attach a Redis client and key schema to a DAO

    Attributes:
        redis (redis.Redis):
            Client used for every command of the DAO.
        keys (RedisKeySchema):
            Key builder applying the DAO's prefix.
    """

    def __init__(
        self,
        redis_host: str = 'localhost',
        redis_port: int = 6379,
        redis_db: int = 0,
        redis_decode_responses: bool = True,
        redis_username: str | None = None,
        redis_password: str | None = None,
        redis_client: redis.Redis | None = None,
        prefix: str | None = None,
    ):
        """Connect (or reuse a client) and check the server answers

        Args:
            redis_host, redis_port, redis_db, redis_username, redis_password:
                Connection parameters. Ignored when `redis_client` is given.
            redis_decode_responses (bool):
                Return str instead of bytes. The DAOs expect True.
            redis_client (redis.Redis | None):
                Existing client. Hand the same client to the DAO of every
                record kind to share one connection pool.
            prefix (str | None):
                Key namespace, usually `<app name>:<app env>`.

        Raises:
            DataStoreError:
                If the server does not answer the PING.
        """
        if redis_client is None:
            redis_client = redis.Redis(
                host=redis_host,
                port=int(redis_port),
                db=int(redis_db),
                decode_responses=redis_decode_responses,
                username=redis_username,
                password=redis_password,
            )

        self.redis = redis_client
        self.keys = RedisKeySchema(prefix=prefix)
        self._healthcheck()

    def _healthcheck(self, raise_error: bool = True) -> bool:
        """PING the server; with `raise_error` off, report failure as False."""
        try:
            self.redis.ping()
        except CONNECTIVITY_ERRORS as e:
            if not raise_error:
                return False
            raise DataStoreError(
                f"Can't connect to Redis at {connection_label(self.redis)}. Check the provided configuration parameters."
            ) from e
        return True
