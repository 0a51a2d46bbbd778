from seqre.dao.redis.redis_key_schema import RedisKeySchema
from seqre.dao.redis.mixins import RedisClientMixin
from seqre.dao.redis.record_redis_dao import RecordRedisDAO


__all__ = [
    'RedisKeySchema',
    'RecordRedisDAO',
    'RedisClientMixin',
]
