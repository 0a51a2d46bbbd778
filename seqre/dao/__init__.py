from seqre.dao.base import RecordBaseDAO
from seqre.dao.memory import RecordMemoryDAO
from seqre.dao.redis import RecordRedisDAO


__all__ = [
    'RecordBaseDAO',
    'RecordMemoryDAO',
    'RecordRedisDAO',
]
