from seqre.dao.memory.record_memory_dao import RecordMemoryDAO


__all__ = [
    'RecordMemoryDAO',
]
