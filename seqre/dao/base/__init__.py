from seqre.dao.base.record_base_dao import RecordBaseDAO, RecordPredicate


__all__ = [
    'RecordBaseDAO',
    'RecordPredicate',
]
