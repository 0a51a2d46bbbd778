"""Redis key layout

    [<prefix>:]<kind>s:<shortcode>

Each record kind has its own namespace: "links:abc123" and "secrets:abc123"
are unrelated records. The optional prefix, normally `<app name>:<app env>`
(e.g. "seqre:prod"), lets several deployments share one Redis database.
"""

from seqre.models import RecordKind


__all__ = ['RedisKeySchema']


class RedisKeySchema:
    """Build namespaced Redis keys for records

    Example:
        >>> RedisKeySchema('seqre:dev').record_key(RecordKind.SECRET, 'abc123')
        'seqre:dev:secrets:abc123'
    """

    SEPARATOR = ':'

    def __init__(self, prefix: str | None = None):
        if prefix is not None and not isinstance(prefix, str):
            raise TypeError(f'Prefix must be of type string (given type: {type(prefix)}).')
        self.prefix = prefix

    def _join(self, *parts: str) -> str:
        if self.prefix is not None:
            parts = (self.prefix, *parts)
        return self.SEPARATOR.join(parts)

    @staticmethod
    def namespace(kind: RecordKind) -> str:
        return f'{RecordKind(kind)}s'

    def record_key(self, kind: RecordKind, shortcode: str) -> str:
        return self._join(self.namespace(kind), shortcode)

    def record_pattern(self, kind: RecordKind) -> str:
        # Short codes never contain glob metacharacters, so '*' is the only wildcard
        return self._join(self.namespace(kind), '*')
