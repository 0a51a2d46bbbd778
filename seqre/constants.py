import string
from datetime import timedelta
from enum import StrEnum


class TTL:
    """TTL durations."""

    # Lifetime of every stored record (7 days)
    DEFAULT = timedelta(days=7)


class ShortCode:
    """Short code allocation parameters."""

    LENGTH = 6
    # 64 symbols so that `byte % 64` maps uniformly onto the alphabet
    ALPHABET = string.ascii_lowercase + string.ascii_uppercase + string.digits + '-_'
    # Fresh codes drawn before a collision is reported to the caller
    MAX_ATTEMPTS = 5


class RateLimit:
    """Default per-IP token bucket parameters."""

    RATE = 2.0  # tokens per second
    BURST = 5
    IDLE_TTL = 600  # seconds before an idle bucket is evicted
    SHARDS = 16


class Limits:
    """Upper bounds on stored content."""

    PASTE_CONTENT = 1_048_576  # characters, not bytes
    PASTE_LANGUAGE = 50
    IMAGE_SIZE = 32 << 20  # 32 MiB


class Cleanup:
    """Orphaned image file sweep."""

    INTERVAL = 3600  # seconds between sweeps
    GRACE_PERIOD = 60  # files younger than this are never reaped


class ENV:
    """Environment variable names."""

    class App(StrEnum):
        APP_ENV = 'APP_ENV'
        APP_NAME = 'APP_NAME'
        LOG_LEVEL = 'LOG_LEVEL'
        CONFIG_FILE = 'SEQRE_CONFIG'
        REDIRECT_HOST = 'REDIRECT_HOST'
        BEHIND_PROXY = 'BEHIND_PROXY'
        STORE_BACKEND = 'STORE_BACKEND'

    class Redis(StrEnum):
        HOST = 'REDIS_HOST'
        PORT = 'REDIS_PORT'
        DB = 'REDIS_DB'
        USERNAME = 'REDIS_USERNAME'
        PASSWORD = 'REDIS_PASSWORD'  # noqa: S105

    class Images(StrEnum):
        UPLOAD_DIR = 'UPLOAD_DIR'
        CLEANUP_INTERVAL = 'CLEANUP_INTERVAL'
        CLEANUP_GRACE_PERIOD = 'CLEANUP_GRACE_PERIOD'

    class RateLimit(StrEnum):
        RATE = 'RATE_LIMIT_RATE'
        BURST = 'RATE_LIMIT_BURST'
        IDLE_TTL = 'RATE_LIMIT_IDLE_TTL'
