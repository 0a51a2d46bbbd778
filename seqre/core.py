"""Process-wide wiring of the disclosure store

build_core() constructs every long-lived component once, at process start:
the DAOs for the configured backend, the four record services, the rate
limiter and the cleanup worker. The HTTP layer receives the resulting
SeqreCore and passes its members to request handlers; nothing here lives
in module-level globals.

Example:
    >>> core = build_core(load_config()).start()
    >>> secret = core.secrets.create(seal('hello', key))
    >>> core.rate_limiter.check(client_ip(remote_addr, headers, core.settings.behind_proxy))
    >>> core.secrets.retrieve(secret.shortcode).data
    '...'
    >>> core.close()
"""

import logging
from dataclasses import dataclass, field

import redis

from seqre.models import ImageModel, LinkModel, PasteModel, RecordModel, SecretModel
from seqre.dao.base import RecordBaseDAO
from seqre.dao.memory import RecordMemoryDAO
from seqre.dao.redis import RecordRedisDAO
from seqre.services import CleanupWorker, ImageService, LinkService, PasteService, SecretService
from seqre.utils.config import Settings
from seqre.utils.crypto import share_url
from seqre.utils.logging import initialize_logging
from seqre.utils.ratelimit import RateLimiter


logger = logging.getLogger(__name__)


@dataclass
class SeqreCore:
    settings: Settings
    links: LinkService
    pastes: PasteService
    images: ImageService
    secrets: SecretService
    rate_limiter: RateLimiter
    cleanup: CleanupWorker
    daos: dict[str, RecordBaseDAO] = field(default_factory=dict)
    owns_redis: bool = False

    def share_url(self, record: RecordModel, key: bytes | None = None) -> str:
        """Public link for a record, with the key (if any) in the fragment."""
        return share_url(self.settings.redirect_host, record.kind, record.shortcode, key)

    def start(self) -> 'SeqreCore':
        self.cleanup.start()
        return self

    def close(self) -> None:
        """Stop the cleanup worker and release a Redis client built by build_core()."""
        self.cleanup.stop()
        if self.owns_redis:
            self.daos['link'].redis.close()
        logger.info('Shutting down.')


def _build_daos(settings: Settings, redis_client: redis.Redis | None) -> dict[str, RecordBaseDAO]:
    models = (LinkModel, PasteModel, ImageModel, SecretModel)

    if settings.store_backend == 'memory':
        logger.warning('Using the in-memory store: records do not survive a restart.')
        return {str(model.kind): RecordMemoryDAO(model) for model in models}

    daos: dict[str, RecordBaseDAO] = {}
    if redis_client is None:
        daos['link'] = RecordRedisDAO(LinkModel, prefix=settings.app_prefix, **settings.redis_config())
        redis_client = daos['link'].redis

    # One client (and connection pool) shared by the DAOs of all kinds
    for model in models:
        if str(model.kind) not in daos:
            daos[str(model.kind)] = RecordRedisDAO(model, redis_client=redis_client, prefix=settings.app_prefix)
    return daos


def build_core(settings: Settings, redis_client: redis.Redis | None = None, configure_logging: bool = True) -> SeqreCore:
    """Construct all long-lived components from settings

    Args:
        settings (Settings):
            Application settings, see seqre.utils.config.load_config().
        redis_client (redis.Redis | None):
            Pre-initialized Redis client for the redis backend.
        configure_logging (bool):
            Install the JSON log handler at `settings.log_level`.

    Returns:
        SeqreCore: wired components. Call start() to launch the cleanup worker.

    Raises:
        DataStoreError:
            If the redis backend is selected and Redis is unreachable.
    """
    if configure_logging:
        initialize_logging(settings.log_level)

    daos = _build_daos(settings, redis_client)

    images = ImageService(daos['image'], upload_dir=settings.upload_dir, grace_period=settings.cleanup_grace_period)
    tasks = [images.sweep_orphans]
    tasks += [dao.purge_expired for dao in daos.values() if isinstance(dao, RecordMemoryDAO)]

    core = SeqreCore(
        settings=settings,
        links=LinkService(daos['link']),
        pastes=PasteService(daos['paste']),
        images=images,
        secrets=SecretService(daos['secret']),
        rate_limiter=RateLimiter(
            rate=settings.rate_limit_rate,
            burst=settings.rate_limit_burst,
            idle_ttl=settings.rate_limit_idle_ttl,
        ),
        cleanup=CleanupWorker(settings.cleanup_interval, tasks),
        daos=daos,
        owns_redis=settings.store_backend == 'redis' and redis_client is None,
    )
    logger.info('Core initialized.', extra={'backend': settings.store_backend, 'uploadDir': str(settings.upload_dir)})
    return core
