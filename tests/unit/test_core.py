"""Unit tests for process wiring and end-to-end scenarios.

Test coverage includes:
    1. build_core() wiring
       - Memory and Redis backends, one shared Redis client for all kinds.
       - Cleanup tasks registered per backend.
    2. Scenarios
       - A link is read twice, a secret exactly once.
       - Rate limiting by derived client IP.
    3. Lifecycle
       - start()/close() manage the cleanup worker; close() releases a Redis
         client only when build_core() created it.
"""

import socket
from unittest.mock import MagicMock, patch

import pytest
import redis

from seqre import build_core
from seqre.models import RecordKind
from seqre.exceptions import RateLimitedError
from seqre.dao.exceptions import RecordNotFoundError
from seqre.dao.memory import RecordMemoryDAO
from seqre.dao.redis import RecordRedisDAO
from seqre.utils import validators
from seqre.utils.config import Settings
from seqre.utils.crypto import generate_key, open_envelope, seal, split_share_url
from seqre.utils.ratelimit import client_ip


# -------------------------------
# Fixtures
# -------------------------------


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        store_backend='memory',
        upload_dir=tmp_path / 'uploads',
        redirect_host='https://seq.re',
        behind_proxy=True,
    )


@pytest.fixture
def core(settings):
    return build_core(settings, configure_logging=False)


@pytest.fixture(autouse=True)
def _public_dns(monkeypatch):
    """Every host name resolves to a public address."""
    monkeypatch.setattr(
        validators.socket,
        'getaddrinfo',
        lambda *args, **kwargs: [(socket.AF_INET, socket.SOCK_STREAM, 6, '', ('93.184.216.34', 0))],
    )


@pytest.fixture
def redis_client() -> redis.Redis:
    client = MagicMock(
        spec=redis.Redis, connection_pool=MagicMock(spec=redis.ConnectionPool, connection_kwargs={'host': 'redis', 'port': 6379, 'db': 0})
    )
    client.ping.return_value = True
    return client


# -------------------------------
# 1. build_core() wiring
# -------------------------------


def test_memory_backend(core, settings):
    assert core.settings is settings
    assert set(core.daos) == {'link', 'paste', 'image', 'secret'}
    assert all(isinstance(dao, RecordMemoryDAO) for dao in core.daos.values())
    assert core.links.dao is core.daos['link']
    assert core.images.upload_dir == settings.upload_dir
    # image orphan sweep + one purge per in-memory DAO
    assert len(core.cleanup.tasks) == 5
    assert core.cleanup.interval == settings.cleanup_interval


def test_redis_backend_with_client(redis_client, tmp_path):
    settings = Settings(store_backend='redis', app_prefix='seqre:test', upload_dir=tmp_path)

    core = build_core(settings, redis_client=redis_client, configure_logging=False)

    assert all(isinstance(dao, RecordRedisDAO) for dao in core.daos.values())
    assert all(dao.redis is redis_client for dao in core.daos.values())
    assert all(dao.keys.prefix == 'seqre:test' for dao in core.daos.values())
    assert core.cleanup.tasks == [core.images.sweep_orphans]

    core.close()
    redis_client.close.assert_not_called()


def test_redis_backend_creates_one_client(tmp_path):
    settings = Settings(
        store_backend='redis',
        redis_host='redis.internal',
        redis_port=6380,
        redis_db=1,
        redis_password='hunter2',
        upload_dir=tmp_path / 'uploads',
    )

    with patch('seqre.dao.redis.mixins.redis.Redis', autospec=True) as redis_mock:
        core = build_core(settings, configure_logging=False)

    redis_mock.assert_called_once_with(host='redis.internal', port=6380, db=1, decode_responses=True, username=None, password='hunter2')
    assert all(dao.redis is redis_mock.return_value for dao in core.daos.values())
    # one PING per DAO, no extra DAO built just to obtain the client
    assert redis_mock.return_value.ping.call_count == 4

    core.close()
    redis_mock.return_value.close.assert_called_once_with()


def test_rate_limiter_from_settings(tmp_path):
    settings = Settings(store_backend='memory', upload_dir=tmp_path, rate_limit_rate=1.0, rate_limit_burst=3, rate_limit_idle_ttl=60)

    limiter = build_core(settings, configure_logging=False).rate_limiter

    assert (limiter.rate, limiter.burst, limiter.idle_ttl) == (1.0, 3, 60)


def test_configure_logging(settings):
    with patch('seqre.core.initialize_logging') as initialize_logging:
        build_core(settings)
    initialize_logging.assert_called_once_with(settings.log_level)


# -------------------------------
# 2. Scenarios
# -------------------------------


def test_link_is_read_twice(core):
    link = core.links.create('https://example.com')

    assert core.links.retrieve(link.shortcode).url == 'https://example.com'
    assert core.links.retrieve(link.shortcode).url == 'https://example.com'
    assert core.share_url(link) == f'https://seq.re/{link.shortcode}'


def test_secret_is_read_once(core):
    key = generate_key()
    secret = core.secrets.create(seal('hello', key))
    url = core.share_url(secret, key)

    request_url, fragment_key = split_share_url(url)
    assert request_url == f'https://seq.re/s/{secret.shortcode}'

    assert open_envelope(core.secrets.retrieve(secret.shortcode).data, fragment_key) == b'hello'
    with pytest.raises(RecordNotFoundError):
        core.secrets.retrieve(secret.shortcode)


def test_encrypted_paste_share_url(core):
    key = generate_key()
    paste = core.pastes.create(seal('SELECT 1;', key), language='sql', encrypted=True)

    url = core.share_url(paste, key)

    assert url.startswith(f'https://seq.re/p/{paste.shortcode}#')
    assert paste.kind is RecordKind.PASTE


def test_rate_limit_per_client_ip(core):
    headers = {'X-Forwarded-For': '203.0.113.7, 10.0.0.1'}
    ip = client_ip('10.0.0.1:41000', headers, core.settings.behind_proxy)

    for _ in range(core.settings.rate_limit_burst):
        core.rate_limiter.check(ip)
    with pytest.raises(RateLimitedError):
        core.rate_limiter.check(ip)

    core.rate_limiter.check(client_ip('10.0.0.1:41000', {'X-Forwarded-For': '198.51.100.1'}, core.settings.behind_proxy))


# -------------------------------
# 3. Lifecycle
# -------------------------------


def test_start_and_close(core):
    assert core.start() is core
    assert core.cleanup.running

    core.close()

    assert not core.cleanup.running
