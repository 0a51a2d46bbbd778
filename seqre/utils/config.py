"""Utility functions for application configuration management.

Configuration comes from three layers, later layers winning:

    1. built-in defaults (see seqre.constants)
    2. an optional YAML file named by `SEQRE_CONFIG`
    3. environment variables (a `.env` file in the working directory is
       loaded first, without overriding variables already set)

The YAML document follows this structure (every key optional):

    redirect_host: https://seq.re
    behind_proxy: true
    store:
      backend: redis            # or "memory"
      redis:
        host: localhost
        port: 6379
        db: 0
        username: default
        password: secret
    images:
      upload_dir: /var/lib/seqre/uploads
      cleanup_interval: 3600
      cleanup_grace_period: 60
    rate_limit:
      rate: 2.0
      burst: 5
      idle_ttl: 600

Functions:
    app_env() -> str
        Return the current application environment (`APP_ENV`), defaulting to `'local'`.

    app_name() -> str | None
        Return the application name (`APP_NAME`), or None if not set.

    app_prefix() -> str | None
        Return the data store key prefix, or None if `APP_NAME` is not set.

    load_config(path: str | Path | None = None) -> Settings
        Merge defaults, YAML file and environment into Settings.

Example:
    >>> os.environ['REDIS_HOST'] = 'redis.internal'
    >>> settings = load_config()
    >>> settings.redis_host
    'redis.internal'
"""

import os
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from seqre.constants import ENV, Cleanup, RateLimit
from seqre.exceptions import BadConfigurationError


logger = logging.getLogger(__name__)

BACKENDS = frozenset({'redis', 'memory'})


def app_env() -> str:
    """Return the current application environment by reading 'APP_ENV'

    Example:
        >>> os.environ['APP_ENV'] = 'dev'
        >>> app_env()
        'dev'
    """
    return os.environ.get(ENV.App.APP_ENV, 'local').lower()


def app_name() -> str | None:
    return os.environ.get(ENV.App.APP_NAME)


def app_prefix() -> str | None:
    """Return application prefix for DAOs

    Returns:
        str: app prefix as <app name>:<app env>.
             None if APP_NAME is not set.

    Example:
        >>> os.environ['APP_NAME'] = 'seqre'
        >>> os.environ['APP_ENV'] = 'local'
        >>> app_prefix()
        'seqre:local'
    """
    return None if app_name() is None else f'{app_name()}:{app_env()}'


# fmt: off
@dataclass(frozen=True)
class Settings:
    app_prefix: str | None = None
    log_level: str = 'INFO'
    redirect_host: str = 'http://localhost:8080'    # Public base URL of shareable links
    behind_proxy: bool = False                      # Trust X-Forwarded-For / X-Real-IP
    store_backend: str = 'redis'
    redis_host: str = 'localhost'
    redis_port: int = 6379
    redis_db: int = 0
    redis_username: str | None = None
    redis_password: str | None = None
    upload_dir: Path = Path('uploads')
    cleanup_interval: float = Cleanup.INTERVAL
    cleanup_grace_period: float = Cleanup.GRACE_PERIOD
    rate_limit_rate: float = RateLimit.RATE
    rate_limit_burst: int = RateLimit.BURST
    rate_limit_idle_ttl: float = RateLimit.IDLE_TTL
# fmt: on

    def redis_config(self) -> dict[str, Any]:
        """Keyword arguments for RedisClientMixin."""
        return {
            'redis_host': self.redis_host,
            'redis_port': self.redis_port,
            'redis_db': self.redis_db,
            'redis_username': self.redis_username,
            'redis_password': self.redis_password,
        }


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with path.open('r', encoding='utf-8') as f:
            document = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise BadConfigurationError(f'Invalid YAML in configuration file {path}.') from e

    if not isinstance(document, dict):
        raise BadConfigurationError(f'Configuration file {path} must contain a mapping.')
    return document


def _flatten(document: dict[str, Any]) -> dict[str, Any]:
    store = document.get('store') or {}
    redis = store.get('redis') or {}
    images = document.get('images') or {}
    rate_limit = document.get('rate_limit') or {}

    values = {
        'log_level': document.get('log_level'),
        'redirect_host': document.get('redirect_host'),
        'behind_proxy': document.get('behind_proxy'),
        'store_backend': store.get('backend'),
        'redis_host': redis.get('host'),
        'redis_port': redis.get('port'),
        'redis_db': redis.get('db'),
        'redis_username': redis.get('username'),
        'redis_password': redis.get('password'),
        'upload_dir': images.get('upload_dir'),
        'cleanup_interval': images.get('cleanup_interval'),
        'cleanup_grace_period': images.get('cleanup_grace_period'),
        'rate_limit_rate': rate_limit.get('rate'),
        'rate_limit_burst': rate_limit.get('burst'),
        'rate_limit_idle_ttl': rate_limit.get('idle_ttl'),
    }
    return {key: value for key, value in values.items() if value is not None}


# Settings field -> environment variable
_ENVIRONMENT = {
    'log_level': ENV.App.LOG_LEVEL,
    'redirect_host': ENV.App.REDIRECT_HOST,
    'behind_proxy': ENV.App.BEHIND_PROXY,
    'store_backend': ENV.App.STORE_BACKEND,
    'redis_host': ENV.Redis.HOST,
    'redis_port': ENV.Redis.PORT,
    'redis_db': ENV.Redis.DB,
    'redis_username': ENV.Redis.USERNAME,
    'redis_password': ENV.Redis.PASSWORD,
    'upload_dir': ENV.Images.UPLOAD_DIR,
    'cleanup_interval': ENV.Images.CLEANUP_INTERVAL,
    'cleanup_grace_period': ENV.Images.CLEANUP_GRACE_PERIOD,
    'rate_limit_rate': ENV.RateLimit.RATE,
    'rate_limit_burst': ENV.RateLimit.BURST,
    'rate_limit_idle_ttl': ENV.RateLimit.IDLE_TTL,
}


def _coerce(name: str, value: Any, kind: type) -> Any:
    try:
        if kind is bool:
            if isinstance(value, bool):
                return value
            if str(value).strip().lower() in {'1', 'true', 'yes', 'on'}:
                return True
            if str(value).strip().lower() in {'0', 'false', 'no', 'off', ''}:
                return False
            raise ValueError(value)
        return kind(value)
    except (TypeError, ValueError) as e:
        raise BadConfigurationError(f'Invalid value for {name}: {value!r}.') from e


_TYPES = {
    'behind_proxy': bool,
    'redis_port': int,
    'redis_db': int,
    'upload_dir': Path,
    'cleanup_interval': float,
    'cleanup_grace_period': float,
    'rate_limit_rate': float,
    'rate_limit_burst': int,
    'rate_limit_idle_ttl': float,
}


def load_config(path: str | Path | None = None) -> Settings:
    """Load application settings

    Args:
        path (str | Path | None):
            YAML configuration file. Defaults to the file named by
            `SEQRE_CONFIG`; no file is read when neither is set.

    Returns:
        Settings: merged configuration.

    Raises:
        BadConfigurationError:
            If the YAML file is malformed, a value has the wrong type, or the
            store backend is unknown.
        FileNotFoundError:
            If an explicitly named configuration file does not exist.
    """
    load_dotenv(override=False)

    values: dict[str, Any] = {}

    path = path or os.environ.get(ENV.App.CONFIG_FILE)
    if path:
        logger.debug('Loading configuration file.', extra={'path': str(path)})
        values.update(_flatten(_read_yaml(Path(path))))

    for field, variable in _ENVIRONMENT.items():
        if variable in os.environ:
            values[field] = os.environ[variable]

    for field in ('redis_username', 'redis_password'):
        if field in values and not values[field]:
            values[field] = None

    for field, kind in _TYPES.items():
        if field in values:
            values[field] = _coerce(field, values[field], kind)

    if 'log_level' in values:
        values['log_level'] = str(values['log_level']).upper()
    if 'store_backend' in values:
        values['store_backend'] = str(values['store_backend']).lower()
        if values['store_backend'] not in BACKENDS:
            raise BadConfigurationError(f"Unknown store backend {values['store_backend']!r} (expected one of: {', '.join(sorted(BACKENDS))}).")

    settings = Settings(app_prefix=app_prefix(), **values)
    logger.debug('Configuration loaded.', extra={'backend': settings.store_backend, 'appPrefix': settings.app_prefix})
    return settings
