"""Per-client token bucket rate limiting

Guards read/consume operations against guessing of short codes. Every
distinct client IP gets its own token bucket; exhausting it yields a
rejection with no queuing.

Classes:
    TokenBucket:
        Single bucket refilled at a constant rate up to a burst size.
    RateLimiter:
        Thread-safe map of client IP to TokenBucket, sharded by a hash of the
        IP, with eviction of idle buckets.

Functions:
    client_ip(remote_addr, headers, behind_proxy) -> str:
        Derive the client IP of a request.

Example:
    >>> limiter = RateLimiter(rate=2.0, burst=5)
    >>> all(limiter.allow('203.0.113.7') for _ in range(5))
    True
    >>> limiter.allow('203.0.113.7')
    False
    >>> limiter.allow('198.51.100.1')
    True
"""

import math
import time
import logging
import threading
from collections.abc import Callable, Mapping

import xxhash

from seqre.constants import RateLimit
from seqre.exceptions import RateLimitedError


logger = logging.getLogger(__name__)


class TokenBucket:
    """Token bucket holding up to `burst` tokens, refilled at `rate` tokens per second.

    Buckets start full. Not thread-safe on its own; RateLimiter serializes
    access through the owning shard's lock.
    """

    __slots__ = ('rate', 'burst', 'tokens', 'updated_at')

    def __init__(self, rate: float, burst: int, now: float):
        self.rate = rate
        self.burst = burst
        self.tokens = float(burst)
        self.updated_at = now

    def _refill(self, now: float) -> None:
        elapsed = max(0.0, now - self.updated_at)
        self.tokens = min(float(self.burst), self.tokens + elapsed * self.rate)
        self.updated_at = now

    def allow(self, now: float) -> bool:
        self._refill(now)
        if self.tokens >= 1.0:
            self.tokens -= 1.0
            return True
        return False

    def retry_after(self) -> float:
        """Seconds until the next token is available."""
        return max(0.0, (1.0 - self.tokens) / self.rate)


class _Shard:
    __slots__ = ('lock', 'buckets')

    def __init__(self):
        self.lock = threading.Lock()
        self.buckets: dict[str, TokenBucket] = {}


class RateLimiter:
    """Per-IP token bucket limiter

    Construct one instance per process and hand it to every request handler.

    Attributes:
        rate (float):
            Sustained requests per second per IP.
        burst (int):
            Bucket capacity (requests allowed back to back).
        idle_ttl (float):
            Seconds without requests after which a bucket is dropped. Must be
            at least the time a bucket needs to refill completely, so that an
            evicted bucket and a fresh one are equivalent.

    Methods:
        allow(ip: str) -> bool:
            Consume a token for the IP. False when the bucket is exhausted.
        check(ip: str) -> None:
            Like allow(), but raises RateLimitedError on rejection.
        evict_idle() -> int:
            Drop idle buckets, returning how many were removed.
    """

    def __init__(
        self,
        rate: float = RateLimit.RATE,
        burst: int = RateLimit.BURST,
        idle_ttl: float = RateLimit.IDLE_TTL,
        shards: int = RateLimit.SHARDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if rate <= 0:
            raise ValueError(f'Rate must be positive (given value: {rate}).')
        if burst < 1:
            raise ValueError(f'Burst must be at least 1 (given value: {burst}).')
        if shards < 1:
            raise ValueError(f'Shard count must be at least 1 (given value: {shards}).')
        if idle_ttl < burst / rate:
            raise ValueError(f'Idle TTL must cover a full refill of {burst / rate:g}s (given value: {idle_ttl}).')

        self.rate = rate
        self.burst = burst
        self.idle_ttl = idle_ttl
        self._clock = clock
        self._shards = [_Shard() for _ in range(shards)]
        self._eviction_lock = threading.Lock()
        self._last_eviction = clock()

    def _shard(self, ip: str) -> _Shard:
        return self._shards[xxhash.xxh64_intdigest(ip) % len(self._shards)]

    def _acquire(self, ip: str) -> tuple[bool, float]:
        now = self._clock()
        shard = self._shard(ip)
        with shard.lock:
            bucket = shard.buckets.get(ip)
            if bucket is None:
                bucket = shard.buckets[ip] = TokenBucket(self.rate, self.burst, now)
            allowed = bucket.allow(now)
            retry_after = bucket.retry_after()

        self._maybe_evict(now)
        return allowed, retry_after

    def allow(self, ip: str) -> bool:
        allowed, _ = self._acquire(ip)
        return allowed

    def check(self, ip: str) -> None:
        """Consume a token or raise RateLimitedError

        Raises:
            RateLimitedError:
                If the IP's bucket is exhausted. `retry_after` holds the
                whole seconds until a token is available again.
        """
        allowed, retry_after = self._acquire(ip)
        if not allowed:
            logger.info('Rate limit exceeded.', extra={'clientIp': ip})
            raise RateLimitedError(retry_after=max(1, math.ceil(retry_after)))

    def evict_idle(self) -> int:
        """Drop buckets that have not been used for `idle_ttl` seconds."""
        now = self._clock()
        evicted = 0
        for shard in self._shards:
            with shard.lock:
                idle = [ip for ip, bucket in shard.buckets.items() if now - bucket.updated_at >= self.idle_ttl]
                for ip in idle:
                    del shard.buckets[ip]
                evicted += len(idle)

        if evicted:
            logger.debug('Evicted idle rate limit buckets.', extra={'count': evicted})
        return evicted

    def _maybe_evict(self, now: float) -> None:
        # Opportunistic sweep, at most once per idle_ttl, run by whichever request gets here first
        if now - self._last_eviction < self.idle_ttl:
            return
        if not self._eviction_lock.acquire(blocking=False):
            return
        try:
            self._last_eviction = now
            self.evict_idle()
        finally:
            self._eviction_lock.release()

    def __len__(self) -> int:
        return sum(len(shard.buckets) for shard in self._shards)


def _header(headers: Mapping[str, str], name: str) -> str:
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return ''


def _strip_port(address: str) -> str:
    # [::1]:8080 -> ::1, 10.0.0.1:8080 -> 10.0.0.1, bare IPv6 stays untouched
    if address.startswith('['):
        return address[1 : address.index(']')] if ']' in address else address.strip('[')
    if address.count(':') == 1:
        return address.split(':', 1)[0]
    return address


def client_ip(remote_addr: str, headers: Mapping[str, str] | None = None, behind_proxy: bool = False) -> str:
    """Derive the client IP of a request

    Proxy headers are trusted only when the deployment says it sits behind
    a reverse proxy. Otherwise clients could spoof them to dodge the limiter.

    Args:
        remote_addr (str):
            Connection peer address, with or without port.
        headers (Mapping[str, str] | None):
            Request headers (looked up case-insensitively).
        behind_proxy (bool):
            Trust X-Forwarded-For (first hop) and X-Real-IP.

    Returns:
        str: client IP address.

    Example:
        >>> client_ip('10.0.0.2:5123', {'X-Forwarded-For': '203.0.113.9, 10.0.0.1'}, behind_proxy=True)
        '203.0.113.9'
        >>> client_ip('10.0.0.2:5123', {'X-Forwarded-For': '203.0.113.9'})
        '10.0.0.2'
    """
    if behind_proxy and headers:
        # A blank first hop (e.g. ', 203.0.113.9') names no client
        first_hop = _header(headers, 'X-Forwarded-For').split(',')[0].strip()
        if first_hop:
            return first_hop

        real_ip = _header(headers, 'X-Real-IP').strip()
        if real_ip:
            return real_ip

    return _strip_port(remote_addr.strip())
