"""Link target validation

Unencrypted links are checked before creation so the service never
redirects to private or internal addresses (SSRF protection). Encrypted
links cannot be checked since the server never sees the target.

Functions:
    is_internal_ip(ip) -> bool
    validate_target_url(url, resolve=True) -> str

Example:
    >>> validate_target_url('https://example.com/page', resolve=False)
    'https://example.com/page'
    >>> validate_target_url('http://127.0.0.1:8080/admin')
    Traceback (most recent call last):
        ...
    seqre.exceptions.UnsafeURLError: URL points to internal/private IP address: 127.0.0.1
"""

import socket
import logging
import ipaddress
from urllib.parse import urlparse

from seqre.exceptions import ValidationError, UnsafeURLError


logger = logging.getLogger(__name__)


# fmt: off
INTERNAL_NETWORKS = tuple(
    ipaddress.ip_network(cidr)
    for cidr in (
        # IPv4
        '10.0.0.0/8',          # Private network
        '172.16.0.0/12',       # Private network
        '192.168.0.0/16',      # Private network
        '127.0.0.0/8',         # Loopback
        '169.254.0.0/16',      # Link-local
        '224.0.0.0/4',         # Multicast
        '240.0.0.0/4',         # Reserved
        '0.0.0.0/8',           # Current network
        '100.64.0.0/10',       # Shared address space (RFC 6598)
        '192.0.0.0/24',        # IETF protocol assignments
        '192.0.2.0/24',        # TEST-NET-1
        '198.18.0.0/15',       # Benchmarking
        '198.51.100.0/24',     # TEST-NET-2
        '203.0.113.0/24',      # TEST-NET-3
        '255.255.255.255/32',  # Broadcast
        # IPv6
        '::1/128',             # Loopback
        'fe80::/10',           # Link-local
        'fc00::/7',            # Unique local address
        '::/128',              # Unspecified
        '::ffff:0:0/96',       # IPv4-mapped
        '100::/64',            # Discard prefix
        '2001::/32',           # TEREDO
        '2001:10::/28',        # Deprecated (ORCHID)
        '2001:db8::/32',       # Documentation
        'ff00::/8',            # Multicast
    )
)
# fmt: on


def is_internal_ip(ip: str | ipaddress.IPv4Address | ipaddress.IPv6Address) -> bool:
    address = ipaddress.ip_address(ip)
    return any(address.version == network.version and address in network for network in INTERNAL_NETWORKS)


def validate_target_url(url: str, resolve: bool = True) -> str:
    """Validate the target of an unencrypted link

    Args:
        url (str):
            Target URL submitted by the sender.
        resolve (bool):
            Resolve host names and reject those pointing at internal
            addresses. A failed DNS lookup is not an error: the domain may
            simply not resolve from here.

    Returns:
        str: the URL unchanged.

    Raises:
        ValidationError:
            If the URL is not an absolute http(s) URL with a host name.
        UnsafeURLError:
            If the host is, or resolves to, a private/internal IP address.
    """
    if not url:
        raise ValidationError('URL is required.')

    components = urlparse(url)
    if components.scheme not in {'http', 'https'}:
        raise ValidationError('Invalid URL scheme: only http and https are allowed.')

    hostname = components.hostname
    if not hostname:
        raise ValidationError('URL must have a valid hostname.')

    try:
        literal = ipaddress.ip_address(hostname)
    except ValueError:
        literal = None

    if literal is not None:
        if is_internal_ip(literal):
            raise UnsafeURLError(f'URL points to internal/private IP address: {literal}')
        return url

    if not resolve:
        return url

    try:
        infos = socket.getaddrinfo(hostname, None)
    except (socket.gaierror, UnicodeError):
        logger.debug('DNS lookup failed, allowing URL.', extra={'hostname': hostname})
        return url

    for info in infos:
        address = info[4][0].split('%', 1)[0]  # drop IPv6 zone index
        if is_internal_ip(address):
            raise UnsafeURLError(f'URL points to internal/private IP address: {address}')

    return url
