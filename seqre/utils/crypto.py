"""Client-side encryption envelope

Senders encrypt content before it reaches the server, so a compromised
server never exposes plaintext. The server stores the resulting envelope
and never sees the key.

Envelope format:
    base64(nonce || ciphertext || tag)

    - AES-128-GCM
    - 96-bit random nonce, fresh for every seal
    - standard base64 alphabet with padding

Key transport:
    The 128-bit key is encoded as URL-safe base64 without padding and placed
    in the fragment of the shareable link (https://host/s/abc123#<key>).
    Browsers never send the fragment to the server. Non-browser clients must
    keep the key apart from the request path and body, see split_share_url().

Example:
    >>> key = generate_key()
    >>> envelope = seal('hello', key)
    >>> open_envelope(envelope, key)
    b'hello'
    >>> url = share_url('https://seq.re', RecordKind.SECRET, 'abc123', key)
    >>> split_share_url(url) == ('https://seq.re/s/abc123', key)
    True
"""

import os
import base64
import binascii
from urllib.parse import urldefrag

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from seqre.models import RecordKind
from seqre.exceptions import EncryptionError


KEY_SIZE = 16  # AES-128
NONCE_SIZE = 12
TAG_SIZE = 16

# Path segment in front of the short code for every record kind
KIND_PATHS = {
    RecordKind.LINK: '',
    RecordKind.SECRET: 's',
    RecordKind.PASTE: 'p',
    RecordKind.IMAGE: 'i',
}


def generate_key() -> bytes:
    """Generate a fresh random 128-bit key."""
    return AESGCM.generate_key(bit_length=KEY_SIZE * 8)


def _cipher(key: bytes) -> AESGCM:
    if not isinstance(key, bytes) or len(key) != KEY_SIZE:
        size = len(key) if isinstance(key, (bytes, bytearray)) else type(key).__name__
        raise EncryptionError(f'Key must be {KEY_SIZE} bytes (given: {size}).')
    return AESGCM(key)


def seal(plaintext: bytes | str, key: bytes) -> str:
    """Encrypt plaintext into a base64 envelope

    Args:
        plaintext (bytes | str):
            Content to encrypt. Strings are encoded as UTF-8.
        key (bytes):
            16-byte key from generate_key().

    Returns:
        str: base64(nonce || ciphertext || tag)

    Raises:
        EncryptionError:
            If the key has the wrong length.
    """
    if isinstance(plaintext, str):
        plaintext = plaintext.encode('utf-8')

    cipher = _cipher(key)
    nonce = os.urandom(NONCE_SIZE)
    sealed = cipher.encrypt(nonce, plaintext, None)
    return base64.b64encode(nonce + sealed).decode('ascii')


def open_envelope(envelope: str, key: bytes) -> bytes:
    """Decrypt a base64 envelope produced by seal()

    Raises:
        EncryptionError:
            On malformed base64, truncated envelopes, wrong key length,
            wrong key or tampered ciphertext. Partial plaintext is never returned.
    """
    try:
        raw = base64.b64decode(envelope, validate=True)
    except (binascii.Error, ValueError, TypeError) as e:
        raise EncryptionError('Envelope is not valid base64.') from e

    if len(raw) < NONCE_SIZE + TAG_SIZE:
        raise EncryptionError('Envelope is too short.')

    cipher = _cipher(key)
    nonce, sealed = raw[:NONCE_SIZE], raw[NONCE_SIZE:]
    try:
        return cipher.decrypt(nonce, sealed, None)
    except InvalidTag as e:
        raise EncryptionError('Envelope authentication failed (wrong key or tampered content).') from e


def is_envelope(value: str | bytes) -> bool:
    """Check the framing of an envelope without decrypting it

    Returns True for valid base64 holding at least a nonce and a tag.
    """
    try:
        raw = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError, TypeError):
        return False
    return len(raw) >= NONCE_SIZE + TAG_SIZE


def encode_key(key: bytes) -> str:
    """Encode a key for a URL fragment (URL-safe base64, no padding)."""
    return base64.urlsafe_b64encode(key).rstrip(b'=').decode('ascii')


def decode_key(encoded: str) -> bytes:
    """Decode a key taken from a URL fragment

    Raises:
        EncryptionError:
            If the value is not URL-safe base64 or does not hold a 16-byte key.
    """
    padded = encoded + '=' * (-len(encoded) % 4)
    try:
        key = base64.b64decode(padded, altchars=b'-_', validate=True)
    except (binascii.Error, ValueError) as e:
        raise EncryptionError('Key is not valid URL-safe base64.') from e

    if len(key) != KEY_SIZE:
        raise EncryptionError(f'Key must be {KEY_SIZE} bytes (given: {len(key)}).')
    return key


def share_url(base_url: str, kind: RecordKind, shortcode: str, key: bytes | None = None) -> str:
    """Build the shareable link for a record

    The key, when given, only ever appears in the fragment.

    Example:
        >>> share_url('https://seq.re', RecordKind.LINK, 'abc123')
        'https://seq.re/abc123'
    """
    segment = KIND_PATHS[RecordKind(kind)]
    path = f'{segment}/{shortcode}' if segment else shortcode
    url = f'{base_url.rstrip("/")}/{path}'
    return f'{url}#{encode_key(key)}' if key is not None else url


def split_share_url(url: str) -> tuple[str, bytes | None]:
    """Separate a shareable link into the request URL and the key

    Returns:
        tuple[str, bytes | None]:
            URL safe to send to the server and the decoded key (None when the
            link carries no fragment).
    """
    request_url, fragment = urldefrag(url)
    return request_url, decode_key(fragment) if fragment else None
