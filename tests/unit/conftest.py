from datetime import datetime, timedelta, UTC

import pytest

from seqre.utils.crypto import generate_key, seal


@pytest.fixture
def key() -> bytes:
    return generate_key()


@pytest.fixture
def envelope(key: bytes) -> str:
    """A well-formed envelope, as a client would submit it."""
    return seal('correct horse battery staple', key)


@pytest.fixture
def lifetime() -> dict[str, datetime]:
    """created_at/expires_at for a record that is live for a week."""
    now = datetime.now(UTC)
    return {'created_at': now, 'expires_at': now + timedelta(days=7)}
