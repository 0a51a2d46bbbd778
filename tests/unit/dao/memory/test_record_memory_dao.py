"""Unit tests for RecordMemoryDAO.

Test coverage includes:
    1. Insert semantics
       - Duplicate live short codes are rejected, expired ones are reusable.
    2. Lazy expiry
       - Expired records are invisible to get/take/exists/count.
    3. Atomic take
       - Of many concurrent takers exactly one receives the record.
    4. Deletion and purge
       - delete() is idempotent, purge_expired() reclaims memory.
"""

import threading
from datetime import datetime, timedelta, UTC

import pytest
from freezegun import freeze_time

from seqre.models import PasteModel, SecretModel
from seqre.exceptions import InvalidShortcodeError
from seqre.dao.exceptions import RecordAlreadyExistsError, RecordNotFoundError
from seqre.dao.memory import RecordMemoryDAO


CREATED_AT = datetime(2025, 10, 15, 0, 0, 0, tzinfo=UTC)


def make_paste(shortcode: str = 'abc123', ttl: timedelta = timedelta(days=7), **overrides) -> PasteModel:
    return PasteModel(
        shortcode=shortcode,
        content='print("hello")',
        language='python',
        created_at=CREATED_AT,
        expires_at=CREATED_AT + ttl,
        **overrides,
    )


@pytest.fixture
def dao() -> RecordMemoryDAO:
    return RecordMemoryDAO(PasteModel)


# -------------------------------
# 1. Insert semantics
# -------------------------------


@freeze_time('2025-10-15')
def test_insert_and_get(dao):
    paste = make_paste()
    assert dao.insert(paste) is dao
    assert dao.get('abc123') == paste
    assert dao.exists('abc123')


@freeze_time('2025-10-15')
def test_insert_duplicate_is_rejected(dao):
    dao.insert(make_paste())

    with pytest.raises(RecordAlreadyExistsError, match="Paste with code 'abc123' already exists."):
        dao.insert(make_paste(onetime=True))

    assert dao.get('abc123').onetime is False


def test_insert_over_expired_record(dao):
    with freeze_time('2025-10-15'):
        dao.insert(make_paste(ttl=timedelta(seconds=1)))

    with freeze_time('2025-10-15 00:00:02'):
        replacement = make_paste(ttl=timedelta(days=7), onetime=True)
        dao.insert(replacement)
        assert dao.get('abc123') == replacement


@freeze_time('2025-10-23')
def test_insert_expired_record(dao):
    with pytest.raises(ValueError):
        dao.insert(make_paste())
    assert dao.count() == 0


@freeze_time('2025-10-15')
def test_insert_record_of_another_kind(dao):
    secret = SecretModel(shortcode='abc123', data='AAAA', created_at=CREATED_AT, expires_at=CREATED_AT + timedelta(days=1))
    with pytest.raises(TypeError):
        dao.insert(secret)


@pytest.mark.parametrize('shortcode', ['', 'abc', 'abc/12', 'abcdefg'])
def test_invalid_shortcode(dao, shortcode):
    with pytest.raises(InvalidShortcodeError):
        dao.get(shortcode)
    with pytest.raises(InvalidShortcodeError):
        dao.take(shortcode)


# -------------------------------
# 2. Lazy expiry
# -------------------------------


def test_record_with_short_ttl_expires(dao):
    with freeze_time('2025-10-15') as frozen:
        dao.insert(make_paste(ttl=timedelta(seconds=1)))
        assert dao.exists('abc123')

        frozen.tick(timedelta(seconds=1))

        assert not dao.exists('abc123')
        assert dao.count() == 0
        with pytest.raises(RecordNotFoundError):
            dao.get('abc123')
        with pytest.raises(RecordNotFoundError):
            dao.take('abc123')


# -------------------------------
# 3. Atomic take
# -------------------------------


@freeze_time('2025-10-15')
def test_take_removes_record(dao):
    paste = make_paste(onetime=True)
    dao.insert(paste)

    assert dao.take('abc123') == paste
    with pytest.raises(RecordNotFoundError, match="Paste with code 'abc123' not found."):
        dao.take('abc123')
    assert not dao.exists('abc123')


def test_concurrent_take_discloses_once():
    dao = RecordMemoryDAO(SecretModel)
    now = datetime.now(UTC)
    dao.insert(SecretModel(shortcode='s3cr3t', data='AAAA', created_at=now, expires_at=now + timedelta(days=1)))

    barrier = threading.Barrier(16)
    taken, missed = [], []

    def reader():
        barrier.wait()
        try:
            taken.append(dao.take('s3cr3t'))
        except RecordNotFoundError:
            missed.append(True)

    threads = [threading.Thread(target=reader) for _ in range(16)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(taken) == 1
    assert len(missed) == 15


# -------------------------------
# 4. Deletion and purge
# -------------------------------


@freeze_time('2025-10-15')
def test_delete_is_idempotent(dao):
    dao.insert(make_paste())

    assert dao.delete('abc123') is True
    assert dao.delete('abc123') is False
    assert not dao.exists('abc123')


@freeze_time('2025-10-15')
def test_count_with_predicate(dao):
    dao.insert(make_paste('aaaaaa'))
    dao.insert(make_paste('bbbbbb', onetime=True))
    dao.insert(make_paste('cccccc', onetime=True, encrypted=True))

    assert dao.count() == 3
    assert dao.count(lambda record: record.onetime) == 2


def test_purge_expired(dao):
    with freeze_time('2025-10-15') as frozen:
        dao.insert(make_paste('aaaaaa', ttl=timedelta(seconds=1)))
        dao.insert(make_paste('bbbbbb', ttl=timedelta(seconds=1)))
        dao.insert(make_paste('cccccc'))

        frozen.tick(timedelta(seconds=2))

        assert dao.purge_expired() == 2
        assert dao.purge_expired() == 0
        assert dao.count() == 1
