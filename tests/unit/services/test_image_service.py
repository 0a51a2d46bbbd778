"""Unit tests for ImageService.

Test coverage includes:
    1. Creation
       - Files are written as <code><ext> with mode 0600.
       - A file written for a record that could not be stored is removed.
    2. Disclosure
       - One-time images lose record and file on first read.
       - Encrypted images are returned base64 encoded.
       - Failing to read or delete the file of a consumed image is logged as an error.
    3. Deletion
    4. Orphan sweep
       - Files without a live record are reaped after the grace period,
         anything else in the upload directory is left alone.
"""

import os
import time
import base64
import stat

import pytest

from seqre.constants import Limits
from seqre.models import ImageModel
from seqre.exceptions import EncryptionError, ValidationError
from seqre.dao.exceptions import DataStoreError, RecordAlreadyExistsError, RecordNotFoundError
from seqre.dao.memory import RecordMemoryDAO
from seqre.services import ImageService
from seqre.services.image_service import file_extension


PNG = b'\x89PNG\r\n\x1a\n' + b'\x00' * 64


@pytest.fixture
def upload_dir(tmp_path):
    return tmp_path / 'uploads'


@pytest.fixture
def dao() -> RecordMemoryDAO:
    return RecordMemoryDAO(ImageModel)


@pytest.fixture
def service(dao, upload_dir) -> ImageService:
    return ImageService(dao, upload_dir=upload_dir)


def age(path, seconds: float = 3600) -> None:
    """Backdate a file's mtime beyond the sweep grace period."""
    then = time.time() - seconds
    os.utime(path, (then, then))


# -------------------------------
# 1. Creation
# -------------------------------


@pytest.mark.parametrize(
    'content_type, encrypted, expected',
    [
        ('image/png', False, '.png'),
        ('image/jpeg', False, '.jpg'),
        ('image/gif', False, '.gif'),
        ('image/webp', False, '.webp'),
        ('image/bmp', False, '.bin'),
        ('image/png', True, '.bin'),
    ],
)
def test_file_extension(content_type, encrypted, expected):
    assert file_extension(content_type, encrypted) == expected


def test_service_creates_upload_dir(upload_dir, service):
    assert upload_dir.is_dir()


def test_create_image(service, upload_dir):
    image = service.create(PNG, 'image/png')

    path = upload_dir / f'{image.shortcode}.png'
    assert image.file_path == str(path)
    assert image.content_type == 'image/png'
    assert path.read_bytes() == PNG
    assert stat.S_IMODE(path.stat().st_mode) == 0o600


def test_create_empty_image(service, upload_dir):
    with pytest.raises(ValidationError, match='empty'):
        service.create(b'', 'image/png')
    assert list(upload_dir.iterdir()) == []


def test_create_oversized_image(service, upload_dir, monkeypatch):
    monkeypatch.setattr(Limits, 'IMAGE_SIZE', 16)

    with pytest.raises(ValidationError, match='exceeds 16 bytes'):
        service.create(b'x' * 17, 'image/png')
    assert list(upload_dir.iterdir()) == []


def test_create_encrypted_image_too_short(service):
    with pytest.raises(EncryptionError):
        service.create(b'x' * 27, 'image/png', encrypted=True)


def test_file_removed_when_record_insert_fails(mock_dao, upload_dir):
    dao = mock_dao(ImageModel)
    dao.insert.side_effect = DataStoreError("Can't connect to Redis at localhost:6379/0.")
    service = ImageService(dao, upload_dir=upload_dir)

    with pytest.raises(DataStoreError):
        service.create(PNG, 'image/png')

    assert list(upload_dir.iterdir()) == []


def test_record_collision_draws_new_code(mock_dao, upload_dir, codes):
    dao = mock_dao(ImageModel)
    dao.insert.side_effect = [RecordAlreadyExistsError('taken'), dao]
    service = ImageService(dao, upload_dir=upload_dir, shortcode_factory=codes(['aaaaaa', 'bbbbbb']))

    image = service.create(PNG, 'image/png')

    assert image.shortcode == 'bbbbbb'
    assert sorted(path.name for path in upload_dir.iterdir()) == ['bbbbbb.png']


def test_file_collision_draws_new_code(dao, upload_dir, codes):
    upload_dir.mkdir()
    existing = upload_dir / 'aaaaaa.png'
    existing.write_bytes(b'someone else')
    service = ImageService(dao, upload_dir=upload_dir, shortcode_factory=codes(['aaaaaa', 'bbbbbb']))

    image = service.create(PNG, 'image/png')

    assert image.shortcode == 'bbbbbb'
    assert existing.read_bytes() == b'someone else'


def test_collisions_exhaust_attempts(dao, upload_dir):
    service = ImageService(dao, upload_dir=upload_dir, shortcode_factory=lambda: 'aaaaaa')
    service.create(PNG, 'image/png')

    with pytest.raises(RecordAlreadyExistsError):
        service.create(PNG, 'image/png')

    assert [path.name for path in upload_dir.iterdir()] == ['aaaaaa.png']


# -------------------------------
# 2. Disclosure
# -------------------------------


def test_retrieve_image(service):
    image = service.create(PNG, 'image/png')

    blob = service.retrieve(image.shortcode)

    assert blob.image == image
    assert blob.data == PNG
    assert os.path.exists(image.file_path)


def test_onetime_image_is_consumed(service, upload_dir):
    image = service.create(PNG, 'image/png', onetime=True)

    assert service.retrieve(image.shortcode).data == PNG

    assert list(upload_dir.iterdir()) == []
    with pytest.raises(RecordNotFoundError):
        service.retrieve(image.shortcode)


def test_encrypted_image_is_returned_base64(service, upload_dir):
    sealed = os.urandom(64)

    image = service.create(sealed, 'image/png', encrypted=True)

    assert image.file_path.endswith('.bin')
    assert (upload_dir / f'{image.shortcode}.bin').read_bytes() == sealed
    assert base64.b64decode(service.retrieve(image.shortcode).data) == sealed


def test_retrieve_with_missing_file(service):
    image = service.create(PNG, 'image/png')
    os.remove(image.file_path)

    with pytest.raises(DataStoreError, match='Failed to read image file'):
        service.retrieve(image.shortcode)


def test_onetime_image_file_not_deleted(service, monkeypatch, caplog):
    image = service.create(PNG, 'image/png', onetime=True)

    def refuse(path):
        raise PermissionError(13, 'Permission denied', str(path))

    monkeypatch.setattr('seqre.services.image_service.os.remove', refuse)
    with caplog.at_level('ERROR', logger='seqre.services.image_service'):
        blob = service.retrieve(image.shortcode)

    assert blob.data == PNG
    assert 'One-time image disclosed but its file was not deleted.' in [r.getMessage() for r in caplog.records]
    assert all(r.levelname == 'ERROR' for r in caplog.records)
    with pytest.raises(RecordNotFoundError):
        service.retrieve(image.shortcode)


def test_onetime_image_with_missing_file(service, caplog):
    image = service.create(PNG, 'image/png', onetime=True)
    os.remove(image.file_path)

    with caplog.at_level('ERROR', logger='seqre.services.image_service'), pytest.raises(DataStoreError):
        service.retrieve(image.shortcode)

    assert 'Consumed image record but could not read its file.' in [r.getMessage() for r in caplog.records]
    # The record was consumed by the failed read
    with pytest.raises(RecordNotFoundError):
        service.retrieve(image.shortcode)


# -------------------------------
# 3. Deletion
# -------------------------------


def test_delete_image(service, upload_dir):
    image = service.create(PNG, 'image/png')

    service.delete(image.shortcode)
    service.delete(image.shortcode)

    assert list(upload_dir.iterdir()) == []
    assert not service.exists(image.shortcode)


# -------------------------------
# 4. Orphan sweep
# -------------------------------


def test_sweep_removes_orphans_only(service, dao, upload_dir):
    live = service.create(PNG, 'image/png')
    gone = service.create(PNG, 'image/png')
    dao.delete(gone.shortcode)  # e.g. expired while its file stayed behind
    stray = upload_dir / 'zzzzzz.gif'
    stray.write_bytes(b'GIF89a')
    for path in upload_dir.iterdir():
        age(path)

    assert service.sweep_orphans() == 2

    assert [path.name for path in upload_dir.iterdir()] == [os.path.basename(live.file_path)]


def test_sweep_respects_grace_period(service, upload_dir):
    young = upload_dir / 'zzzzzz.png'
    young.write_bytes(PNG)

    assert service.sweep_orphans() == 0
    assert young.exists()


def test_sweep_ignores_unrelated_entries(service, upload_dir):
    unrelated = [upload_dir / 'README', upload_dir / 'notes.txt', upload_dir / '.gitkeep']
    for path in unrelated:
        path.write_text('keep me')
        age(path)
    (upload_dir / 'abcdef.d').mkdir()

    assert service.sweep_orphans() == 0
    assert all(path.exists() for path in unrelated)


def test_sweep_removes_file_not_named_by_its_record(service, upload_dir):
    image = service.create(PNG, 'image/png')
    twin = upload_dir / f'{image.shortcode}.jpg'
    twin.write_bytes(b'\xff\xd8')
    age(twin)
    age(image.file_path)

    assert service.sweep_orphans() == 1
    assert os.path.exists(image.file_path)
    assert not twin.exists()


def test_sweep_aborts_on_data_store_error(mock_dao, upload_dir):
    dao = mock_dao(ImageModel)
    dao.get.side_effect = DataStoreError("Can't connect to Redis at localhost:6379/0.")
    service = ImageService(dao, upload_dir=upload_dir)
    orphan = upload_dir / 'zzzzzz.png'
    orphan.write_bytes(PNG)
    age(orphan)

    with pytest.raises(DataStoreError):
        service.sweep_orphans()

    assert orphan.exists()
