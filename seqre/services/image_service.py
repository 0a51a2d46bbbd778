"""Image records and their side files

Image bytes live in a file under the upload directory, named after the
record's short code (e.g. `abc123.png`); the record only references it.
File and record share one lifetime:

    - creation writes the file first and removes it again if the record
      cannot be stored;
    - consuming reads and deletions remove the record first, then the file;
    - sweep_orphans() reaps files whose record is gone (expired, crashed
      before the file was removed, or any other desynchronization).

Encrypted images are stored as the raw envelope bytes (nonce, ciphertext
and tag) with a `.bin` extension and handed back base64 encoded.
"""

import os
import time
import base64
import logging
from datetime import datetime, UTC
from pathlib import Path

from seqre.constants import Cleanup, Limits, ShortCode
from seqre.models import ImageBlob, ImageModel
from seqre.exceptions import EncryptionError, ValidationError
from seqre.dao.exceptions import DataStoreError, RecordAlreadyExistsError, RecordNotFoundError
from seqre.services.base import RecordService
from seqre.utils.crypto import NONCE_SIZE, TAG_SIZE
from seqre.utils.shortener import is_valid_shortcode


logger = logging.getLogger(__name__)

EXTENSIONS = {
    'image/png': '.png',
    'image/jpeg': '.jpg',
    'image/gif': '.gif',
    'image/webp': '.webp',
}


def file_extension(content_type: str, encrypted: bool) -> str:
    if encrypted:
        return '.bin'
    return EXTENSIONS.get(content_type, '.bin')


class ImageService(RecordService):
    """Images, optionally encrypted and/or one-time

    Attributes:
        upload_dir (Path):
            Directory holding the side files. Created if missing.
        grace_period (float):
            Files younger than this many seconds are never reaped, so a
            create() that wrote its file but not yet its record is safe from
            a concurrent sweep.
    """

    model = ImageModel

    def __init__(self, dao, upload_dir: str | Path, grace_period: float = Cleanup.GRACE_PERIOD, **kwargs):
        super().__init__(dao, **kwargs)
        self.upload_dir = Path(upload_dir)
        self.grace_period = grace_period
        self.upload_dir.mkdir(mode=0o750, parents=True, exist_ok=True)

    def _write_file(self, path: Path, data: bytes) -> bool:
        """Create `path` exclusively. False if the file already exists."""
        try:
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        except FileExistsError:
            return False
        except OSError as e:
            raise DataStoreError(f'Failed to create image file {path.name}.') from e

        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(data)
        except OSError as e:
            self._remove_file(path)
            raise DataStoreError(f'Failed to write image file {path.name}.') from e
        return True

    def _remove_file(self, path: str | Path) -> bool:
        try:
            os.remove(path)
        except FileNotFoundError:
            return True
        except OSError:
            logger.error('Failed to delete image file from disk.', exc_info=True, extra={'path': str(path)})
            return False
        return True

    def create(self, data: bytes, content_type: str, encrypted: bool = False, onetime: bool = False) -> ImageModel:
        """Store an image file and its record

        Args:
            data (bytes):
                Raw image bytes, or the raw envelope bytes when `encrypted`.
            content_type (str):
                MIME type reported for the upload.

        Raises:
            ValidationError:
                If the image is empty or larger than 32 MiB.
            EncryptionError:
                If `encrypted` is set but the data is too short to be an envelope.
            RecordAlreadyExistsError:
                If no free short code was found.
            DataStoreError:
                If the file or the record cannot be written. A file written
                before a failed record write is removed again.
        """
        if not data:
            raise ValidationError('Image is empty.')
        if len(data) > Limits.IMAGE_SIZE:
            raise ValidationError(f'Image exceeds {Limits.IMAGE_SIZE} bytes.')
        if encrypted and len(data) < NONCE_SIZE + TAG_SIZE:
            raise EncryptionError('Encrypted image is too short to be an envelope.')

        extension = file_extension(content_type, encrypted)
        for attempt in range(1, ShortCode.MAX_ATTEMPTS + 1):
            image = self._draft(extension, content_type, encrypted, onetime)
            path = Path(image.file_path)
            if not self._write_file(path, data):
                logger.warning('Image file name collision, drawing a new code.', extra={'attempt': attempt})
                continue

            try:
                self.dao.insert(image)
            except RecordAlreadyExistsError:
                self._remove_file(path)
                logger.warning('Short code collision, drawing a new code.', extra={'kind': 'image', 'attempt': attempt})
                continue
            except Exception:
                self._remove_file(path)
                raise

            logger.info('Record created.', extra={'kind': 'image', 'encrypted': encrypted, 'onetime': onetime})
            return image

        raise RecordAlreadyExistsError(f'No free short code found after {ShortCode.MAX_ATTEMPTS} attempts.')

    def _draft(self, extension: str, content_type: str, encrypted: bool, onetime: bool) -> ImageModel:
        shortcode = self._shortcodes()
        now = datetime.now(UTC)
        return ImageModel(
            shortcode=shortcode,
            file_path=str(self.upload_dir / f'{shortcode}{extension}'),
            content_type=content_type,
            encrypted=encrypted,
            onetime=onetime,
            created_at=now,
            expires_at=now + self.ttl,
        )

    def retrieve(self, shortcode: str) -> ImageBlob:
        """Return an image record with its bytes, consuming it if one-time

        Encrypted images are returned base64 encoded (the envelope format).

        Raises:
            RecordNotFoundError:
                If the record is absent, expired or already consumed.
            DataStoreError:
                If the side file cannot be read.
        """
        image, consumed = self._fetch(shortcode)

        try:
            data = Path(image.file_path).read_bytes()
        except OSError as e:
            if consumed:
                logger.error(
                    'Consumed image record but could not read its file.',
                    extra={'shortcode': shortcode, 'path': image.file_path},
                )
                self._remove_file(image.file_path)
            raise DataStoreError('Failed to read image file.') from e

        if consumed and not self._remove_file(image.file_path):
            # The record is gone so the image can no longer be fetched, but its
            # bytes stay on disk until the next orphan sweep.
            logger.error('One-time image disclosed but its file was not deleted.', extra={'shortcode': shortcode})

        if image.encrypted:
            data = base64.b64encode(data)
        return ImageBlob(image=image, data=data)

    def delete(self, shortcode: str) -> None:
        """Delete an image record and its file. Idempotent."""
        try:
            image = self.dao.take(shortcode)
        except RecordNotFoundError:
            return

        logger.info('Record deleted.', extra={'kind': 'image'})
        self._remove_file(image.file_path)

    def sweep_orphans(self) -> int:
        """Delete files in the upload directory that no live record references

        Each file is judged on its own at the moment it is checked, so
        concurrent creates and deletes are harmless. Files that do not look
        like image side files are left alone. Data store errors abort the
        sweep rather than risk deleting live images.

        Returns:
            int: number of files deleted.
        """
        deleted = 0
        cutoff = time.time() - self.grace_period

        with os.scandir(self.upload_dir) as entries:
            for entry in entries:
                if not entry.is_file(follow_symlinks=False):
                    continue

                shortcode, extension = os.path.splitext(entry.name)
                if not extension or not is_valid_shortcode(shortcode):
                    continue

                try:
                    if entry.stat(follow_symlinks=False).st_mtime > cutoff:
                        continue
                except FileNotFoundError:
                    continue

                try:
                    image = self.dao.get(shortcode)
                except RecordNotFoundError:
                    image = None

                if image is not None and Path(image.file_path).name == entry.name:
                    continue

                try:
                    os.remove(entry.path)
                except FileNotFoundError:
                    continue
                except OSError:
                    logger.warning('Failed to delete orphaned file.', exc_info=True, extra={'file': entry.name})
                    continue
                deleted += 1

        if deleted:
            logger.info('Cleaned up orphaned image files.', extra={'count': deleted})
        return deleted
