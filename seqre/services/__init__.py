from seqre.services.base import RecordService
from seqre.services.link_service import LinkService
from seqre.services.paste_service import PasteService
from seqre.services.image_service import ImageService
from seqre.services.secret_service import SecretService
from seqre.services.cleanup import CleanupWorker


__all__ = [
    'RecordService',
    'LinkService',
    'PasteService',
    'ImageService',
    'SecretService',
    'CleanupWorker',
]
