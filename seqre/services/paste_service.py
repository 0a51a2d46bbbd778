from seqre.constants import Limits
from seqre.models import PasteModel, RecordModel
from seqre.policy import consumes_on_read
from seqre.exceptions import ValidationError
from seqre.services.base import RecordService


class PasteService(RecordService):
    """Text and code pastes, optionally encrypted and/or one-time.

    Args:
        encrypted_implies_onetime (bool):
            Consume encrypted pastes on first read even when the sender did
            not ask for one-time semantics. Off by default, where the
            `encrypted` and `onetime` flags are independent as for links and
            images.
    """

    model = PasteModel

    def __init__(self, dao, encrypted_implies_onetime: bool = False, **kwargs):
        super().__init__(dao, **kwargs)
        self.encrypted_implies_onetime = encrypted_implies_onetime

    def consumes(self, record: RecordModel) -> bool:
        return consumes_on_read(record, encrypted_implies_onetime=self.encrypted_implies_onetime)

    def create(self, content: str, language: str = '', encrypted: bool = False, onetime: bool = False) -> PasteModel:
        """Store a paste

        Raises:
            ValidationError:
                If the content is longer than 1048576 characters or empty, or the language
                tag is longer than 50 characters.
            EncryptionError:
                If `encrypted` is set but the content is not an envelope.
        """
        if not content:
            raise ValidationError('Paste content is required.')
        if len(content) > Limits.PASTE_CONTENT:
            raise ValidationError(f'Paste content exceeds {Limits.PASTE_CONTENT} characters.')
        if len(language) > Limits.PASTE_LANGUAGE:
            raise ValidationError(f'Language tag exceeds {Limits.PASTE_LANGUAGE} characters.')
        if encrypted:
            self._require_envelope(content, 'Encrypted paste')

        return self._store(content=content, language=language, encrypted=encrypted, onetime=onetime)
