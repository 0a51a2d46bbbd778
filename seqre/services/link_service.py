from collections.abc import Callable

from seqre.models import LinkModel
from seqre.exceptions import ValidationError
from seqre.services.base import RecordService
from seqre.utils.validators import validate_target_url


class LinkService(RecordService):
    """Short links, optionally encrypted and/or one-time.

    Unencrypted targets go through `url_validator` (SSRF check by default)
    before anything is stored. Encrypted targets are opaque to the server
    and only checked for envelope framing.
    """

    model = LinkModel

    def __init__(self, dao, url_validator: Callable[[str], str] | None = validate_target_url, **kwargs):
        super().__init__(dao, **kwargs)
        self.url_validator = url_validator

    def create(self, url: str, encrypted: bool = False, onetime: bool = False) -> LinkModel:
        """Store a link and return it (its short code is the public identifier)

        Raises:
            ValidationError:
                If the URL is empty or rejected by the URL validator.
            EncryptionError:
                If `encrypted` is set but the URL is not an envelope.
        """
        if not url:
            raise ValidationError('URL is required.')

        if encrypted:
            self._require_envelope(url, 'Encrypted URL')
        elif self.url_validator is not None:
            self.url_validator(url)

        return self._store(url=url, encrypted=encrypted, onetime=onetime)
