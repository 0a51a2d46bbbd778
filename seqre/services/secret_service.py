from seqre.models import SecretModel
from seqre.services.base import RecordService


class SecretService(RecordService):
    """One-time secrets. Every successful read destroys the secret."""

    model = SecretModel

    def create(self, data: str) -> SecretModel:
        """Store an encrypted secret

        Args:
            data (str):
                Envelope sealed by the sender. The key stays with the sender.

        Raises:
            EncryptionError:
                If `data` is not a base64 envelope.
        """
        self._require_envelope(data, 'Secret')
        return self._store(data=data, encrypted=True, onetime=True)
