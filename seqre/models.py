"""Record models stored behind short codes.

Every stored item shares the RecordModel shape (short code, flags and
lifetime) and adds its kind-specific payload. Models are immutable: only
the existence of a record changes over its lifetime, never its content.

Classes:
    RecordKind:
        Content kinds, also used as the data store namespace.
    RecordModel:
        Common base of all record kinds.
    LinkModel, PasteModel, ImageModel, SecretModel:
        Kind-specific records.
    RecordSummary:
        Payload-free view of a record used for confirmation steps.

Example:
    >>> from datetime import datetime, timedelta, UTC
    >>> now = datetime.now(UTC)
    >>> link = LinkModel(shortcode='abc123', url='https://example.com', created_at=now, expires_at=now + timedelta(days=7))
    >>> LinkModel.from_dict(link.to_dict()) == link
    True
"""

import dataclasses
from dataclasses import dataclass
from datetime import datetime, timedelta, UTC
from enum import StrEnum
from typing import Any, ClassVar


class RecordKind(StrEnum):
    LINK = 'link'
    PASTE = 'paste'
    IMAGE = 'image'
    SECRET = 'secret'


# fmt: off
@dataclass(frozen=True, kw_only=True)
class RecordModel:
    kind: ClassVar[RecordKind]

    shortcode: str              # Unique 6-character public identifier
    created_at: datetime        # Creation time (UTC)
    expires_at: datetime        # After this moment the record is gone
    encrypted: bool = False     # Payload is a sealed envelope
    onetime: bool = False       # First successful read destroys the record
# fmt: on

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.expires_at <= (now or datetime.now(UTC))

    def ttl(self, now: datetime | None = None) -> timedelta:
        """Remaining lifetime (negative once expired)."""
        return self.expires_at - (now or datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Serialize into a JSON-compatible dictionary."""
        data = dataclasses.asdict(self)
        data['kind'] = str(self.kind)
        data['created_at'] = self.created_at.isoformat()
        data['expires_at'] = self.expires_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RecordModel":
        """Deserialize a dictionary produced by to_dict()

        Raises:
            ValueError:
                If the data belongs to another record kind or is malformed.
        """
        data = dict(data)
        kind = data.pop('kind', None)
        if kind != cls.kind:
            raise ValueError(f"Expected a '{cls.kind}' record (given kind: {kind!r}).")

        names = {field.name for field in dataclasses.fields(cls)}
        unknown = set(data) - names
        if unknown:
            raise ValueError(f'Unknown record fields: {", ".join(sorted(unknown))}.')

        data['created_at'] = datetime.fromisoformat(data['created_at'])
        data['expires_at'] = datetime.fromisoformat(data['expires_at'])
        return cls(**data)


@dataclass(frozen=True, kw_only=True)
class LinkModel(RecordModel):
    kind: ClassVar[RecordKind] = RecordKind.LINK

    url: str  # Target URL, or its envelope when encrypted


@dataclass(frozen=True, kw_only=True)
class PasteModel(RecordModel):
    kind: ClassVar[RecordKind] = RecordKind.PASTE

    content: str
    language: str = ''  # Optional syntax hint, e.g. "python", "json"


@dataclass(frozen=True, kw_only=True)
class ImageModel(RecordModel):
    kind: ClassVar[RecordKind] = RecordKind.IMAGE

    file_path: str  # Side file holding the image bytes
    content_type: str


@dataclass(frozen=True, kw_only=True)
class SecretModel(RecordModel):
    """Opaque secret. Always consumed on read, whatever `onetime` says."""

    kind: ClassVar[RecordKind] = RecordKind.SECRET

    data: str
    encrypted: bool = True
    onetime: bool = True


MODELS: dict[RecordKind, type[RecordModel]] = {
    model.kind: model for model in (LinkModel, PasteModel, ImageModel, SecretModel)
}


@dataclass(frozen=True)
class RecordSummary:
    """What a UI may show before the recipient decides to consume a record."""

    kind: RecordKind
    shortcode: str
    encrypted: bool
    onetime: bool
    expires_at: datetime
    language: str | None = None
    content_type: str | None = None

    @classmethod
    def from_record(cls, record: RecordModel) -> "RecordSummary":
        return cls(
            kind=record.kind,
            shortcode=record.shortcode,
            encrypted=record.encrypted,
            onetime=record.onetime,
            expires_at=record.expires_at,
            language=getattr(record, 'language', None),
            content_type=getattr(record, 'content_type', None),
        )


@dataclass(frozen=True)
class ImageBlob:
    """Image record together with the bytes read from its side file."""

    image: ImageModel
    data: bytes
