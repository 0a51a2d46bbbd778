"""Disclosure policy: does reading a record consume it?

Per record state machine:

    Live --(consuming read)--> Consumed
    Live --(expires_at passes)--> Expired

Consumed and Expired look the same to callers (RecordNotFoundError).

Policies:
    ALWAYS_CONSUME:
        Every successful read destroys the record (secrets).
    CONSUME_IF_FLAGGED:
        A read destroys the record only when it is flagged one-time
        (links, pastes, images). Otherwise it persists until expiry.
"""

from enum import StrEnum

from seqre.models import RecordKind, RecordModel


class DisclosurePolicy(StrEnum):
    ALWAYS_CONSUME = 'always_consume'
    CONSUME_IF_FLAGGED = 'consume_if_flagged'


POLICIES: dict[RecordKind, DisclosurePolicy] = {
    RecordKind.SECRET: DisclosurePolicy.ALWAYS_CONSUME,
    RecordKind.LINK: DisclosurePolicy.CONSUME_IF_FLAGGED,
    RecordKind.PASTE: DisclosurePolicy.CONSUME_IF_FLAGGED,
    RecordKind.IMAGE: DisclosurePolicy.CONSUME_IF_FLAGGED,
}


def policy_for(kind: RecordKind) -> DisclosurePolicy:
    return POLICIES[RecordKind(kind)]


def consumes_on_read(record: RecordModel, encrypted_implies_onetime: bool = False) -> bool:
    """Decide whether a successful read of `record` must delete it

    Args:
        record (RecordModel):
            Record being read.
        encrypted_implies_onetime (bool):
            Treat encrypted records as one-time even when the flag is unset.
            Off by default: encryption and one-time are independent flags.

    Returns:
        bool: True if the read consumes the record.
    """
    if policy_for(record.kind) is DisclosurePolicy.ALWAYS_CONSUME:
        return True
    return record.onetime or (encrypted_implies_onetime and record.encrypted)
