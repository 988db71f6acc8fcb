"""Data types shared across Gmail client and processing modules."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

#: A message exactly as returned by ``users.messages.get(format=full)``:
#: ``id``, ``threadId``, ``labelIds``, ``snippet``, ``internalDate`` and the
#: ``payload`` MIME tree (``mimeType``, ``filename``, ``headers``, ``body``,
#: ``parts``).
RawMessage = dict[str, Any]


@dataclass(frozen=True)
class Attachment:
    """An attachment reference found while walking a message's MIME tree.

    Only the reference is kept; the bytes live behind ``attachment_id`` and
    are fetched separately by whoever needs them.
    """

    filename: str
    mime_type: str
    size_bytes: int
    attachment_id: str


@dataclass(frozen=True)
class NormalizedEmail:
    """A Gmail message reduced to plain text, sender and attachment list.

    Built by ``src.processing.normalizer.normalize`` from a RawMessage and
    recomputed rather than mutated.  Consumed by:
      - the relevance classifier  (subject + body_text + snippet)
      - callers of discover_relevant_messages  (quotation drafting)
    """

    id: str
    thread_id: str
    subject: str
    from_email: str
    body_text: str
    snippet: str
    received_at: datetime
    is_unread: bool = False
    from_name: str | None = None
    attachments: tuple[Attachment, ...] = field(default_factory=tuple)
