"""Content normalizer — flattens a Gmail MIME tree into a NormalizedEmail."""

import base64
import binascii
import html
import logging
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from html.parser import HTMLParser
from typing import Any

from src.gmail.types import Attachment, NormalizedEmail, RawMessage

logger = logging.getLogger(__name__)

_NO_SUBJECT = "No Subject"
_UNREAD = "UNREAD"
_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)

# "Name" <addr>, Name <addr> or <addr>
_SENDER_RE = re.compile(r"^(.*?)\s*<([^<>]+)>\s*$")

# Elements whose text content is never rendered
_INVISIBLE_TAGS = frozenset({"script", "style", "head", "title"})


# ── HTML stripper ───────────────────────────────────────────────────────────────


class _HTMLStripper(HTMLParser):
    """HTMLParser subclass that collects visible text nodes."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self._parts: list[str] = []
        self._hidden_depth = 0

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag in _INVISIBLE_TAGS:
            self._hidden_depth += 1

    def handle_endtag(self, tag: str) -> None:
        if tag in _INVISIBLE_TAGS and self._hidden_depth:
            self._hidden_depth -= 1

    def handle_data(self, data: str) -> None:
        if self._hidden_depth:
            return
        text = data.strip()
        if text:
            self._parts.append(text)

    def get_text(self) -> str:
        return " ".join(self._parts)


def strip_html(text: str) -> str:
    """Return the visible text of an HTML document, space-joined."""
    stripper = _HTMLStripper()
    stripper.feed(text)
    stripper.close()
    return stripper.get_text()


# ── Decoding ────────────────────────────────────────────────────────────────────


def decode_base64url(data: str) -> str:
    """Decode a Gmail base64url payload segment to text.

    Gmail omits the ``=`` padding.  A segment that is not valid base64 or not
    valid UTF-8 decodes to an empty string so one bad part never sinks the
    whole message.
    """
    padded = data + "=" * (-len(data) % 4)
    try:
        return base64.urlsafe_b64decode(padded).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError) as exc:
        logger.debug("Could not decode payload segment: %s", exc)
        return ""


# ── Header helpers ──────────────────────────────────────────────────────────────


def header_value(headers: list[dict[str, Any]], name: str) -> str | None:
    """Return the first header called `name` (case-insensitive), or None."""
    wanted = name.lower()
    for header in headers:
        if str(header.get("name", "")).lower() == wanted:
            return str(header.get("value", ""))
    return None


def parse_sender(value: str) -> tuple[str, str | None]:
    """Split a From header into (address, display name).

    Without an angle-bracket form the whole header is the address.
    """
    value = value.strip()
    match = _SENDER_RE.match(value)
    if not match:
        return value, None
    name = match.group(1).replace('"', "").strip()
    return match.group(2).strip(), name or None


def _received_at(raw: RawMessage, headers: list[dict[str, Any]]) -> datetime:
    internal_date = raw.get("internalDate")
    if internal_date:
        try:
            return datetime.fromtimestamp(int(internal_date) / 1000, tz=timezone.utc)
        except (TypeError, ValueError, OverflowError):
            pass
    date_header = header_value(headers, "Date")
    if date_header:
        try:
            parsed = parsedate_to_datetime(date_header)
        except (TypeError, ValueError):
            parsed = None
        if parsed is not None:
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed.astimezone(timezone.utc)
    return _EPOCH


# ── MIME walks ──────────────────────────────────────────────────────────────────


def _first_text(part: dict[str, Any], mime_type: str) -> str:
    """Depth-first search for the first non-empty leaf of `mime_type`."""
    if part.get("mimeType", "").lower() == mime_type and not part.get("filename"):
        data = (part.get("body") or {}).get("data")
        if data:
            text = decode_base64url(data)
            if mime_type == "text/html":
                text = strip_html(text)
            if text.strip():
                return text
    for sub in part.get("parts") or []:
        text = _first_text(sub, mime_type)
        if text:
            return text
    return ""


def extract_body(payload: dict[str, Any]) -> str:
    """Return the message body: first text/plain leaf, else stripped text/html."""
    body = _first_text(payload, "text/plain") or _first_text(payload, "text/html")
    return body.strip()


def extract_attachments(payload: dict[str, Any]) -> list[Attachment]:
    """Collect every part with a filename and an attachment ID, in tree order."""
    attachments: list[Attachment] = []

    def walk(parts: list[dict[str, Any]]) -> None:
        for part in parts:
            body = part.get("body") or {}
            if part.get("filename") and body.get("attachmentId"):
                attachments.append(Attachment(
                    filename=str(part["filename"]),
                    mime_type=str(part.get("mimeType", "")),
                    size_bytes=int(body.get("size") or 0),
                    attachment_id=str(body["attachmentId"]),
                ))
            if part.get("parts"):
                walk(part["parts"])

    walk(payload.get("parts") or [])
    return attachments


# ── Entry point ─────────────────────────────────────────────────────────────────


def normalize(raw: RawMessage) -> NormalizedEmail:
    """Map a full Gmail message to a NormalizedEmail.

    Missing headers fall back to defaults ("No Subject", empty sender) rather
    than raising, so any message Gmail hands back can be classified.
    """
    payload = raw.get("payload") or {}
    headers = payload.get("headers") or []

    from_email, from_name = parse_sender(header_value(headers, "From") or "")

    return NormalizedEmail(
        id=str(raw.get("id", "")),
        thread_id=str(raw.get("threadId", "")),
        subject=header_value(headers, "Subject") or _NO_SUBJECT,
        from_email=from_email,
        from_name=from_name,
        body_text=extract_body(payload),
        snippet=html.unescape(str(raw.get("snippet") or "")),
        attachments=tuple(extract_attachments(payload)),
        received_at=_received_at(raw, headers),
        is_unread=_UNREAD in (raw.get("labelIds") or []),
    )
