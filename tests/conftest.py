"""Shared pytest fixtures."""

import base64
from typing import Any

import pytest


def _b64(text: str) -> str:
    """Encode text the way Gmail does: base64url without padding."""
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


@pytest.fixture
def sample_raw_message() -> dict[str, Any]:
    """A multipart/alternative Gmail message with one PDF attachment."""
    return {
        "id": "msg_001",
        "threadId": "thread_001",
        "labelIds": ["INBOX", "UNREAD"],
        "snippet": "We&#39;d like a quotation for the new chiller",
        "internalDate": "1772182800000",
        "payload": {
            "mimeType": "multipart/mixed",
            "filename": "",
            "headers": [
                {"name": "From", "value": '"Alice Smith" <alice@example.com>'},
                {"name": "Subject", "value": "Chiller replacement quotation"},
                {"name": "Date", "value": "Fri, 27 Feb 2026 09:00:00 +0000"},
            ],
            "body": {"size": 0},
            "parts": [
                {
                    "mimeType": "multipart/alternative",
                    "filename": "",
                    "body": {"size": 0},
                    "parts": [
                        {
                            "mimeType": "text/plain",
                            "filename": "",
                            "body": {"data": _b64("Please provide a quotation for a chiller.")},
                        },
                        {
                            "mimeType": "text/html",
                            "filename": "",
                            "body": {"data": _b64("<p>Please provide a <b>quotation</b>.</p>")},
                        },
                    ],
                },
                {
                    "mimeType": "application/pdf",
                    "filename": "spec.pdf",
                    "body": {"attachmentId": "att_1", "size": 2048},
                },
            ],
        },
    }
