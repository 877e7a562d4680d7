"""Conversation turns and their attachments.

A Turn is one authored message unit (user or assistant). Turns are frozen:
once committed to a conversation they never change, and attachment bytes
travel with them untouched through compaction, retry and storage.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import re
from dataclasses import dataclass
from enum import Enum

# "data:image/png;base64,...." as stored by the web client
_DATA_URL_RE = re.compile(r"^data:(?P<media_type>[^;,]+)(?:;[^,]*)?;base64,(?P<data>.*)$", re.DOTALL)


class Role(str, Enum):
    """Author of a turn."""

    USER = "user"
    ASSISTANT = "assistant"

    @classmethod
    def parse(cls, value: str) -> "Role":
        """Parse a stored role; the web client wrote assistant turns as "model"."""
        if value == "model":
            return cls.ASSISTANT
        return cls(value)


@dataclass(frozen=True)
class Attachment:
    """Opaque binary blob sent alongside a turn (usually an image).

    Attributes:
        data: Raw bytes
        media_type: MIME type, e.g. "image/png"

    """

    data: bytes
    media_type: str

    @property
    def digest(self) -> str:
        """Content address of the blob."""
        return hashlib.sha256(self.data).hexdigest()

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.media_type};base64,{encoded}"

    @classmethod
    def from_data_url(cls, url: str) -> "Attachment":
        """Decode a base64 data URL.

        Raises:
            ValueError: If the URL is not a base64 data URL

        """
        match = _DATA_URL_RE.match(url.strip())
        if not match:
            raise ValueError("Not a base64 data URL")
        try:
            data = base64.b64decode(match.group("data"), validate=True)
        except binascii.Error as e:
            raise ValueError(f"Invalid base64 payload: {e}") from e
        return cls(data=data, media_type=match.group("media_type"))

    def to_dict(self) -> dict:
        return {
            "data": base64.b64encode(self.data).decode("ascii"),
            "media_type": self.media_type,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Attachment":
        return cls(data=base64.b64decode(data["data"]), media_type=data["media_type"])


@dataclass(frozen=True)
class Turn:
    """A single message in a conversation.

    Attributes:
        role: Who authored the turn
        text: Message text (may be empty when an attachment is present)
        attachment: Optional binary attachment
        is_summary: True for the synthetic recap produced by compaction

    """

    role: Role
    text: str = ""
    attachment: Attachment | None = None
    is_summary: bool = False

    @classmethod
    def user(cls, text: str = "", attachment: Attachment | None = None) -> "Turn":
        return cls(role=Role.USER, text=text, attachment=attachment)

    @classmethod
    def assistant(cls, text: str) -> "Turn":
        return cls(role=Role.ASSISTANT, text=text)

    @classmethod
    def summary(cls, text: str) -> "Turn":
        return cls(role=Role.ASSISTANT, text=text, is_summary=True)

    @property
    def is_empty(self) -> bool:
        """True when the turn carries neither text nor an attachment."""
        return not self.text.strip() and self.attachment is None

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "role": self.role.value,
            "text": self.text,
            "attachment": self.attachment.to_dict() if self.attachment else None,
            "is_summary": self.is_summary,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Turn":
        """Create from dictionary.

        Also accepts the web client's shape, where the attachment is an
        ``image`` data URL.
        """
        attachment = None
        if data.get("attachment"):
            attachment = Attachment.from_dict(data["attachment"])
        elif data.get("image"):
            attachment = Attachment.from_data_url(data["image"])
        return cls(
            role=Role.parse(data["role"]),
            text=data.get("text", ""),
            attachment=attachment,
            is_summary=data.get("is_summary", False),
        )
