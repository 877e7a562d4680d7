"""Load files from disk as turn attachments."""

from __future__ import annotations

import logging
import mimetypes
import os

from vidya.turns import Attachment

logger = logging.getLogger(__name__)

DEFAULT_MEDIA_TYPE = "application/octet-stream"


def encode_attachment(path: str, media_type: str | None = None) -> Attachment:
    """Read ``path`` into an Attachment.

    The same file always yields an equal Attachment: the bytes as stored and
    a media type guessed from the file extension.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is empty

    """
    path = os.path.expanduser(path)
    with open(path, "rb") as f:
        data = f.read()
    if not data:
        raise ValueError(f"Attachment is empty: {path}")
    if media_type is None:
        media_type = mimetypes.guess_type(path)[0] or DEFAULT_MEDIA_TYPE
    logger.debug("Encoded attachment %s (%s, %d bytes)", path, media_type, len(data))
    return Attachment(data=data, media_type=media_type)
