"""Poster image loading for attachment-style delivery.

Image fetch and resize live outside the newsletter core; this adapter only
reads the poster file the media server already wrote. A missing or
unreadable poster yields ``None`` so rendering carries on without an image.
"""

from __future__ import annotations

import hashlib
import logging
import os
from typing import Optional

from core.models import ChangeRecord, ImageAttachment

LOGGER = logging.getLogger(__name__)


def read_poster(record: ChangeRecord) -> Optional[ImageAttachment]:
    """Load ``record.poster_path`` as a uniquely named attachment."""

    path = record.poster_path
    if not path:
        return None
    try:
        with open(path, "rb") as handle:
            data = handle.read()
    except OSError as exc:
        LOGGER.warning("Poster for %s could not be read (%s): %s", record.title, path, exc)
        return None

    extension = os.path.splitext(path)[1].lower()
    content_type = "image/png" if extension == ".png" else "image/jpeg"
    # Content-derived name, stable across runs.
    name = f"image_{hashlib.sha1(data).hexdigest()[:16]}{extension or '.jpg'}"
    return ImageAttachment(name=name, data=data, content_type=content_type)
