from __future__ import annotations

import asyncio
import base64
import logging
import math
import mimetypes
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Sequence

from casetracker.dates import utcnow
from casetracker.errors import AttachmentTooLargeError
from casetracker.types import Attachment

logger = logging.getLogger(__name__)

DEFAULT_MAX_BYTES = 10 * 1024 * 1024


@dataclass(slots=True)
class Upload:
    """A raw file waiting to be encoded into an attachment."""

    name: str
    mime_type: str | None
    content: bytes

    @property
    def size_bytes(self) -> int:
        return len(self.content)


def upload_from_path(path: Path) -> Upload:
    mime_type, _ = mimetypes.guess_type(path.name)
    return Upload(name=path.name, mime_type=mime_type, content=path.read_bytes())


def validate_uploads(uploads: Sequence[Upload], max_bytes: int = DEFAULT_MAX_BYTES) -> None:
    for upload in uploads:
        if upload.size_bytes > max_bytes:
            raise AttachmentTooLargeError(upload.name, upload.size_bytes, max_bytes)


async def encode_uploads(
    uploads: Sequence[Upload],
    *,
    max_bytes: int = DEFAULT_MAX_BYTES,
    clock: Callable[[], datetime] = utcnow,
    id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
) -> list[Attachment]:
    """
    Encode uploads as data-URL attachments.

    Every upload is size-checked before any encoding starts, so one oversized file rejects the
    whole batch and nothing partial reaches a case.
    """

    validate_uploads(uploads, max_bytes)
    attachments: list[Attachment] = []
    for upload in uploads:
        data = await asyncio.to_thread(_data_url, upload)
        attachments.append(
            Attachment(
                id=id_factory(),
                name=upload.name,
                mime_type=upload.mime_type,
                size_bytes=upload.size_bytes,
                data=data,
                uploaded_at=clock(),
            )
        )
    logger.debug("Encoded %s attachments", len(attachments))
    return attachments


def _data_url(upload: Upload) -> str:
    mime_type = upload.mime_type or "application/octet-stream"
    encoded = base64.b64encode(upload.content).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def format_file_size(size_bytes: int) -> str:
    if size_bytes <= 0:
        return "0 Bytes"
    units = ("Bytes", "KB", "MB", "GB")
    index = min(int(math.floor(math.log(size_bytes, 1024))), len(units) - 1)
    value = round(size_bytes / 1024**index, 2)
    return f"{value:g} {units[index]}"
