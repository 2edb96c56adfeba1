"""
File ingestion: raw uploaded or dropped bytes -> ImageAsset.

Processing flow:
    1. Read the payload (bytes, path, or file-like upload).
    2. Decode with Pillow to obtain the real pixel dimensions and format.
    3. Record the MIME type of the decoded format and build a preview data URI.

Drag-and-drop sources are filtered on their claimed MIME type before any of
this happens; file-picker sources are not, and rely on the decode step.
"""

import base64
import logging
import mimetypes
from io import BytesIO
from pathlib import Path
from typing import BinaryIO, Optional, Union

from PIL import Image, UnidentifiedImageError

from .errors import UndecodableImageError, UnreadableFileError
from .models import ImageAsset

log = logging.getLogger("cardswap.ingest")

IMAGE_MIME_PREFIX = "image/"


def accepts_drop(mime_type: Optional[str]) -> bool:
    """Whether a dropped file's claimed MIME type is eligible for ingestion."""
    return bool(mime_type) and mime_type.startswith(IMAGE_MIME_PREFIX)


def ingest_bytes(
    data: bytes,
    mime_type: Optional[str] = None,
    filename: Optional[str] = None,
) -> ImageAsset:
    """Build an ImageAsset from an in-memory payload."""
    if not data:
        raise UnreadableFileError(f"Empty payload: {filename or '<bytes>'}")

    try:
        with Image.open(BytesIO(data)) as img:
            img.verify()
        # verify() leaves the image unusable; reopen for size/format
        with Image.open(BytesIO(data)) as img:
            width, height = img.size
            fmt = img.format
    except Image.DecompressionBombError as e:
        raise UndecodableImageError(
            f"{filename or 'payload'} exceeds the decoder pixel limit: {e}"
        ) from e
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        raise UndecodableImageError(
            f"Cannot decode {filename or 'payload'} as an image: {e}"
        ) from e

    if not width or not height:
        raise UndecodableImageError(f"Image has no pixel dimensions: {filename}")

    decoded_mime = Image.MIME.get(fmt) if fmt else None
    if decoded_mime and mime_type and decoded_mime != mime_type:
        log.warning(
            f"Claimed MIME {mime_type} for {filename} but payload is {decoded_mime}; using decoded type"
        )
    effective_mime = decoded_mime or mime_type
    if not effective_mime:
        raise UndecodableImageError(f"Unknown image format: {filename}")

    encoded = base64.b64encode(data).decode("ascii")
    asset = ImageAsset(
        base64=encoded,
        mime_type=effective_mime,
        width=width,
        height=height,
        preview_url=f"data:{effective_mime};base64,{encoded}",
        filename=filename,
    )
    log.info(f"Ingested {filename or 'payload'}: {width}x{height} {effective_mime}")
    return asset


def ingest_file(source: Union[str, Path, BinaryIO], filename: Optional[str] = None) -> ImageAsset:
    """Ingest from a filesystem path or an open binary file (file-picker source)."""
    if isinstance(source, (str, Path)):
        path = Path(source).expanduser()
        filename = filename or path.name
        try:
            data = path.read_bytes()
        except OSError as e:
            raise UnreadableFileError(f"Cannot read {path}: {e}") from e
    else:
        filename = filename or getattr(source, "name", None)
        try:
            data = source.read()
        except OSError as e:
            raise UnreadableFileError(f"Cannot read {filename}: {e}") from e

    mime_type = mimetypes.guess_type(str(filename))[0] if filename else None
    return ingest_bytes(data, mime_type=mime_type, filename=filename)


def ingest_drop(
    data: bytes,
    mime_type: Optional[str],
    filename: Optional[str] = None,
) -> Optional[ImageAsset]:
    """Ingest a dropped file; non-image drops are ignored and return None."""
    if not accepts_drop(mime_type):
        log.debug(f"Ignoring dropped file {filename} with type {mime_type!r}")
        return None
    return ingest_bytes(data, mime_type=mime_type, filename=filename)
