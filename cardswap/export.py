"""Download of the generated card as a PNG file."""

import base64
import logging
import time
from io import BytesIO
from pathlib import Path
from typing import Optional, Union

from PIL import Image

from .gemini_native import strip_data_uri_prefix

log = logging.getLogger("cardswap.export")

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def download_filename(timestamp_ms: Optional[int] = None) -> str:
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"swapped-card-{timestamp_ms}.png"


def png_bytes(image: str) -> bytes:
    """Decode a data URI (or bare base64) and make sure the bytes are PNG."""
    data = base64.b64decode(strip_data_uri_prefix(image))
    if data.startswith(PNG_SIGNATURE):
        return data
    # Model returned another format under the png label; re-encode
    with Image.open(BytesIO(data)) as img:
        buf = BytesIO()
        img.save(buf, "PNG")
        return buf.getvalue()


def save_png(
    image: str,
    directory: Union[str, Path] = ".",
    timestamp_ms: Optional[int] = None,
) -> Path:
    out_dir = Path(directory).expanduser()
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / download_filename(timestamp_ms)
    out_path.write_bytes(png_bytes(image))
    log.info(f"Saved generated card to {out_path}")
    return out_path
