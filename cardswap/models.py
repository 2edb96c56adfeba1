"""
Data model: images held by the client and the per-action request objects.
"""

import base64
from dataclasses import dataclass
from typing import Optional

from .aspect import AspectRatio


@dataclass(frozen=True)
class ImageAsset:
    """One decoded input image. Replaced wholesale, never mutated."""
    base64: str
    mime_type: str
    width: int
    height: int
    preview_url: str
    filename: Optional[str] = None

    @property
    def data(self) -> bytes:
        return base64.b64decode(self.base64)

    def describe(self) -> dict:
        return {
            "filename": self.filename,
            "mime_type": self.mime_type,
            "width": self.width,
            "height": self.height,
        }


@dataclass(frozen=True)
class GenerationRequest:
    """Inputs for one generate action. Built fresh each time."""
    reference: ImageAsset
    character: ImageAsset
    aspect_ratio: AspectRatio
    character_name: str = ""
    user_instructions: str = ""


@dataclass(frozen=True)
class RefinementRequest:
    """Edit of the current generated image; ``image`` may be a data URI or bare base64."""
    image: str
    instruction: str
    aspect_ratio: AspectRatio

    def __post_init__(self):
        if not self.instruction or not self.instruction.strip():
            raise ValueError("instruction must be non-empty")
