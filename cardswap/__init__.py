"""
CardSwap - trading-card character swap on Gemini native image generation.

Upload a reference card and a character image; the character is composited
into the card's frame, background and style, then refined with free-text
edits, one request at a time.

Components:

1. ingest        - uploaded/dropped bytes -> ImageAsset (decoded size, MIME, preview)
2. aspect        - nearest supported output ratio (1:1, 3:4, 4:3, 9:16, 16:9)
3. prompts       - structured generation/refinement instructions, rendered per locale
4. gemini_native - GenerationClient / RefinementClient over google-genai
5. session       - immutable SessionState + SessionController (single-flight)
"""

from .aspect import AspectRatio, resolve_closest
from .config import CardSwapConfig, get_config, list_variants
from .gemini_native import GenerationClient, RefinementClient
from .ingest import ingest_bytes, ingest_drop, ingest_file
from .models import GenerationRequest, ImageAsset, RefinementRequest
from .session import Phase, SessionController, SessionState, Slot

__all__ = [
    "AspectRatio",
    "resolve_closest",
    "CardSwapConfig",
    "get_config",
    "list_variants",
    "GenerationClient",
    "RefinementClient",
    "ingest_bytes",
    "ingest_drop",
    "ingest_file",
    "GenerationRequest",
    "ImageAsset",
    "RefinementRequest",
    "Phase",
    "SessionController",
    "SessionState",
    "Slot",
]
