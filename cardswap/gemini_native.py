"""
Gemini native card generation - google-genai SDK integration.

Two clients share one call path:

- GenerationClient: reference card + character image -> new card
- RefinementClient: current card + edit instruction -> edited card

Both send ``[instruction text, inline image(s)...]`` to the image model with
``image_config={aspect_ratio, image_size="2K"}`` through the SDK's async
surface, and read the first candidate back:

    inline image  -> "data:image/png;base64,..."
    text only     -> ModelRefusalError(text)
    neither       -> EmptyResponseError

Usage:
    from cardswap.gemini_native import GenerationClient

    client = GenerationClient()
    data_uri = await client.generate(api_key, request)
"""

import base64
import logging
import re
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from google import genai
from google.genai import types

from .aspect import AspectRatio
from .config import CardSwapConfig, get_config
from .errors import (
    AuthenticationFailure,
    CredentialMissingError,
    EmptyResponseError,
    ModelRefusalError,
    is_authentication_failure,
)
from .models import GenerationRequest, RefinementRequest
from .prompts import build_generation_instruction, build_refinement_instruction

log = logging.getLogger("cardswap.gemini")

PNG_DATA_URI_PREFIX = "data:image/png;base64,"
_DATA_URI_PREFIX = re.compile(r"^data:image/(png|jpeg|webp);base64,")


def strip_data_uri_prefix(image: str) -> str:
    """Return the bare base64 payload of a png/jpeg/webp data URI (or bare input)."""
    return _DATA_URI_PREFIX.sub("", image, count=1)


def _response_parts(response: Any) -> List[Any]:
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return []
    content = getattr(candidates[0], "content", None)
    if content is None:
        return []
    return list(getattr(content, "parts", None) or [])


def extract_image_data_uri(response: Any) -> str:
    """
    Pull the generated image out of a generate_content response.

    The first inline payload wins. Without one, the first text part is raised
    verbatim as a refusal.
    """
    parts = _response_parts(response)

    for part in parts:
        inline = getattr(part, "inline_data", None)
        if inline is not None and inline.data:
            image_data = inline.data
            if isinstance(image_data, bytes):
                image_data = base64.b64encode(image_data).decode("ascii")
            return PNG_DATA_URI_PREFIX + image_data

    for part in parts:
        text = getattr(part, "text", None)
        if text:
            raise ModelRefusalError(text)

    raise EmptyResponseError("No image data found in response")


class _GeminiCardClient:
    """Shared SDK plumbing for the generation and refinement clients."""

    def __init__(
        self,
        config: Optional[CardSwapConfig] = None,
        client_factory: Optional[Callable[[str], Any]] = None,
    ):
        self.config = config or get_config()
        self._client_factory = client_factory or (lambda key: genai.Client(api_key=key))
        self._clients: Dict[str, Any] = {}

    def _get_client(self, api_key: str):
        """Lazy-init one genai client per credential."""
        if not api_key:
            raise CredentialMissingError("No Gemini API key supplied")
        if api_key not in self._clients:
            self._clients[api_key] = self._client_factory(api_key)
        return self._clients[api_key]

    def _build_config(self, aspect_ratio: AspectRatio) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            response_modalities=["IMAGE", "TEXT"],
            image_config=types.ImageConfig(
                aspect_ratio=aspect_ratio.value,
                image_size=self.config.image_size,
            ),
        )

    async def _call(self, api_key: str, parts: List[types.Part], aspect_ratio: AspectRatio) -> str:
        client = self._get_client(api_key)
        contents = [types.Content(role="user", parts=parts)]

        started_at = datetime.now()
        try:
            response = await client.aio.models.generate_content(
                model=self.config.image_model,
                contents=contents,
                config=self._build_config(aspect_ratio),
            )
        except Exception as e:
            if is_authentication_failure(e):
                raise AuthenticationFailure(str(e), status_code=getattr(e, "code", None)) from e
            raise
        elapsed = (datetime.now() - started_at).total_seconds()

        data_uri = extract_image_data_uri(response)
        log.info(
            f"{self.config.image_model} returned image "
            f"({aspect_ratio.value}, {self.config.image_size}) in {elapsed:.1f}s"
        )
        return data_uri


class GenerationClient(_GeminiCardClient):
    """Composite the character image into the reference card's style."""

    async def generate(self, api_key: str, request: GenerationRequest) -> str:
        instruction = build_generation_instruction(request, self.config.image_size)
        parts = [
            types.Part.from_text(text=instruction.render(self.config.locale)),
            types.Part.from_bytes(
                data=request.reference.data, mime_type=request.reference.mime_type
            ),
            types.Part.from_bytes(
                data=request.character.data, mime_type=request.character.mime_type
            ),
        ]
        log.debug(
            f"Generating card: ratio={instruction.aspect_ratio.value} "
            f"name={instruction.has_character_name} pose={instruction.has_pose_instruction}"
        )
        return await self._call(api_key, parts, request.aspect_ratio)


class RefinementClient(_GeminiCardClient):
    """Apply one edit instruction to the current generated card."""

    async def refine(self, api_key: str, request: RefinementRequest) -> str:
        instruction = build_refinement_instruction(request, self.config.image_size)
        image_bytes = base64.b64decode(strip_data_uri_prefix(request.image))
        parts = [
            types.Part.from_text(text=instruction.render(self.config.locale)),
            types.Part.from_bytes(data=image_bytes, mime_type="image/png"),
        ]
        log.debug(f"Refining card: ratio={instruction.aspect_ratio.value}")
        return await self._call(api_key, parts, request.aspect_ratio)
