"""Shared fixtures for CardSwap tests."""

import asyncio
import base64
import struct
import sys
import zlib
from io import BytesIO
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from PIL import Image

# Add parent directory for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from cardswap.config import CardSwapConfig
from cardswap.credentials import KeyValueStore, ManualCredentialProvider, STORED_KEY_NAME
from cardswap.session import SessionController


# Configure pytest-asyncio marker
def pytest_configure(config):
    config.addinivalue_line("markers", "asyncio: mark test as async")


# =============================================================================
# IMAGES
# =============================================================================

def make_image_bytes(width: int, height: int, fmt: str = "PNG", color=(200, 40, 40)) -> bytes:
    buf = BytesIO()
    Image.new("RGB", (width, height), color).save(buf, fmt)
    return buf.getvalue()


def data_uri(data: bytes, mime: str = "image/png") -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def _png_chunk(kind: bytes, payload: bytes) -> bytes:
    return struct.pack(">I", len(payload)) + kind + payload + struct.pack(">I", zlib.crc32(kind + payload))


def oversized_png_header(width: int = 20000, height: int = 20000) -> bytes:
    """A PNG whose IHDR claims more pixels than Pillow will open; no pixel data."""
    ihdr = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    return (
        b"\x89PNG\r\n\x1a\n"
        + _png_chunk(b"IHDR", ihdr)
        + _png_chunk(b"IDAT", zlib.compress(b""))
        + _png_chunk(b"IEND", b"")
    )


@pytest.fixture
def png_800x600():
    return make_image_bytes(800, 600)


@pytest.fixture
def reference_png():
    return make_image_bytes(1200, 1600)


@pytest.fixture
def character_png():
    return make_image_bytes(512, 512, color=(30, 90, 200))


# =============================================================================
# GEMINI RESPONSES
# =============================================================================

def image_part(data: bytes):
    return SimpleNamespace(inline_data=SimpleNamespace(data=data, mime_type="image/png"), text=None)


def text_part(text: str):
    return SimpleNamespace(inline_data=None, text=text)


def fake_response(*parts):
    return SimpleNamespace(
        candidates=[SimpleNamespace(content=SimpleNamespace(parts=list(parts)))]
    )


def fake_genai_client(*responses):
    """MagicMock shaped like genai.Client with an async generate_content."""
    client = MagicMock()
    client.aio.models.generate_content = AsyncMock(side_effect=list(responses))
    return client


class FakeAPIError(Exception):
    """Stand-in for google.genai.errors.APIError (carries an HTTP code)."""

    def __init__(self, code: int, message: str):
        super().__init__(f"{code} {message}")
        self.code = code
        self.message = message


# =============================================================================
# SESSION
# =============================================================================

class StubGenerator:
    """Records calls; returns queued results or raises queued exceptions."""

    def __init__(self, *outcomes, gate: asyncio.Event = None):
        self.outcomes = list(outcomes)
        self.calls = []
        self.gate = gate

    async def _next(self, api_key, request):
        self.calls.append((api_key, request))
        if self.gate is not None:
            await self.gate.wait()
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def generate(self, api_key, request):
        return await self._next(api_key, request)

    async def refine(self, api_key, request):
        return await self._next(api_key, request)


@pytest.fixture
def config(tmp_path):
    return CardSwapConfig(home_dir=tmp_path / "home", output_dir=str(tmp_path / "out"), locale="en")


@pytest.fixture
def store(config):
    return KeyValueStore(config.settings_file)


@pytest.fixture
def stored_key(store):
    store.set(STORED_KEY_NAME, "test-key")
    return "test-key"


@pytest.fixture
def make_controller(config, store):
    def _make(generator=None, refiner=None, provider=None):
        return SessionController(
            config,
            provider=provider or ManualCredentialProvider(store),
            generator=generator or StubGenerator(),
            refiner=refiner or StubGenerator(),
        )
    return _make


@pytest.fixture(autouse=True)
def no_host_key(monkeypatch):
    """Keep a developer's real Gemini key out of the tests."""
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
