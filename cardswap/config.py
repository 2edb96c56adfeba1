"""
CardSwap configuration.

Reads from ~/.cardswap/config.json and environment variables.
The two product variants are profiles of the same session state machine:

  standalone - manual key entry allowed (host key used when present),
               cost display, Japanese copy, link back to the author's site
  studio     - host-managed key only, no cost display, English copy
"""

import json
import math
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional


# ── Product variants ────────────────────────────────────────────

VARIANTS: Dict[str, dict] = {
    "standalone": {
        "locale": "ja",
        "allow_manual_key": True,
        "show_cost": True,
        "return_url": "https://gcxxblog.com/",
        "description": "Deployed tool - manual key entry, cost estimate, Japanese copy",
    },
    "studio": {
        "locale": "en",
        "allow_manual_key": False,
        "show_cost": False,
        "return_url": None,
        "description": "Host-managed key selection only, English copy",
    },
}

AVAILABLE_IMAGE_MODELS = {
    "gemini-3-pro-image-preview": {
        "description": "Best quality image generation (Gemini 3 Pro)",
        "resolutions": ["1K", "2K", "4K"],
    },
    "gemini-2.5-flash-image": {
        "description": "Fast image generation (Gemini 2.5 Flash)",
        "resolutions": ["1K", "2K"],
    },
}

DEFAULT_HOME = Path.home() / ".cardswap"


@dataclass
class CardSwapConfig:
    """Configuration for a CardSwap session."""
    variant: str = "standalone"
    locale: str = "ja"
    image_model: str = "gemini-3-pro-image-preview"
    image_size: str = "2K"
    home_dir: Path = DEFAULT_HOME
    output_dir: str = "."
    host: str = "127.0.0.1"
    port: int = 3850
    allow_manual_key: bool = True
    show_cost: bool = True
    cost_per_image_usd: float = 0.04
    exchange_rate_jpy: float = 150.0
    return_url: Optional[str] = "https://gcxxblog.com/"

    @property
    def settings_file(self) -> Path:
        return Path(self.home_dir) / "settings.json"

    @property
    def log_dir(self) -> Path:
        return Path(self.home_dir) / "logs"

    def apply_variant(self, variant_name: str):
        """Apply a named variant, overriding current settings."""
        if variant_name not in VARIANTS:
            return
        v = VARIANTS[variant_name]
        self.variant = variant_name
        self.locale = v["locale"]
        self.allow_manual_key = v["allow_manual_key"]
        self.show_cost = v["show_cost"]
        self.return_url = v["return_url"]

    def cost_in_yen(self) -> int:
        """Per-image cost rounded up to whole yen."""
        return math.ceil(round(self.cost_per_image_usd * self.exchange_rate_jpy, 6))

    def to_dict(self) -> dict:
        """Export config for logging/display."""
        return {
            "variant": self.variant,
            "locale": self.locale,
            "image_model": self.image_model,
            "image_size": self.image_size,
            "allow_manual_key": self.allow_manual_key,
            "show_cost": self.show_cost,
            "cost_per_image_usd": self.cost_per_image_usd,
            "cost_per_image_jpy": self.cost_in_yen(),
            "return_url": self.return_url,
        }


def get_config(config_path: Optional[Path] = None) -> CardSwapConfig:
    """Load config from ~/.cardswap/config.json + env vars."""
    config = CardSwapConfig()

    if os.environ.get("CARDSWAP_HOME"):
        config.home_dir = Path(os.environ["CARDSWAP_HOME"])

    config_path = config_path or Path(config.home_dir) / "config.json"
    if config_path.exists():
        try:
            data = json.loads(config_path.read_text())

            # Variant first, then individual overrides
            variant = data.get("variant")
            if variant and variant in VARIANTS:
                config.apply_variant(variant)

            if "locale" in data:
                config.locale = data["locale"]
            if "image_model" in data:
                config.image_model = data["image_model"]
            if "output_dir" in data:
                config.output_dir = data["output_dir"]
            if "allow_manual_key" in data:
                config.allow_manual_key = bool(data["allow_manual_key"])
            if "show_cost" in data:
                config.show_cost = bool(data["show_cost"])
            if "cost_per_image_usd" in data:
                config.cost_per_image_usd = float(data["cost_per_image_usd"])
            if "exchange_rate_jpy" in data:
                config.exchange_rate_jpy = float(data["exchange_rate_jpy"])
            if "return_url" in data:
                config.return_url = data["return_url"]
        except (json.JSONDecodeError, IOError):
            pass

    # Environment overrides
    if os.environ.get("CARDSWAP_VARIANT"):
        config.apply_variant(os.environ["CARDSWAP_VARIANT"])

    if os.environ.get("CARDSWAP_LOCALE"):
        config.locale = os.environ["CARDSWAP_LOCALE"]

    if os.environ.get("CARDSWAP_IMAGE_MODEL"):
        config.image_model = os.environ["CARDSWAP_IMAGE_MODEL"]

    if os.environ.get("CARDSWAP_OUTPUT_DIR"):
        config.output_dir = os.environ["CARDSWAP_OUTPUT_DIR"]

    if os.environ.get("CARDSWAP_HOST"):
        config.host = os.environ["CARDSWAP_HOST"]

    if os.environ.get("CARDSWAP_PORT"):
        config.port = int(os.environ["CARDSWAP_PORT"])

    # Image size is fixed for the card pipeline; fall back if the model lacks it
    supported = AVAILABLE_IMAGE_MODELS.get(config.image_model, {}).get("resolutions")
    if supported and config.image_size not in supported:
        config.image_size = supported[-1]

    return config


def list_variants() -> Dict[str, dict]:
    """List product variants with descriptions."""
    return {name: dict(v) for name, v in VARIANTS.items()}
